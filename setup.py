"""
Setup script for csbindgen

Installs the generator package together with its Jinja2 templates and the
``csbindgen`` console script.
"""

from pathlib import Path
from setuptools import setup, find_packages


# Read version from csbindgen/__init__.py
def get_version():
    version_file = Path("csbindgen/__init__.py")
    if version_file.exists():
        for line in version_file.read_text().splitlines():
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"').strip("'")
    return "0.1.0"


# Read long description from README
def get_long_description():
    readme = Path("README.md")
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


setup(
    name="csbindgen",
    version=get_version(),
    description="C++ to C# binding generator",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    packages=find_packages(include=["csbindgen", "csbindgen.*"]),
    package_data={"csbindgen": ["templates/*.j2"]},
    install_requires=[
        "libclang>=16.0",
        "jinja2>=3.0",
        "tomli>=1.1; python_version<'3.11'",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "csbindgen=csbindgen.cli:main",
        ],
    },
    zip_safe=False,  # Templates are loaded from the package directory
)
