"""
Pytest configuration and shared fixtures for csbindgen tests.

Raw translation units are built by hand, so everything except the libclang
frontend test runs without libclang installed.
"""

import sys
from pathlib import Path

import pytest

# Add project root and this directory to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from csbindgen.builder import MetaASTBuilder
from csbindgen.parser import HAS_CLANG
from csbindgen.pipeline import Pipeline, build_context, default_passes
from csbindgen.rules import IncludedChecker, RuleSet

from builders import (
    INT,
    SECRET,
    VECTOR3,
    VOID,
    const_ref,
    ctor,
    enum,
    klass,
    method,
    namespace,
    param,
    ptr,
    shared_ptr,
    unit,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def requires_clang():
    """Skip test if libclang is not available."""
    if not HAS_CLANG:
        pytest.skip("libclang not available")


@pytest.fixture
def build_ast():
    """Build a meta-AST from raw units, optionally filtered by symbol rules."""
    def build(*units, include=None, exclude=None):
        checker = IncludedChecker(include, exclude)
        return MetaASTBuilder(None, checker).build(list(units))
    return build


@pytest.fixture
def run_passes(tmp_path):
    """Run a pass list over a meta-AST and return the context."""
    def run(ast, passes=None, rules=None, config=None, output=None):
        output = output or tmp_path
        ctx = build_context(
            ast,
            rules=rules or RuleSet(),
            config=config,
            output_cpp=output / "native",
            output_cs=output / "managed",
        )
        Pipeline(passes if passes is not None else default_passes()).run(ctx)
        return ctx
    return run


@pytest.fixture
def engine_rules():
    """Rules of the sample engine."""
    return RuleSet.from_dict({
        "symbols": {"include": ["Urho3D::**"], "exclude": ["Urho3D::Secret"]},
        "value_types": {"Urho3D::Vector3": "Vector3"},
    })


@pytest.fixture
def engine_unit():
    """
    A small engine header.

    Node has a constructor, a value-type property backed by accessors and a
    method returning a reference-counted pointer to Component. Secret is
    excluded by the rules and only reachable through a pointer.
    """
    return unit(
        namespace(
            "Urho3D",
            enum("CreateMode", ("REPLICATED", 0), ("LOCAL", 1)),
            klass("Secret", file="Secret.h"),
            klass(
                "Component",
                method("IsEnabled", INT, is_const=True),
            ),
            klass(
                "Node",
                ctor("Node"),
                method("SetPosition", VOID, param("position", const_ref(VECTOR3))),
                method("GetPosition", const_ref(VECTOR3), is_const=True),
                method("CreateComponent", shared_ptr("Urho3D::Component")),
                method("Hidden", ptr(SECRET)),
                method("Consume", VOID, param("secret", SECRET)),
            ),
        )
    )

