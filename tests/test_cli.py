"""
Tests for the command-line interface.
"""

import pytest

import csbindgen.cli as cli
from csbindgen.context import GeneratorContext
from csbindgen.errors import ParseError
from csbindgen.generators import EmitResult
from csbindgen.meta import MetaAST


def _fake_run(calls, outputs=None, aborted=None):
    def run_generator(rules, source, compile_config, **kwargs):
        calls.append((rules, source, compile_config, kwargs))
        ctx = GeneratorContext(MetaAST())
        ctx.outputs = outputs or {}
        if aborted:
            ctx.abort(aborted)
        return ctx
    return run_generator


class TestResponseFile:
    """Test response file expansion."""

    def test_expanded(self, tmp_path):
        rsp = tmp_path / "bindgen.rsp"
        rsp.write_text("rules.json\n\nSource\n  -I  \nSource/Engine\n")
        assert cli.expand_response_file([str(rsp)]) == ["rules.json", "Source", "-I", "Source/Engine"]

    def test_regular_arguments_untouched(self, tmp_path):
        argv = ["rules.json", str(tmp_path)]
        assert cli.expand_response_file(argv) == argv
        assert cli.expand_response_file(["--version"]) == ["--version"]


class TestMain:
    """Test exit codes and argument plumbing."""

    def test_success(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        calls = []
        outputs = {"cs": [EmitResult(tmp_path / "A.cs", written=True)]}
        monkeypatch.setattr(cli, "run_generator", _fake_run(calls, outputs))

        code = cli.main([
            "rules.json", "Source",
            "-I", "Source", "-I", "ThirdParty", "-D", "URHO3D_STATIC",
            "--out-cs", "managed", "-j", "2",
        ])

        assert code == 0
        rules, source, compile_config, kwargs = calls[0]
        assert str(rules) == "rules.json"
        assert compile_config.include_paths == ("Source", "ThirdParty")
        assert compile_config.defines == ("URHO3D_STATIC",)
        assert str(kwargs["output_cs"]) == "managed"
        assert kwargs["output_cpp"] is None
        assert kwargs["jobs"] == 2
        assert "Generated 1 files (1 changed)" in capsys.readouterr().out

    def test_response_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "bindgen.rsp").write_text("rules.json\nSource\n-D\nFOO=1\n")
        calls = []
        monkeypatch.setattr(cli, "run_generator", _fake_run(calls))

        assert cli.main(["bindgen.rsp"]) == 0
        assert calls[0][2].defines == ("FOO=1",)

    def test_missing_rules(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "Source").mkdir()
        assert cli.main(["missing.json", "Source"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_parse_error(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)

        def fail(*args, **kwargs):
            raise ParseError(tmp_path / "Node.h", "expected ';'")

        monkeypatch.setattr(cli, "run_generator", fail)
        assert cli.main(["rules.json", "Source"]) == 1
        assert "Failed to parse" in capsys.readouterr().err

    def test_aborted(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(cli, "run_generator", _fake_run([], aborted="TypeMapsPass failed: boom"))
        assert cli.main(["rules.json", "Source"]) == 1

    def test_emission_failure(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        outputs = {"cpp": [EmitResult(tmp_path / "A.cpp", ok=False, error="denied")]}
        monkeypatch.setattr(cli, "run_generator", _fake_run([], outputs))
        assert cli.main(["rules.json", "Source"]) == 1

    def test_missing_config(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(cli, "run_generator", _fake_run([]))
        assert cli.main(["rules.json", "Source", "--config", "missing.toml"]) == 1
        assert "Config file not found" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            cli.main(["--version"])
        assert info.value.code == 0
        assert "csbindgen" in capsys.readouterr().out
