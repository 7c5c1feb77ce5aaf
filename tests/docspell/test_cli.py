"""
Tests for the DocSpell Command Line
===================================
Exit codes, output formats and the config sub-command.
"""

import io
import json
import os
import sys

import pytest

from docspell.cli import main, _normalize_argv, build_parser

SOURCE = "/// This fuction recieves a mesage.\npub fn f() {}\n"
CLEAN = "/// Returns the sum of both values.\npub fn add() {}\n"


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith('DOCSPELL_'):
            monkeypatch.delenv(name)


@pytest.fixture
def symspell():
    try:
        import symspellpy  # noqa: F401
    except ImportError:
        pytest.skip("symspellpy not installed")


@pytest.fixture
def bad_file(tmp_path):
    path = tmp_path / "lib.rs"
    path.write_text(SOURCE, encoding='utf-8')
    return path


@pytest.fixture
def clean_file(tmp_path):
    path = tmp_path / "clean.rs"
    path.write_text(CLEAN, encoding='utf-8')
    return path


class TestArguments:
    """Tests for argument handling."""

    def test_implicit_check(self):
        assert _normalize_argv(["src/lib.rs"]) == ["check", "src/lib.rs"]
        assert _normalize_argv(["-vv", "src"]) == ["-vv", "check", "src"]
        assert _normalize_argv([]) == ["check"]
        assert _normalize_argv(["fix", "--auto"]) == ["fix", "--auto"]

    def test_fix_options(self):
        args = build_parser().parse_args(["fix", "--auto", "--threshold", "0.8", "a.rs"])
        assert args.auto
        assert args.threshold == 0.8
        assert args.paths == ["a.rs"]

    def test_config_needs_target(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["config"])


class TestCheckCommand:
    """Tests for docspell check."""

    def test_clean_file(self, symspell, clean_file):
        assert main(["check", str(clean_file)]) == 0

    def test_findings(self, symspell, bad_file, capsys):
        assert main(["check", str(bad_file)]) == 1
        out = capsys.readouterr().out
        assert f"{bad_file}:1:10" in out
        assert "fuction" in out
        assert "3 finding(s) in 1 file(s)" in out

    def test_implicit_check_command(self, symspell, bad_file):
        assert main([str(bad_file)]) == 1

    def test_code_override(self, symspell, bad_file):
        assert main(["check", "--code", "5", str(bad_file)]) == 5
        assert main(["check", "-m", "0", str(bad_file)]) == 0

    def test_json_format(self, symspell, bad_file, capsys):
        main(["check", "--format", "json", str(bad_file)])
        data = json.loads(capsys.readouterr().out)
        assert data['tool'] == "docspell"
        assert data['total_diagnostics'] == 3
        first = data['files'][0]['diagnostics'][0]
        assert (first['line'], first['column'], first['text']) == (1, 10, "fuction")

    def test_csv_format(self, symspell, bad_file, capsys):
        main(["check", "--format", "csv", str(bad_file)])
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0].startswith("#,Path,Line,Column")
        assert len(lines) == 4

    def test_quiet(self, symspell, bad_file, capsys):
        assert main(["-q", "check", str(bad_file)]) == 1
        assert capsys.readouterr().out == ""

    def test_crate_directory(self, symspell, tmp_path):
        crate = tmp_path / "demo"
        (crate / "src").mkdir(parents=True)
        (crate / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "0.1.0"\n',
                                          encoding='utf-8')
        (crate / "src" / "lib.rs").write_text(SOURCE, encoding='utf-8')
        assert main(["check", "--skip-readme", str(crate)]) == 1


class TestFixCommand:
    """Tests for docspell fix."""

    def test_auto_fix(self, symspell, bad_file):
        assert main(["fix", "--auto", str(bad_file)]) == 0
        text = bad_file.read_text(encoding='utf-8')
        assert "fuction" not in text
        assert "recieves" not in text
        assert text.endswith("\npub fn f() {}\n")

    def test_fix_without_auto_changes_nothing(self, symspell, bad_file, monkeypatch):
        """Without a terminal there is nobody to ask."""
        monkeypatch.setattr(sys, "stdin", io.StringIO())
        assert main(["fix", str(bad_file)]) == 1
        assert bad_file.read_text(encoding='utf-8') == SOURCE


class TestFatalErrors:
    """Configuration and manifest problems exit with 2."""

    def test_missing_config(self, tmp_path, bad_file, capsys):
        assert main(["check", "--cfg", str(tmp_path / "missing.json"), str(bad_file)]) == 2
        assert "docspell: error" in capsys.readouterr().err

    def test_unknown_checker(self, bad_file):
        assert main(["check", "--checkers", "aspell", str(bad_file)]) == 2

    def test_invalid_manifest(self, tmp_path):
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text("[package\n", encoding='utf-8')
        assert main(["check", str(manifest)]) == 2

    def test_no_backend_available(self, tmp_path, bad_file):
        cfg = tmp_path / "only-hunspell.json"
        cfg.write_text(json.dumps({"enabled_backends": ["hunspell"],
                                   "hunspell": {"language": "zz_ZZ"}}), encoding='utf-8')
        assert main(["check", "--cfg", str(cfg), str(bad_file)]) == 2


class TestConfigCommand:
    """Tests for docspell config."""

    def test_stdout(self, capsys):
        assert main(["config", "--stdout"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['enabled_backends'] == ["symspell"]

    def test_stdout_with_checkers(self, capsys):
        assert main(["config", "--stdout", "--checkers", "languagetool"]) == 0
        assert json.loads(capsys.readouterr().out)['enabled_backends'] == ["languagetool"]

    def test_write_and_force(self, tmp_path):
        target = tmp_path / "docspell.json"
        assert main(["config", "--cfg", str(target)]) == 0
        assert json.loads(target.read_text(encoding='utf-8'))['suggestion_limit'] == 3
        assert main(["config", "--cfg", str(target)]) == 2
        assert main(["config", "--cfg", str(target), "--force"]) == 0
