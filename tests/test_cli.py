"""
Tests for the guidelint command line interface.
"""

import json

import pytest
from click.testing import CliRunner

from guidelint.main import main


@pytest.fixture
def runner(monkeypatch, tmp_path):
    # Keep a developer's .env out of the run
    monkeypatch.chdir(tmp_path)
    return CliRunner()


class TestCheckCommand:
    def test_clean_guide_exits_zero(self, runner, valid_guide):
        result = runner.invoke(main, ["check", str(valid_guide)])

        assert result.exit_code == 0, result.output
        assert "0 error(s)" in result.output

    def test_json_report(self, runner, valid_guide):
        (valid_guide / "02-setup.md").write_text("# Setup\n\n```\nx\n```\n", encoding="utf-8")

        result = runner.invoke(main, ["check", str(valid_guide), "--format", "json"])

        assert result.exit_code == 1
        report = json.loads(result.output)
        assert report["status"] == "failed"
        rules = {finding["rule"] for finding in report["findings"]}
        assert "fence-missing-language" in rules
        assert "nav-broken" not in rules

    def test_disable_and_strict(self, runner, write_files):
        root = write_files({"01-a.md": "# A\n", "02-b.md": "# B\n"})

        lenient = runner.invoke(main, ["check", str(root)])
        strict = runner.invoke(main, ["check", str(root), "--strict"])
        disabled = runner.invoke(
            main, ["check", str(root), "--strict", "--disable", "index-missing"]
        )

        # index-missing is only a warning
        assert lenient.exit_code == 0
        assert strict.exit_code == 1
        assert disabled.exit_code == 0

    def test_report_written_to_file(self, runner, valid_guide, tmp_path):
        output = tmp_path / "report.md"

        result = runner.invoke(
            main, ["check", str(valid_guide), "--format", "markdown", "--output", str(output)]
        )

        assert result.exit_code == 0
        assert "No problems found." in output.read_text(encoding="utf-8")

    def test_configuration_errors_exit_two(self, runner, tmp_path):
        missing = runner.invoke(main, ["check", str(tmp_path / "missing")])
        unknown_rule = runner.invoke(main, ["check", str(tmp_path), "--disable", "bogus-rule"])

        assert missing.exit_code == 2
        assert "does not exist" in missing.output
        assert unknown_rule.exit_code == 2
        assert "bogus-rule" in unknown_rule.output

    def test_invalid_environment_exits_two(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("GUIDELINT_SEVERITY_OVERRIDES", "index-order=fatal")

        result = runner.invoke(main, ["check", str(tmp_path)])

        assert result.exit_code == 2
        assert "Configuration Error" in result.output


class TestOtherCommands:
    def test_rules(self, runner):
        result = runner.invoke(main, ["rules"])

        assert result.exit_code == 0
        assert "nav-broken" in result.output
        assert "fence-missing-language" in result.output

    def test_collections(self, runner, valid_guide):
        result = runner.invoke(main, ["collections", str(valid_guide)])

        assert result.exit_code == 0
        assert "Guide Collections" in result.output

    def test_config(self, runner):
        result = runner.invoke(main, ["config"])

        assert result.exit_code == 0
        assert "guidelint Configuration Summary" in result.output

    def test_toc_prints_and_writes(self, runner, write_files):
        root = write_files({"guide/01-a.md": "# Alpha\n", "guide/02-b.md": "# Beta\n"})

        printed = runner.invoke(main, ["toc", str(root / "guide")])
        written = runner.invoke(main, ["toc", str(root / "guide"), "--write"])
        again = runner.invoke(main, ["toc", str(root / "guide"), "--write"])

        assert printed.exit_code == 0
        assert printed.output.splitlines() == ["1. [Alpha](01-a.md)", "2. [Beta](02-b.md)"]
        assert written.exit_code == 0
        assert "1. [Alpha](01-a.md)" in (root / "guide" / "README.md").read_text(encoding="utf-8")
        assert "already up to date" in again.output

    def test_toc_without_chapters(self, runner, tmp_path):
        result = runner.invoke(main, ["toc", str(tmp_path)])
        assert result.exit_code == 1

    def test_doctor(self, runner, valid_guide):
        result = runner.invoke(main, ["doctor", str(valid_guide)])

        assert result.exit_code == 0, result.output
        assert "✓ collections: collections=1, chapters=3, indexes=1" in result.output

    def test_doctor_reports_empty_tree(self, runner, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(main, ["doctor", str(empty)])

        assert result.exit_code == 1
        assert "✗ collections: No Markdown files found" in result.output
