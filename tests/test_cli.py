"""Integration tests for CLI commands."""

import shutil
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from changelens import __version__, config_manager
from changelens.cli import app

runner = CliRunner()

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


@pytest.fixture
def confluence_env(monkeypatch):
    monkeypatch.setenv("CONFLUENCE_BASE_URL", "https://wiki.example.com")
    monkeypatch.setenv("CONFLUENCE_TOKEN", "secret")
    monkeypatch.setenv("CONFLUENCE_SPACE_KEY", "ENG")


@pytest.fixture
def fake_client(monkeypatch):
    """Replace the Confluence client used by the CLI."""
    client_cls = MagicMock()
    client_cls.return_value.publish.return_value = "77"
    monkeypatch.setattr("changelens.cli.ConfluenceClient", client_cls)
    return client_cls


class TestBasics:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"changelens v{__version__}" in result.stdout

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("analyze", "precommit", "classify", "history", "set-confluence"):
            assert command in result.stdout


class TestClassifyCommand:
    def test_business_path(self):
        result = runner.invoke(app, ["classify", "src/services/order.ts"], input="")

        assert result.exit_code == 0
        assert "Business logic impacted: yes" in result.stdout
        assert "- path:services" in result.stdout

    def test_diff_from_stdin(self):
        result = runner.invoke(
            app, ["classify", "src/utils/a.ts"], input="class Foo extends BaseController {}\n",
        )
        assert result.exit_code == 0
        assert "- lexical:extends BaseController" in result.stdout

    def test_diff_from_file(self, temp_dir: Path):
        diff = temp_dir / "change.diff"
        diff.write_text("const a = 1;\n", encoding="utf-8")

        result = runner.invoke(app, ["classify", "src/utils/a.ts", "--diff-file", str(diff)])
        assert result.exit_code == 0
        assert "Business logic impacted: no" in result.stdout
        assert "does not appear to directly impact business logic" in result.stdout

    def test_deleted_kind(self):
        result = runner.invoke(app, ["classify", "src/services/a.ts", "-k", "deleted"], input="")
        assert "File src/services/a.ts was deleted." in result.stdout

    def test_unknown_kind(self):
        result = runner.invoke(app, ["classify", "a.ts", "--kind", "renamed"], input="")
        assert result.exit_code == 1
        assert "Unrecognized change kind" in result.output


@requires_git
class TestAnalyzeCommand:
    def test_skip_doc(self, git_repo):
        result = runner.invoke(app, ["analyze", str(git_repo["path"]), "--skip-doc"])

        assert result.exit_code == 0
        assert "Total changes analyzed: 3" in result.stdout
        assert "Business logic changes detected: 1" in result.stdout

    def test_explicit_range(self, git_repo):
        result = runner.invoke(app, [
            "analyze", str(git_repo["path"]), "--skip-doc",
            "--start-commit", git_repo["first"], "--end-commit", git_repo["second"],
        ])
        assert result.exit_code == 0
        assert "Total changes analyzed: 3" in result.stdout

    def test_half_range_is_rejected(self, git_repo):
        result = runner.invoke(app, ["analyze", str(git_repo["path"]), "--start-commit", "HEAD~1"])
        assert result.exit_code == 2

    def test_mdx_output(self, git_repo, temp_dir: Path):
        out = temp_dir / "site"
        result = runner.invoke(app, [
            "analyze", str(git_repo["path"]), "--output", "mdx", "--output-dir", str(out),
        ])

        assert result.exit_code == 0
        assert "Documentation created at:" in result.stdout
        assert (out / "index.mdx").exists()
        assert len(list(out.glob("*-code-changes.mdx"))) == 1

    def test_mdx_requires_output_dir(self, git_repo):
        result = runner.invoke(app, ["analyze", str(git_repo["path"]), "--output", "mdx"])
        assert result.exit_code == 1
        assert "--output-dir" in result.output

    def test_missing_confluence_config_skips_publishing(self, git_repo):
        result = runner.invoke(app, ["analyze", str(git_repo["path"])])

        assert result.exit_code == 0
        assert "Skipping documentation: missing Confluence configuration." in result.stdout

    def test_publishes_to_confluence(self, git_repo, confluence_env, fake_client):
        result = runner.invoke(app, ["analyze", str(git_repo["path"])])

        assert result.exit_code == 0
        assert "Documentation published. Page ID: 77" in result.stdout
        title, _body, labels = fake_client.return_value.publish.call_args.args
        assert title.startswith("Code Changes Documentation - ")
        assert labels == ["code-changes", "auto-generated", "business-logic"]

    def test_local_repository_is_kept(self, git_repo):
        runner.invoke(app, ["analyze", str(git_repo["path"]), "--skip-doc"])
        assert Path(git_repo["path"]).exists()

    def test_not_a_repository(self, temp_dir: Path):
        result = runner.invoke(app, ["analyze", str(temp_dir / "missing"), "--skip-doc"])
        assert result.exit_code == 1
        assert "Error" in result.output


@requires_git
class TestPrecommitCommand:
    def test_requires_confluence_config(self, git_repo):
        result = runner.invoke(app, ["precommit", "--repo", str(git_repo["path"])])
        assert result.exit_code == 1
        assert "Missing Confluence configuration" in result.output

    def test_confirmed(self, git_repo, confluence_env, fake_client):
        result = runner.invoke(app, ["precommit", "--repo", str(git_repo["path"])], input="y\n")

        assert result.exit_code == 0
        assert "Changes to be documented:" in result.stdout
        assert "<h1>Code Changes Documentation - " in result.stdout
        assert "Changes documented successfully. Page ID: 77" in result.stdout
        fake_client.return_value.publish.assert_called_once()

    def test_declined_aborts(self, git_repo, confluence_env, fake_client):
        result = runner.invoke(app, ["precommit", "--repo", str(git_repo["path"])], input="n\n")

        assert result.exit_code == 1
        assert "<h2>Business Logic Changes</h2>" in result.stdout
        assert "Documentation cancelled. Commit aborted." in result.stdout
        fake_client.return_value.publish.assert_not_called()

    def test_yes_flag_skips_prompt(self, git_repo, confluence_env, fake_client):
        result = runner.invoke(app, ["precommit", "--repo", str(git_repo["path"]), "--yes"])
        assert result.exit_code == 0
        assert "Page ID: 77" in result.stdout


class TestOtherCommands:
    @requires_git
    def test_history(self, git_repo):
        result = runner.invoke(app, ["history", str(git_repo["path"]), "--limit", "5"])

        assert result.exit_code == 0
        assert "Order status" in result.stdout
        assert "Initial commit" in result.stdout

    def test_set_confluence(self):
        result = runner.invoke(app, [
            "set-confluence", "--base-url", "https://wiki.example.com/", "--space-key", "ENG",
        ])

        assert result.exit_code == 0
        settings = config_manager.load_confluence_settings()
        assert settings.base_url == "https://wiki.example.com"
        assert settings.space_key == "ENG"
        assert settings.token == ""
