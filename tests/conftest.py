"""Pytest configuration and fixtures for changelens tests."""

import shutil
import subprocess
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from changelens.classifier import ChangeClassifier
from changelens.models import ChangeKind, ChangeRecord

@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Keep every test away from the real ~/.changelens and Confluence env vars.

    Patch both config AND config_manager (config_manager binds CONFIG_FILE
    at import time).
    """
    home = tmp_path_factory.mktemp("changelens_home")
    monkeypatch.setattr("changelens.config.BASE_DIR", home)
    monkeypatch.setattr("changelens.config.CLONE_DIR", home / "repos")
    monkeypatch.setattr("changelens.config_manager.CONFIG_FILE", home / "config.toml")
    for var in (
        "CONFLUENCE_BASE_URL",
        "CONFLUENCE_TOKEN",
        "CONFLUENCE_SPACE_KEY",
        "CONFLUENCE_PARENT_PAGE_ID",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def classifier() -> ChangeClassifier:
    return ChangeClassifier()


@pytest.fixture
def make_record() -> Callable[..., ChangeRecord]:
    """Factory for ChangeRecords with sensible defaults."""

    def _make(
        file_path: str = "src/utils/helpers.ts",
        diff_text: str = "",
        change_kind=ChangeKind.MODIFIED,
        author: str = "Ada Lovelace",
    ) -> ChangeRecord:
        return ChangeRecord(
            file_path=file_path,
            change_kind=change_kind,
            author=author,
            commit_id="abc1234",
            timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            diff_text=diff_text,
        )

    return _make


def git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args], cwd=str(repo), check=True, capture_output=True, text=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def git_cmd() -> Callable[..., str]:
    """Run git in a test repository and return its output."""
    return git


def _write(repo: Path, rel: str, content: str) -> None:
    path = repo / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def git_repo(temp_dir: Path) -> Dict[str, object]:
    """A repository with two commits.

    The second commit modifies a service, deletes a util, adds a JS file and
    touches two non-source files.
    """
    repo = temp_dir / "shop"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.name", "Test Author")
    git(repo, "config", "user.email", "author@example.com")
    git(repo, "config", "commit.gpgsign", "false")

    _write(repo, "src/services/order.ts", "export function createOrder() {\n  return {};\n}\n")
    _write(repo, "src/utils/old.ts", "export const legacy = true;\n")
    _write(repo, "README.md", "# Shop\n")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", "Initial commit")
    first = git(repo, "rev-parse", "HEAD")

    _write(
        repo,
        "src/services/order.ts",
        "export function createOrder() {\n  return { status: 'new' };\n}\n",
    )
    (repo / "src/utils/old.ts").unlink()
    _write(repo, "src/utils/new.js", "export const pad = (s) => s.padStart(2, '0');\n")
    _write(repo, "README.md", "# Shop\n\nNow with orders.\n")
    _write(repo, "docs/notes.txt", "notes\n")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", "Order status")
    second = git(repo, "rev-parse", "HEAD")

    return {"path": repo, "first": first, "second": second}
