"""Git-backed change source.

Produces ``ChangeRecord`` objects for the source files touched between two
revisions.  All git access goes through :func:`run_git`, so every failure
(missing binary, bad revision, timeout) surfaces as
``SourceUnavailableError``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Set, Tuple

from . import config
from .errors import SourceUnavailableError
from .models import ChangeKind, ChangeRecord, CommitInfo, RevisionRange

logger = logging.getLogger(__name__)


def run_git(args: Iterable[str], cwd: Path, timeout: int = config.GIT_TIMEOUT) -> str:
    """Run a git sub-command in *cwd* and return its stdout."""
    cmd = ["git", *args]
    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise SourceUnavailableError("git executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise SourceUnavailableError(
            f"'{' '.join(cmd)}' timed out after {timeout}s"
        ) from exc

    if completed.returncode != 0:
        message = completed.stderr.strip() or "git command failed"
        logger.warning("git %s failed in %s: %s", " ".join(cmd[1:]), cwd, message)
        raise SourceUnavailableError(message)
    return completed.stdout


def _parse_status(status: str) -> Optional[ChangeKind]:
    if status == "A" or status.startswith("C"):
        return ChangeKind.ADDED
    if status == "D":
        return ChangeKind.DELETED
    if status in ("M", "T") or status.startswith("R"):
        return ChangeKind.MODIFIED
    return None


class GitChangeSource:
    """Enumerate changed source files of a local git working tree."""

    def __init__(
        self,
        repo_path: Path,
        extensions: Optional[Set[str]] = None,
        timeout: int = config.GIT_TIMEOUT,
    ) -> None:
        self.repo_path = Path(repo_path)
        self.extensions = {e.lower() for e in (extensions or config.SOURCE_EXTENSIONS)}
        self.timeout = timeout

    def _git(self, *args: str) -> str:
        return run_git(args, cwd=self.repo_path, timeout=self.timeout)

    def current_branch(self) -> str:
        branch = self._git("rev-parse", "--abbrev-ref", "HEAD").strip()
        if branch == "HEAD":
            raise SourceUnavailableError("HEAD is detached; pass an explicit revision range")
        return branch

    def is_source_file(self, file_path: str) -> bool:
        return PurePosixPath(file_path).suffix.lower() in self.extensions

    def changed_files(
        self, selector: RevisionRange,
    ) -> List[Tuple[str, ChangeKind, Optional[str]]]:
        """Changed source files between the selector's revisions.

        Each entry is ``(path, kind, renamed_from)``; ``renamed_from`` is the
        old path of a rename and ``None`` otherwise.
        """
        # -z keeps non-ASCII paths unquoted
        output = self._git("diff", "--name-status", "-z", "-M", selector.start, selector.end)
        tokens = output.split("\0")

        changed: List[Tuple[str, ChangeKind, Optional[str]]] = []
        index = 0
        while index < len(tokens):
            status = tokens[index]
            index += 1
            if not status:
                continue
            # Renames and copies carry <old>\0<new>, everything else one path
            width = 2 if status[0] in "RC" else 1
            paths = tokens[index:index + width]
            index += width
            kind = _parse_status(status)
            if kind is None or len(paths) != width:
                logger.debug("Skipping unsupported status %r for %s", status, paths)
                continue
            file_path = paths[-1]
            renamed_from = paths[0] if status.startswith("R") else None
            if self.is_source_file(file_path):
                changed.append((file_path, kind, renamed_from))
        return changed

    def get_changes(self, selector: Optional[RevisionRange] = None) -> List[ChangeRecord]:
        """ChangeRecords for *selector*, or for the last commit on the current branch."""
        if selector is None:
            branch = self.current_branch()
            logger.debug("Collecting last-commit changes on branch %s", branch)
            try:
                self._git("rev-parse", "--verify", "--quiet", "HEAD~1")
            except SourceUnavailableError as exc:
                raise SourceUnavailableError(
                    f"Branch '{branch}' has no previous revision to compare against"
                ) from exc
            selector = RevisionRange.previous()

        commit_id = self._git("rev-parse", selector.end).strip()
        timestamp = self._commit_time(selector.end)
        fallback_author = self._git("log", "-1", "--format=%an", selector.end).strip()

        records: List[ChangeRecord] = []
        for file_path, kind, renamed_from in self.changed_files(selector):
            # Both sides of a rename are needed for git to pair them
            paths = [renamed_from, file_path] if renamed_from else [file_path]
            diff = self._git("diff", "-M", selector.start, selector.end, "--", *paths)
            author = self._git("log", "-1", "--format=%an", selector.end, "--", file_path).strip()
            records.append(ChangeRecord(
                file_path=file_path,
                change_kind=kind,
                author=author or fallback_author,
                commit_id=commit_id,
                timestamp=timestamp,
                diff_text=diff,
            ))

        logger.info("Found %d changed source file(s) in %s", len(records), selector)
        return records

    def _commit_time(self, revision: str) -> datetime:
        raw = self._git("show", "-s", "--format=%cI", revision).strip()
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.debug("Unparseable commit date %r for %s", raw, revision)
            return datetime.now(timezone.utc)

    def commit_history(self, limit: int = 10) -> List[CommitInfo]:
        output = self._git(
            "log", "-n", str(limit), "--date=short", "--pretty=format:%H%x1f%s%x1f%an%x1f%ad",
        )
        history: List[CommitInfo] = []
        for line in output.splitlines():
            fields = line.split("\x1f")
            if len(fields) != 4:
                continue
            commit_id, message, author, date = fields
            history.append(CommitInfo(commit_id=commit_id, message=message, author=author, date=date))
        return history


class RepositoryManager:
    """Resolve a repository locator to a local working tree."""

    def __init__(self, base_dir: Optional[Path] = None, timeout: int = config.GIT_TIMEOUT) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else config.CLONE_DIR
        self.timeout = timeout

    @staticmethod
    def repo_name(locator: str) -> str:
        name = locator.rstrip("/").split("/")[-1].split(":")[-1]
        name = name.removesuffix(".git")
        return name or "repo"

    def clone_path(self, locator: str) -> Path:
        return self.base_dir / self.repo_name(locator)

    def prepare(self, locator: str, branch: Optional[str] = None) -> Path:
        """Return a working tree for *locator*, cloning or pulling a remote if needed."""
        local = Path(locator).expanduser()
        if local.is_dir() and (local / ".git").exists():
            repo_path = local.resolve()
            logger.info("Using local repository %s", repo_path)
        else:
            repo_path = self.clone_path(locator)
            if repo_path.exists():
                logger.info("Repository already cloned at %s, pulling latest changes", repo_path)
                run_git(["pull", "--ff-only"], cwd=repo_path, timeout=self.timeout)
            else:
                logger.info("Cloning %s into %s", locator, repo_path)
                self.base_dir.mkdir(parents=True, exist_ok=True)
                run_git(["clone", locator, str(repo_path)], cwd=self.base_dir, timeout=self.timeout)

        if branch:
            run_git(["checkout", branch], cwd=repo_path, timeout=self.timeout)
        return repo_path

    def is_managed(self, repo_path: Path) -> bool:
        try:
            relative = Path(repo_path).resolve().relative_to(self.base_dir.resolve())
        except ValueError:
            return False
        return relative != Path(".")

    def cleanup(self, repo_path: Path) -> bool:
        """Delete a clone made by :meth:`prepare`; local trees are never touched."""
        if not self.is_managed(repo_path) or not Path(repo_path).exists():
            return False
        shutil.rmtree(repo_path, ignore_errors=True)
        return True
