"""Typer-based CLI for changelens business-logic change auditing."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config_manager
from .classifier import ChangeClassifier
from .confluence import ConfluenceClient
from .documentation import DocumentationService
from .errors import ChangeLensError
from .git_source import GitChangeSource, RepositoryManager
from .mdx import MdxDocumentWriter
from .models import ChangeKind, ChangeRecord, ClassifiedChange, ConfluenceSettings, RevisionRange

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🔎 changelens — flag code changes that touch business logic and document them.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


class OutputTarget(str, Enum):
    confluence = "confluence"
    mdx = "mdx"


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"changelens v{__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
):
    """changelens: business-logic impact reports for git changes."""
    _setup_logging(verbose)


def _fail(exc: Exception) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {exc}")
    raise typer.Exit(code=1)


def _selector(start_commit: Optional[str], end_commit: Optional[str]) -> Optional[RevisionRange]:
    if bool(start_commit) != bool(end_commit):
        raise typer.BadParameter("--start-commit and --end-commit must be given together.")
    if start_commit and end_commit:
        return RevisionRange(start=start_commit, end=end_commit)
    return None


def _build_classifier(workers: int = 1) -> ChangeClassifier:
    try:
        rule_set = config_manager.build_rule_set()
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid [rules] configuration: {exc}")
    return ChangeClassifier(rule_set=rule_set, workers=workers)


def _print_results(classified: List[ClassifiedChange]) -> None:
    business = [c for c in classified if c.business_logic_impacted]
    typer.echo(f"Total changes analyzed: {len(classified)}")
    typer.echo(f"Business logic changes detected: {len(business)}")
    if not classified:
        return

    table = Table(title="Classified changes", show_lines=False)
    table.add_column("File", style="cyan", overflow="fold")
    table.add_column("Type")
    table.add_column("Business logic")
    table.add_column("Author")
    table.add_column("Signals", overflow="fold")
    for change in classified:
        flag = "[bold yellow]yes[/bold yellow]" if change.business_logic_impacted else "no"
        table.add_row(
            change.file_path,
            change.change_kind.value,
            flag,
            change.author,
            ", ".join(change.signals),
        )
    console.print(table)


@app.command("analyze")
def analyze(
    locator: str = typer.Argument(".", help="Local path or remote URL of the repository."),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch to check out first."),
    start_commit: Optional[str] = typer.Option(None, "--start-commit", help="Start of the revision range."),
    end_commit: Optional[str] = typer.Option(None, "--end-commit", help="End of the revision range."),
    skip_doc: bool = typer.Option(False, "--skip-doc", help="Only print results, publish nothing."),
    output: OutputTarget = typer.Option(
        OutputTarget.confluence, "--output", "-o", case_sensitive=False, help="Documentation target.",
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", file_okay=False, help="Directory for MDX output.",
    ),
    workers: int = typer.Option(1, min=1, max=32, help="Classifier worker threads."),
    keep_clone: bool = typer.Option(False, "--keep-clone", help="Keep a cloned remote on disk."),
):
    """Classify the changes of a repository and document them."""
    selector = _selector(start_commit, end_commit)
    if not skip_doc and output is OutputTarget.mdx and output_dir is None:
        err_console.print("[bold red]Error:[/bold red] --output-dir is required for MDX output")
        raise typer.Exit(code=1)
    classifier = _build_classifier(workers)

    manager = RepositoryManager()
    try:
        repo_path = manager.prepare(locator, branch=branch)
    except ChangeLensError as exc:
        _fail(exc)

    try:
        typer.echo(f"Analyzing repository: {locator}")
        service = DocumentationService(GitChangeSource(repo_path), classifier)
        classified = service.collect(selector)
        _print_results(classified)

        if skip_doc:
            return

        if output is OutputTarget.mdx:
            path = service.write_document(classified, MdxDocumentWriter(output_dir))
            if path is None:
                typer.echo("No changes to document.")
            else:
                typer.echo(f"Documentation created at: {path}")
            return

        settings = config_manager.load_confluence_settings()
        if not settings.is_complete:
            typer.echo("Skipping documentation: missing Confluence configuration.")
            return

        page_id = service.publish(classified, ConfluenceClient(settings))
        if page_id is None:
            typer.echo("No changes to document.")
        else:
            typer.echo(f"Documentation published. Page ID: {page_id}")
    except ChangeLensError as exc:
        _fail(exc)
    finally:
        if not keep_clone:
            manager.cleanup(repo_path)


@app.command("precommit")
def precommit(
    repo: Path = typer.Option(Path("."), "--repo", exists=True, file_okay=False, help="Repository path."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Publish without asking."),
):
    """Preview the last commit's report and publish it after confirmation."""
    settings = config_manager.load_confluence_settings()
    if not settings.is_complete:
        err_console.print(
            "[bold red]Error:[/bold red] Missing Confluence configuration. Set "
            "CONFLUENCE_BASE_URL, CONFLUENCE_TOKEN and CONFLUENCE_SPACE_KEY."
        )
        raise typer.Exit(code=1)

    try:
        service = DocumentationService(GitChangeSource(repo), _build_classifier())
        classified = service.collect()
        _print_results(classified)
        if not classified:
            typer.echo("No changes to document.")
            return

        now = datetime.now()
        report = service.preview(classified, now=now)
        typer.echo("\nChanges to be documented:")
        typer.echo(report.title)
        typer.echo(report.body)

        if not yes and not typer.confirm("Do you want to proceed with documenting these changes?"):
            typer.echo("Documentation cancelled. Commit aborted.")
            raise typer.Exit(code=1)

        page_id = service.publish(classified, ConfluenceClient(settings), now=now)
        typer.echo(f"Changes documented successfully. Page ID: {page_id}")
    except ChangeLensError as exc:
        _fail(exc)


@app.command("classify")
def classify(
    file_path: str = typer.Argument(..., help="Repository-relative path of the changed file."),
    kind: str = typer.Option("modified", "--kind", "-k", help="added, modified or deleted."),
    diff_file: Optional[Path] = typer.Option(
        None, "--diff-file", "-d", exists=True, dir_okay=False, help="Diff to read instead of stdin.",
    ),
):
    """Classify a single diff and show which rules fired."""
    if diff_file is not None:
        diff_text = diff_file.read_text(encoding="utf-8", errors="replace")
    elif sys.stdin.isatty():
        diff_text = ""
    else:
        diff_text = sys.stdin.read()

    try:
        change_kind = ChangeKind.coerce(kind)
        record = ChangeRecord(
            file_path=file_path,
            change_kind=change_kind,
            author="",
            commit_id="",
            timestamp=datetime.now(timezone.utc),
            diff_text=diff_text,
        )
        verdict = _build_classifier().classify(record)
    except ChangeLensError as exc:
        _fail(exc)

    typer.echo(f"Business logic impacted: {'yes' if verdict.business_logic_impacted else 'no'}")
    for signal in verdict.signals:
        typer.echo(f"- {signal}")
    typer.echo(verdict.impact_description)


@app.command("history")
def history(
    locator: str = typer.Argument(".", help="Local path or remote URL of the repository."),
    limit: int = typer.Option(10, min=1, max=200, help="Number of commits to show."),
):
    """Show recent commits of a repository."""
    manager = RepositoryManager()
    try:
        repo_path = manager.prepare(locator)
        try:
            commits = GitChangeSource(repo_path).commit_history(limit=limit)
        finally:
            manager.cleanup(repo_path)
    except ChangeLensError as exc:
        _fail(exc)

    if not commits:
        typer.echo("No commits found.")
        return

    table = Table(title="Recent commits")
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("Author")
    table.add_column("Message", overflow="fold")
    for commit in commits:
        table.add_row(commit.commit_id[:10], commit.date, commit.author, commit.message)
    console.print(table)


@app.command("set-confluence")
def set_confluence(
    base_url: str = typer.Option(..., prompt="Confluence base URL", help="e.g. https://wiki.example.com"),
    space_key: str = typer.Option(..., prompt="Space key", help="Target space key."),
    parent_page_id: Optional[str] = typer.Option(None, help="Optional parent page id."),
):
    """Save Confluence connection settings (the token stays in CONFLUENCE_TOKEN)."""
    config_manager.save_confluence_settings(
        ConfluenceSettings(base_url=base_url.rstrip("/"), space_key=space_key, parent_page_id=parent_page_id)
    )
    typer.echo(f"Saved Confluence settings to {config_manager.CONFIG_FILE}")


if __name__ == "__main__":
    app()
