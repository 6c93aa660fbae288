"""MDX document output for static documentation sites."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from .models import ClassifiedChange
from .report import BUSINESS_LABEL, partition, report_title

logger = logging.getLogger(__name__)

INDEX_FILE = "index.mdx"
INDEX_HEADER = """# Code Changes Documentation

This section contains automatically generated documentation for code changes, with a focus on business logic modifications.

## Recent Changes

"""

_LINK_RE = re.compile(r"^- \[.*\]\(\./(?P<file>[^)]+)\)$")


class MdxDocumentWriter:
    """Write one dated MDX document per run plus a maintained index."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    @staticmethod
    def file_name(now: datetime) -> str:
        return f"{now.strftime('%Y%m%d')}-code-changes.mdx"

    def front_matter(self, classified: Sequence[ClassifiedChange], now: datetime) -> str:
        authors = list(dict.fromkeys(c.author for c in classified if c.author))
        tags = ["code-changes"]
        if any(c.business_logic_impacted for c in classified):
            tags.append(BUSINESS_LABEL)
        tags.append("documentation")

        lines = [
            "---",
            f'title: "{report_title(now)}"',
            f'date: "{now.isoformat()}"',
            "authors: [" + ", ".join(json.dumps(a, ensure_ascii=False) for a in authors) + "]",
            "tags: [" + ", ".join(f'"{t}"' for t in tags) + "]",
            "---",
            "",
        ]
        return "\n".join(lines) + "\n"

    def body(self, classified: Sequence[ClassifiedChange], now: datetime) -> str:
        business, other = partition(classified)
        lines: List[str] = [
            "# Code Changes Documentation",
            "",
            f"Documentation generated on {now.strftime('%Y-%m-%d')} for recent code changes.",
            "",
            "## Summary",
            "",
            ":::info",
            f"Total changes detected: {len(classified)}",
            f"Business logic changes: {len(business)}",
            ":::",
            "",
            "## Business Logic Changes",
            "",
        ]
        lines.extend(self._bullets(business, "No business logic changes detected."))
        lines += ["", "## Other Changes", ""]
        lines.extend(self._bullets(other, "No other changes detected."))
        lines += ["", "## Detailed Changes", ""]

        for change in classified:
            impact = "Business Logic" if change.business_logic_impacted else "Other"
            lines += [
                f"### {change.file_path}",
                "",
                f"* Type: {change.change_kind.value}",
                f"* Author: {change.author}",
                f"* Impact: {impact}",
                f"* Description: {change.description}",
            ]
            if change.signals:
                lines.append("* Signals: " + ", ".join(f"`{s}`" for s in change.signals))
            lines += ["", "```diff", change.diff_text.rstrip("\n"), "```", ""]

        return "\n".join(lines)

    @staticmethod
    def _bullets(changes: Sequence[ClassifiedChange], empty_text: str) -> List[str]:
        if not changes:
            return [empty_text]
        return [f"- **{c.file_path}** - {c.description}" for c in changes]

    def render(self, classified: Sequence[ClassifiedChange], now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        return self.front_matter(classified, now) + self.body(classified, now)

    def write(self, classified: Sequence[ClassifiedChange], now: Optional[datetime] = None) -> Path:
        """Write the document and register it in the index; returns its path."""
        now = now or datetime.now()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        name = self.file_name(now)
        path = self.output_dir / name
        path.write_text(self.render(classified, now), encoding="utf-8")
        self.update_index(name)
        logger.info("Wrote MDX report %s", path)
        return path

    def update_index(self, new_file: str) -> Path:
        """Ensure ``index.mdx`` links every report, newest first."""
        index_path = self.output_dir / INDEX_FILE
        linked: List[str] = []
        if index_path.exists():
            for line in index_path.read_text(encoding="utf-8").splitlines():
                match = _LINK_RE.match(line.strip())
                if match:
                    linked.append(match.group("file"))

        on_disk = [
            p.name for p in self.output_dir.glob("*.mdx") if p.name != INDEX_FILE
        ]
        files = sorted(set(linked) | set(on_disk) | {new_file}, reverse=True)

        links = [f"- [{f.removesuffix('.mdx').replace('-', ' ')}](./{f})" for f in files]
        index_path.write_text(INDEX_HEADER + "\n".join(links) + "\n", encoding="utf-8")
        return index_path
