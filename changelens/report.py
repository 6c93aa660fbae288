"""Render classified changes into a Confluence storage-format page."""

from __future__ import annotations

import html
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .models import ClassifiedChange, RenderedReport

BASE_LABELS = ["code-changes", "auto-generated"]
BUSINESS_LABEL = "business-logic"


def partition(
    classified: Sequence[ClassifiedChange],
) -> Tuple[List[ClassifiedChange], List[ClassifiedChange]]:
    """Split into (business-logic, other), preserving order within each."""
    business = [c for c in classified if c.business_logic_impacted]
    other = [c for c in classified if not c.business_logic_impacted]
    return business, other


def report_labels(classified: Sequence[ClassifiedChange]) -> List[str]:
    labels = list(BASE_LABELS)
    if any(c.business_logic_impacted for c in classified):
        labels.append(BUSINESS_LABEL)
    return labels


def report_title(now: datetime) -> str:
    return f"Code Changes Documentation - {now.strftime('%Y-%m-%d')}"


def _esc(value: str) -> str:
    return html.escape(value, quote=True)


def _cdata(value: str) -> str:
    # "]]>" cannot appear inside CDATA; close and reopen around it
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _code_macro(body: str, language: str = "none") -> str:
    return (
        '<ac:structured-macro ac:name="code">'
        f'<ac:parameter ac:name="language">{_esc(language)}</ac:parameter>'
        f"<ac:plain-text-body>{_cdata(body)}</ac:plain-text-body>"
        "</ac:structured-macro>"
    )


class ReportRenderer:
    """Build the title, body and labels of a change report page."""

    INTRO = (
        "This documentation was automatically generated to track code "
        "changes that affect business logic."
    )

    def render(
        self,
        classified: Sequence[ClassifiedChange],
        now: Optional[datetime] = None,
    ) -> RenderedReport:
        now = now or datetime.now()
        title = report_title(now)
        labels = report_labels(classified)
        business, other = partition(classified)

        parts = [
            '<ac:structured-macro ac:name="info"><ac:rich-text-body>'
            f"<p>{_esc(self.INTRO)}</p>"
            "</ac:rich-text-body></ac:structured-macro>",
            f"<h1>{_esc(title)}</h1>",
            f"<p>Total changes: {len(classified)} | Business logic changes: {len(business)}</p>",
            "<h2>Business Logic Changes</h2>",
            self._section(business, "No business logic changes detected."),
            "<h2>Other Changes</h2>",
            self._section(other, "No other changes detected."),
            _code_macro(f"Labels: {', '.join(labels)}"),
        ]
        return RenderedReport(title=title, body="\n".join(parts), labels=labels)

    def _section(self, changes: Sequence[ClassifiedChange], empty_text: str) -> str:
        if not changes:
            return f"<p>{_esc(empty_text)}</p>"

        rows = "".join(
            "<tr>"
            f"<td>{_esc(c.file_path)}</td>"
            f"<td>{_esc(c.change_kind.value)}</td>"
            f"<td>{_esc(c.description)}</td>"
            f"<td>{_esc(c.author)}</td>"
            "</tr>"
            for c in changes
        )
        table = (
            "<table><thead><tr>"
            "<th>File</th><th>Type</th><th>Description</th><th>Author</th>"
            f"</tr></thead><tbody>{rows}</tbody></table>"
        )

        details = ["<h3>Detailed Changes</h3>"]
        for change in changes:
            details.append(f"<h4>{_esc(change.file_path)}</h4>")
            if change.signals:
                details.append(
                    "<p>Signals: "
                    + ", ".join(f"<code>{_esc(s)}</code>" for s in change.signals)
                    + "</p>"
                )
            details.append(_code_macro(change.diff_text, language="diff"))

        return table + "\n" + "\n".join(details)
