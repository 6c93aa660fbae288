"""Business-logic change classifier.

Every changed file is judged by three independent tiers:

1. **path**: does the file live in a conventional business-logic directory?
2. **lexical**: does the diff mention business keywords or naming patterns?
3. **syntactic**: does the parsed diff declare or decorate business-looking names?

A file is flagged when any tier fires.  The heuristic deliberately favours
false positives: a flagged change only asks a human to look.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from . import config
from .errors import InvalidInputError
from .models import ChangeKind, ChangeRecord, ClassificationVerdict, ClassifiedChange
from .rules import RuleSet, match_keywords, match_path, match_patterns, name_matches
from .syntax import SyntaxParser, declaration_name, decorator_name, language_for_path, walk

logger = logging.getLogger(__name__)

DELETED_SIGNAL = "file deleted"
FALLBACK_SIGNAL = "syntactic:lexical-fallback"


class ChangeClassifier:
    """Classify ChangeRecords as business-logic impacting or not."""

    def __init__(
        self,
        rule_set: Optional[RuleSet] = None,
        max_parse_bytes: int = config.MAX_PARSE_BYTES,
        workers: int = 1,
    ) -> None:
        self.rule_set = rule_set or RuleSet.default()
        self.workers = max(1, workers)
        self._parser = SyntaxParser(max_bytes=max_parse_bytes)

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    def path_signals(self, file_path: str) -> List[str]:
        return [f"path:{label}" for label in match_path(self.rule_set, file_path)]

    def lexical_signals(self, text: str) -> List[str]:
        hits = match_keywords(self.rule_set, text) + match_patterns(self.rule_set, text)
        return [f"lexical:{hit}" for hit in hits]

    def syntactic_signals(self, file_path: str, text: str) -> List[str]:
        outcome = self._parser.parse(text, language_for_path(file_path))
        if outcome.degraded:
            logger.info("Syntax analysis degraded for %s: %s", file_path, outcome.reason)
            if self.lexical_signals(text):
                return [FALLBACK_SIGNAL]
            return []

        signals: List[str] = []
        for node in walk(outcome.tree):
            name = declaration_name(node)
            if name and name_matches(self.rule_set, name):
                signals.append(f"syntactic:function:{name}")
            decorated = decorator_name(node)
            if decorated and name_matches(self.rule_set, decorated):
                signals.append(f"syntactic:decorator:{decorated}")
        return signals

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def classify(self, record: ChangeRecord) -> ClassificationVerdict:
        """Classify one record.

        Raises:
            InvalidInputError: if the record has an unknown change kind or no path.
        """
        kind = ChangeKind.coerce(record.change_kind)
        if not record.file_path:
            raise InvalidInputError("Change record has an empty file path")

        if kind is ChangeKind.DELETED:
            return ClassificationVerdict(
                business_logic_impacted=False,
                signals=(DELETED_SIGNAL,),
                impact_description=f"File {record.file_path} was deleted.",
            )

        diff_text = record.diff_text or ""
        path_hits = self.path_signals(record.file_path)
        signals = (
            path_hits
            + self.lexical_signals(diff_text)
            + self.syntactic_signals(record.file_path, diff_text)
        )
        signals = list(dict.fromkeys(signals))
        impacted = bool(signals)

        return ClassificationVerdict(
            business_logic_impacted=impacted,
            signals=tuple(signals),
            impact_description=describe(kind, record.file_path, impacted, bool(path_hits)),
        )

    def classify_batch(self, records: Sequence[ChangeRecord]) -> List[ClassifiedChange]:
        """Classify *records*, returning results in input order."""
        if self.workers > 1 and len(records) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                verdicts = list(pool.map(self.classify, records))
        else:
            verdicts = [self.classify(r) for r in records]

        return [
            ClassifiedChange(record=record, verdict=verdict)
            for record, verdict in zip(records, verdicts)
        ]


def describe(kind: ChangeKind, file_path: str, impacted: bool, in_business_path: bool) -> str:
    """Human-readable summary of a verdict."""
    description = f"{kind.label} file: {file_path}. "
    if impacted:
        description += "This change impacts business logic. "
        if in_business_path:
            description += (
                "The file is located in a business logic directory, "
                "suggesting core functionality changes."
            )
    else:
        description += "This change does not appear to directly impact business logic."
    return description.strip()
