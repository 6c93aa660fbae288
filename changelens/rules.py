"""Rule tables for the business-logic heuristic.

Each tier of the classifier reads one table:

- ``path_rules``: directory segments conventionally holding business code
- ``keywords``: case-insensitive substrings evoking rules and workflow
- ``pattern_rules``: regexes for business verbs, layer annotations and
  layer inheritance; also used to judge declaration and decorator names
  during syntax-tree traversal

A ``RuleSet`` is built once and shared read-only by every classification.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple


@dataclass(frozen=True)
class PathRule:
    label: str
    pattern: Pattern[str]

    def matches(self, segment: str) -> bool:
        return self.pattern.fullmatch(segment) is not None


@dataclass(frozen=True)
class PatternRule:
    label: str
    pattern: Pattern[str]

    def search(self, text: str) -> Optional[str]:
        match = self.pattern.search(text)
        return match.group(0) if match else None


DEFAULT_PATH_RULES: Tuple[PathRule, ...] = (
    PathRule("services", re.compile(r"services?")),
    PathRule("controllers", re.compile(r"controllers?")),
    PathRule("models", re.compile(r"models?")),
    PathRule("repositories", re.compile(r"repositor(?:y|ies)")),
    PathRule("domain", re.compile(r"domain")),
    PathRule("business", re.compile(r"business")),
    PathRule("core", re.compile(r"core")),
)

DEFAULT_KEYWORDS: Tuple[str, ...] = (
    "controller",
    "service",
    "repository",
    "model",
    "validator",
    "middleware",
    "handler",
    "processor",
    "calculate",
    "compute",
    "validate",
    "transform",
    "process",
    "business",
    "logic",
    "rule",
    "workflow",
    "policy",
)

DEFAULT_PATTERN_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        "business-verb",
        re.compile(r"\b(get|set|update|delete|create|process|validate)\w*\b"),
    ),
    PatternRule(
        "domain-phrase",
        re.compile(r"\b(business|domain)\s*(logic|rule|workflow|process)\b"),
    ),
    PatternRule(
        "layer-name",
        re.compile(r"\b(service|controller|repository|model)\b", re.IGNORECASE),
    ),
    PatternRule(
        "layer-annotation",
        re.compile(r"@(Controller|Service|Repository|Entity|Injectable)"),
    ),
    PatternRule(
        "layer-inheritance",
        re.compile(r"extends\s+(Base)?(Controller|Service|Repository|Model)"),
    ),
)


@dataclass(frozen=True)
class RuleSet:
    path_rules: Tuple[PathRule, ...] = DEFAULT_PATH_RULES
    keywords: Tuple[str, ...] = DEFAULT_KEYWORDS
    pattern_rules: Tuple[PatternRule, ...] = DEFAULT_PATTERN_RULES

    @classmethod
    def default(cls) -> "RuleSet":
        return cls()

    def extended(
        self,
        path_segments: Iterable[str] = (),
        keywords: Iterable[str] = (),
        patterns: Iterable[str] = (),
    ) -> "RuleSet":
        """Return a copy with user-supplied rules appended to each table.

        Raises:
            ValueError: if a path segment or pattern is not a valid regex.
        """
        path_rules = list(self.path_rules)
        for segment in path_segments:
            path_rules.append(PathRule(segment, _compile(segment)))

        merged_keywords = list(self.keywords)
        for keyword in keywords:
            keyword = keyword.strip().lower()
            if keyword and keyword not in merged_keywords:
                merged_keywords.append(keyword)

        pattern_rules = list(self.pattern_rules)
        for index, raw in enumerate(patterns):
            pattern_rules.append(PatternRule(f"custom-{index + 1}", _compile(raw)))

        return RuleSet(
            path_rules=tuple(path_rules),
            keywords=tuple(merged_keywords),
            pattern_rules=tuple(pattern_rules),
        )


def _compile(raw: str) -> Pattern[str]:
    try:
        return re.compile(raw)
    except re.error as exc:
        raise ValueError(f"Invalid rule pattern {raw!r}: {exc}") from exc


def directory_segments(file_path: str) -> List[str]:
    """Directory components of a repository-relative path, file name excluded."""
    parts = [p for p in file_path.replace("\\", "/").split("/") if p]
    return parts[:-1]


def match_path(rule_set: RuleSet, file_path: str) -> List[str]:
    """Labels of path rules matching any directory segment, in table order."""
    segments = directory_segments(file_path)
    return [
        rule.label
        for rule in rule_set.path_rules
        if any(rule.matches(segment) for segment in segments)
    ]


def match_keywords(rule_set: RuleSet, text: str) -> List[str]:
    lowered = text.lower()
    return [kw for kw in rule_set.keywords if kw.lower() in lowered]


def match_patterns(rule_set: RuleSet, text: str) -> List[str]:
    """First match of each pattern rule that fires, in table order."""
    found: List[str] = []
    for rule in rule_set.pattern_rules:
        hit = rule.search(text)
        if hit is not None:
            found.append(hit)
    return found


def name_matches(rule_set: RuleSet, name: str) -> bool:
    """True if a declared identifier looks like business logic."""
    if not name:
        return False
    return any(rule.search(name) is not None for rule in rule_set.pattern_rules)
