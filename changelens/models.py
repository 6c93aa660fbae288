"""Core data models shared by the change source, classifier and reporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union

from .errors import InvalidInputError


class ChangeKind(str, Enum):
    """How a file changed within the analysed revision range."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"

    @classmethod
    def coerce(cls, value: Union["ChangeKind", str]) -> "ChangeKind":
        """Return the member for *value*, raising InvalidInputError if unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidInputError(f"Unrecognized change kind: {value!r}")

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class ChangeRecord:
    """One changed file within one analysis run."""
    file_path: str
    change_kind: ChangeKind
    author: str
    commit_id: str
    timestamp: datetime
    diff_text: str = ""


@dataclass(frozen=True)
class ClassificationVerdict:
    """Classifier output for a single ChangeRecord."""
    business_logic_impacted: bool
    signals: Tuple[str, ...]
    impact_description: str


@dataclass(frozen=True)
class ClassifiedChange:
    """A ChangeRecord merged with its verdict."""
    record: ChangeRecord
    verdict: ClassificationVerdict

    @property
    def file_path(self) -> str:
        return self.record.file_path

    @property
    def change_kind(self) -> ChangeKind:
        return ChangeKind.coerce(self.record.change_kind)

    @property
    def author(self) -> str:
        return self.record.author

    @property
    def commit_id(self) -> str:
        return self.record.commit_id

    @property
    def timestamp(self) -> datetime:
        return self.record.timestamp

    @property
    def diff_text(self) -> str:
        return self.record.diff_text

    @property
    def business_logic_impacted(self) -> bool:
        return self.verdict.business_logic_impacted

    @property
    def description(self) -> str:
        return self.verdict.impact_description

    @property
    def signals(self) -> Tuple[str, ...]:
        return self.verdict.signals


@dataclass(frozen=True)
class RevisionRange:
    """Two git revisions whose difference is analysed."""
    start: str
    end: str

    @classmethod
    def previous(cls) -> "RevisionRange":
        """The last commit on the current branch."""
        return cls(start="HEAD~1", end="HEAD")

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


@dataclass
class CommitInfo:
    commit_id: str
    message: str
    author: str
    date: str


@dataclass
class RenderedReport:
    """Presentational output handed to a publisher."""
    title: str
    body: str
    labels: List[str] = field(default_factory=list)


@dataclass
class ConfluenceSettings:
    """Connection details for the Confluence wiki backend."""
    base_url: str = ""
    token: str = ""
    space_key: str = ""
    parent_page_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.token and self.space_key)


@dataclass(frozen=True)
class PageRef:
    page_id: str
    version: int
