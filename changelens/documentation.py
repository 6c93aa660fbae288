"""Pipeline tying change source, classifier and report outputs together."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .classifier import ChangeClassifier
from .confluence import ConfluenceClient
from .git_source import GitChangeSource
from .mdx import MdxDocumentWriter
from .models import ClassifiedChange, RenderedReport, RevisionRange
from .report import ReportRenderer

logger = logging.getLogger(__name__)


class DocumentationService:
    """Collect, classify and document the changes of one revision range."""

    def __init__(
        self,
        source: GitChangeSource,
        classifier: Optional[ChangeClassifier] = None,
        renderer: Optional[ReportRenderer] = None,
    ) -> None:
        self.source = source
        self.classifier = classifier or ChangeClassifier()
        self.renderer = renderer or ReportRenderer()

    def collect(self, selector: Optional[RevisionRange] = None) -> List[ClassifiedChange]:
        records = self.source.get_changes(selector)
        classified = self.classifier.classify_batch(records)
        impacted = sum(1 for c in classified if c.business_logic_impacted)
        logger.info("Classified %d change(s), %d touching business logic", len(classified), impacted)
        return classified

    def preview(
        self,
        classified: List[ClassifiedChange],
        now: Optional[datetime] = None,
    ) -> RenderedReport:
        """The page :meth:`publish` would send for *classified*."""
        return self.renderer.render(classified, now=now)

    def publish(
        self,
        classified: List[ClassifiedChange],
        client: ConfluenceClient,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Upsert the report page; returns its id, or None when there is nothing to document."""
        if not classified:
            logger.info("No changes to document.")
            return None
        report = self.preview(classified, now=now)
        return client.publish(report.title, report.body, report.labels)

    def write_document(
        self,
        classified: List[ClassifiedChange],
        writer: MdxDocumentWriter,
        now: Optional[datetime] = None,
    ) -> Optional[Path]:
        if not classified:
            logger.info("No changes to document.")
            return None
        return writer.write(classified, now=now)
