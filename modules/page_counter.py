"""Billable page counts for queued documents, resilient to every failure."""

from __future__ import annotations

import io
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

from pypdf import PdfReader

from models.queue import MediaKind, PageCountResult, UploadCandidate
from logging_config import get_logger


logger = get_logger(__name__)


def count_pdf_pages(content: bytes) -> int:
    """Page count of an in-memory PDF; raises on malformed input."""
    reader = PdfReader(io.BytesIO(content))
    return len(reader.pages)


class PageCountResolver:
    """
    Resolves a page count for each upload candidate.

    ``resolve`` never raises: a PDF that fails to parse and a word-processor
    document whose conversion fails are both billed as one page and marked
    DEFAULTED_AFTER_FAILURE, so a converter outage never blocks queuing.
    """

    def __init__(self, conversion_client, max_workers: int = 4):
        self._conversion_client = conversion_client
        self._max_workers = max(1, max_workers)

    def resolve(self, candidate: UploadCandidate) -> PageCountResult:
        if candidate.media_kind is MediaKind.IMAGE:
            return PageCountResult.resolved(1)

        if candidate.media_kind is MediaKind.DOCUMENT:
            return self._resolve_pdf(candidate)

        return self._resolve_word_processor(candidate)

    def resolve_many(self, candidates: Sequence[UploadCandidate]) -> List[PageCountResult]:
        """Resolve a batch concurrently; results are in input order."""
        if not candidates:
            return []
        if len(candidates) == 1 or self._max_workers == 1:
            return [self.resolve(c) for c in candidates]

        workers = min(self._max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="PageCount") as pool:
            return list(pool.map(self.resolve, candidates))

    def _resolve_pdf(self, candidate: UploadCandidate) -> PageCountResult:
        try:
            pages = count_pdf_pages(candidate.content)
        except Exception as e:
            logger.warning(f"Error reading PDF {candidate.name}, using 1 page: {e}")
            return PageCountResult.defaulted(f"PDF could not be read: {e}")

        logger.info(f"PDF analysis complete for {candidate.name}: {pages} pages")
        return PageCountResult.resolved(pages)

    def _resolve_word_processor(self, candidate: UploadCandidate) -> PageCountResult:
        try:
            pages = self._conversion_client.count_pages(candidate.content, candidate.name)
        except Exception as e:
            logger.warning(f"DOCX page count failed for {candidate.name}, using 1: {e}")
            return PageCountResult.defaulted(f"Page count unavailable: {e}")

        if not isinstance(pages, int) or pages < 1:
            logger.warning(f"Converter returned {pages!r} pages for {candidate.name}, using 1")
            return PageCountResult.defaulted(f"Converter returned an invalid page count: {pages!r}")

        logger.info(f"DOCX page count for {candidate.name}: {pages} pages")
        return PageCountResult.resolved(pages)
