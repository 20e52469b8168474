"""
Print queue data models.

These models represent documents as they move from file selection into the
pending queue: UploadCandidate -> (page count resolution) -> QueuedFile.

The PrintQueue is an explicit state object. Each session owns one through
its SubmissionController; nothing here is module-global.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Iterable, Iterator, List, Optional, Tuple


class MediaKind(Enum):
    """Broad kind of an uploaded file, derived from its extension."""

    DOCUMENT = "document"
    """PDF: pages counted locally."""

    IMAGE = "image"
    """Raster image: always one page."""

    WORD_PROCESSOR = "word_processor"
    """DOC/DOCX: pages counted by converting to PDF."""


class ResolutionStatus(Enum):
    """How a queued file's page count was obtained."""

    RESOLVED = "resolved"
    """Page count came from the document itself."""

    DEFAULTED_AFTER_FAILURE = "defaulted_after_failure"
    """Counting failed; the file is billed as one page."""


@dataclass(frozen=True)
class UploadCandidate:
    """
    A file the user selected or dropped, before page counting.

    Identity within a queue is (name, size).
    """

    content: bytes = field(repr=False)
    """Raw file bytes."""

    name: str
    """Display name (the original filename)."""

    size: int
    """Size in bytes."""

    media_kind: MediaKind
    """Kind derived from the extension."""

    content_type: str = "application/octet-stream"
    """MIME type reported by the uploader."""

    @property
    def key(self) -> Tuple[str, int]:
        """Dedup key."""
        return (self.name, self.size)


@dataclass(frozen=True)
class PageCountResult:
    """Outcome of resolving one candidate's page count."""

    pages: int
    status: ResolutionStatus
    reason: Optional[str] = None

    def __post_init__(self):
        if self.pages < 1:
            raise ValueError(f"page count must be >= 1, got {self.pages}")

    @classmethod
    def resolved(cls, pages: int) -> "PageCountResult":
        return cls(pages=max(int(pages), 1), status=ResolutionStatus.RESOLVED)

    @classmethod
    def defaulted(cls, reason: str) -> "PageCountResult":
        return cls(pages=1, status=ResolutionStatus.DEFAULTED_AFTER_FAILURE, reason=reason)


@dataclass(frozen=True)
class QueuedFile:
    """
    A candidate accepted into the queue with its billable page count.

    Frozen: a submission reads the same objects the queue holds, so
    nothing may change them once they are queued.
    """

    candidate: UploadCandidate
    pages: int
    status: ResolutionStatus = ResolutionStatus.RESOLVED
    note: Optional[str] = None

    @classmethod
    def from_resolution(cls, candidate: UploadCandidate, result: PageCountResult) -> "QueuedFile":
        return cls(candidate=candidate, pages=result.pages, status=result.status, note=result.reason)

    @property
    def name(self) -> str:
        return self.candidate.name

    @property
    def size(self) -> int:
        return self.candidate.size

    @property
    def content(self) -> bytes:
        return self.candidate.content

    @property
    def key(self) -> Tuple[str, int]:
        return self.candidate.key

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict (content omitted)."""
        return {
            "name": self.name,
            "size": self.size,
            "media_kind": self.candidate.media_kind.value,
            "pages": self.pages,
            "status": self.status.value,
            "note": self.note,
        }


class PrintQueue:
    """
    Ordered collection of QueuedFiles with unique (name, size) keys.

    Not thread-safe on its own; the owning SubmissionController serializes
    access.
    """

    def __init__(self, files: Optional[Iterable[QueuedFile]] = None):
        self._files: List[QueuedFile] = []
        for queued in files or ():
            self.add(queued)

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[QueuedFile]:
        return iter(list(self._files))

    def __bool__(self) -> bool:
        return bool(self._files)

    def contains(self, name: str, size: int) -> bool:
        return any(f.key == (name, size) for f in self._files)

    def add(self, queued: QueuedFile) -> bool:
        """Append a file; returns False (queue unchanged) for a duplicate key."""
        if self.contains(queued.name, queued.size):
            return False
        self._files.append(queued)
        return True

    def remove(self, name: str, size: int) -> bool:
        """Remove the file with this key; returns whether one was removed."""
        before = len(self._files)
        self._files = [f for f in self._files if f.key != (name, size)]
        return len(self._files) != before

    def clear(self) -> None:
        self._files.clear()

    def snapshot(self) -> Tuple[QueuedFile, ...]:
        """Immutable view of the current contents, in queue order."""
        return tuple(self._files)

    @property
    def total_pages(self) -> int:
        return sum(f.pages for f in self._files)
