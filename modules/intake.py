"""Document intake filter: extension whitelist and (name, size) dedup."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from models.queue import MediaKind, PrintQueue, UploadCandidate
from logging_config import get_logger


logger = get_logger(__name__)

EXTENSION_KINDS = {
    ".pdf": MediaKind.DOCUMENT,
    ".doc": MediaKind.WORD_PROCESSOR,
    ".docx": MediaKind.WORD_PROCESSOR,
    ".png": MediaKind.IMAGE,
    ".jpg": MediaKind.IMAGE,
    ".jpeg": MediaKind.IMAGE,
    ".webp": MediaKind.IMAGE,
    ".jfif": MediaKind.IMAGE,
}

ALLOWED_EXTENSIONS = frozenset(EXTENSION_KINDS)


def classify(filename: str) -> Optional[MediaKind]:
    """Media kind for a filename, or None if the extension is not accepted."""
    return EXTENSION_KINDS.get(Path(filename or "").suffix.lower())


def make_candidate(
    filename: str,
    content: bytes,
    content_type: Optional[str] = None,
) -> Optional[UploadCandidate]:
    """Build a candidate for an accepted file; None when the type is not accepted."""
    kind = classify(filename)
    if kind is None:
        return None
    return UploadCandidate(
        content=content,
        name=filename,
        size=len(content),
        media_kind=kind,
        content_type=content_type or "application/octet-stream",
    )


def accept_files(
    queue: PrintQueue,
    files: Iterable[Tuple[str, bytes, Optional[str]]],
) -> List[UploadCandidate]:
    """
    Filter incoming files down to the ones that may join the queue.

    Unsupported types and (name, size) duplicates - against the queue or
    earlier in the same batch - are dropped without error. Arrival order is
    preserved. The queue itself is not modified.

    Args:
        queue: Current queue (read only)
        files: (filename, content, content_type) tuples

    Returns:
        Accepted candidates, in arrival order
    """
    accepted: List[UploadCandidate] = []
    seen: Set[Tuple[str, int]] = set()

    for filename, content, content_type in files:
        candidate = make_candidate(filename, content, content_type)
        if candidate is None:
            logger.debug(f"Skipping unsupported file: {filename}")
            continue

        if candidate.key in seen or queue.contains(*candidate.key):
            logger.debug(f"Skipping duplicate file: {filename} ({candidate.size} bytes)")
            continue

        seen.add(candidate.key)
        accepted.append(candidate)

    return accepted
