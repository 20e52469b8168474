"""
Word-processor to PDF conversion via headless LibreOffice.

Each call to ConversionService.convert() is one ConversionJob: the document
is written into a private directory inside the process-wide workspace,
``soffice`` converts it to PDF, pypdf counts the pages, and the whole job
directory is removed before the call returns - success or failure.

RESOURCE LIMITS:
    - At most ``max_workers`` converter processes run at once (semaphore)
    - A caller waiting longer than ``queue_timeout_seconds`` for a free slot
      gets ConverterUnavailable
    - A converter running longer than ``timeout_seconds`` is killed together
      with its process group and the call fails with ConversionTimeout

Each job gets its own LibreOffice user profile; two soffice processes
sharing a profile refuse to start.

Usage:
    service = ConversionService(binary="soffice", workspace=Path("/tmp/printq-temp"))
    result = service.convert(docx_bytes, "report.docx")
    result.page_count  # -> 4

    # At application shutdown
    service.shutdown()
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pypdf import PdfReader
from werkzeug.utils import secure_filename

from logging_config import get_job_logger
from .exceptions import (
    ArtifactUnreadable,
    ConversionFailed,
    ConversionTimeout,
    ConverterUnavailable,
    NoFileProvided,
    PayloadTooLarge,
    UnsupportedMediaType,
)


WORD_PROCESSOR_EXTENSIONS = frozenset({".doc", ".docx"})

# Container signatures: legacy .doc is an OLE2 compound file, .docx a ZIP
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_SIGNATURE = b"PK\x03\x04"

DEFAULT_MAX_BYTES = 25 * 1024 * 1024


@dataclass(frozen=True)
class ConversionJob:
    """Scratch paths for one conversion; all live under ``work_dir``."""

    token: str
    work_dir: Path
    source_path: Path
    artifact_path: Path
    profile_dir: Path


@dataclass(frozen=True)
class ConversionResult:
    """Successful conversion outcome."""

    page_count: int
    original_name: str

    def to_dict(self) -> dict:
        return {"ok": True, "pages": self.page_count, "message": "File converted successfully"}


class ConversionService:
    """
    Converts DOC/DOCX documents to PDF and counts their pages.

    Thread-safe: every call owns its own job directory and profile, and the
    only shared state is the worker semaphore.
    """

    def __init__(
        self,
        binary: str = "soffice",
        workspace: Optional[Path | str] = None,
        timeout_seconds: float = 60.0,
        max_workers: int = 2,
        queue_timeout_seconds: float = 120.0,
        max_bytes: int = DEFAULT_MAX_BYTES,
        kill_grace_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the conversion service.

        Args:
            binary: Converter executable (name on PATH or absolute path)
            workspace: Directory holding all job directories
            timeout_seconds: Hard limit for one converter run
            max_workers: Maximum concurrent converter processes
            queue_timeout_seconds: Maximum wait for a free worker slot
            max_bytes: Largest accepted document
            kill_grace_seconds: Wait for a killed converter to be reaped
            logger: Logger instance (optional)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self._binary = binary
        self._workspace = Path(workspace) if workspace else Path(tempfile.gettempdir()) / "printq-temp"
        self._timeout = timeout_seconds
        self._queue_timeout = queue_timeout_seconds
        self._max_bytes = max_bytes
        self._kill_grace = kill_grace_seconds
        self._max_workers = max_workers
        self._slots = threading.BoundedSemaphore(max_workers)
        self._logger = logger or logging.getLogger("print_queue.core.converter")

        self._workspace.mkdir(parents=True, exist_ok=True)
        self._logger.info(
            f"ConversionService initialized (binary={binary}, workspace={self._workspace}, "
            f"timeout={timeout_seconds}s, workers={max_workers})"
        )

    @property
    def workspace(self) -> Path:
        return self._workspace

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def validate(self, document_bytes: bytes, original_name: str) -> None:
        """
        Check a document before any scratch file is written.

        Raises:
            NoFileProvided: Empty payload
            PayloadTooLarge: Payload over the size limit
            UnsupportedMediaType: Wrong extension or content signature
        """
        if not document_bytes:
            raise NoFileProvided()

        if len(document_bytes) > self._max_bytes:
            raise PayloadTooLarge(len(document_bytes), self._max_bytes)

        extension = Path(original_name or "").suffix.lower()
        if extension not in WORD_PROCESSOR_EXTENSIONS:
            raise UnsupportedMediaType(original_name)

        if not (document_bytes.startswith(ZIP_SIGNATURE) or document_bytes.startswith(OLE2_SIGNATURE)):
            raise UnsupportedMediaType(original_name, "content is not a Word document")

    def convert(self, document_bytes: bytes, original_name: str) -> ConversionResult:
        """
        Convert a document and return its page count.

        Args:
            document_bytes: Raw DOC/DOCX content
            original_name: Uploaded filename (sanitized before use)

        Returns:
            ConversionResult with the PDF page count

        Raises:
            NoFileProvided, PayloadTooLarge, UnsupportedMediaType: Bad input
            ConverterUnavailable: Binary missing or no free worker slot
            ConversionFailed: Non-zero exit, timeout, or missing artifact
            ArtifactUnreadable: PDF could not be loaded
        """
        self.validate(document_bytes, original_name)

        if not self._slots.acquire(timeout=self._queue_timeout):
            raise ConverterUnavailable("conversion pool busy")

        try:
            job = self._create_job(original_name)
            job_logger = get_job_logger(job.token)
            job_logger.info(f"Converting {original_name} ({len(document_bytes)} bytes)")
            started = time.monotonic()
            try:
                job.source_path.write_bytes(document_bytes)
                self._run_converter(job, job_logger)
                pages = self._count_pages(job)
            finally:
                self._cleanup(job, job_logger)

            job_logger.info(
                f"DOCX conversion successful: {pages} pages in {time.monotonic() - started:.1f}s"
            )
            return ConversionResult(page_count=pages, original_name=original_name)
        finally:
            self._slots.release()

    def build_command(self, job: ConversionJob) -> List[str]:
        """Converter command line for a job."""
        return [
            self._binary,
            f"-env:UserInstallation={job.profile_dir.as_uri()}",
            "--headless",
            "--norestore",
            "--convert-to",
            "pdf:writer_pdf_Export",
            "--outdir",
            str(job.work_dir),
            str(job.source_path),
        ]

    def shutdown(self) -> None:
        """Remove the workspace. Safe to call more than once."""
        if not self._workspace.exists():
            return
        try:
            shutil.rmtree(self._workspace)
            self._logger.info(f"Removed conversion workspace {self._workspace}")
        except OSError as e:
            self._logger.warning(f"Could not remove conversion workspace {self._workspace}: {e}")

    # -------------------------------------------------------------------------
    # Job lifecycle
    # -------------------------------------------------------------------------

    def _create_job(self, original_name: str) -> ConversionJob:
        token = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"
        original = Path(original_name)
        stem = secure_filename(original.stem) or "document"
        extension = original.suffix.lower()

        self._workspace.mkdir(parents=True, exist_ok=True)
        work_dir = Path(tempfile.mkdtemp(prefix=f"{token}-", dir=self._workspace))
        source_path = work_dir / f"{token}-{stem}{extension}"

        return ConversionJob(
            token=token,
            work_dir=work_dir,
            source_path=source_path,
            artifact_path=source_path.with_suffix(".pdf"),
            profile_dir=work_dir / "profile",
        )

    def _run_converter(self, job: ConversionJob, job_logger: logging.Logger) -> None:
        command = self.build_command(job)
        job_logger.debug(f"Running: {' '.join(command)}")

        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(job.work_dir),
                start_new_session=(os.name == "posix"),
            )
        except FileNotFoundError:
            job_logger.error(f"Converter binary not found: {self._binary}")
            raise ConverterUnavailable(f"Converter binary not found: {self._binary}", binary=self._binary)
        except PermissionError as e:
            job_logger.error(f"Converter binary not executable: {e}")
            raise ConverterUnavailable(f"Converter binary not executable: {self._binary}", binary=self._binary)

        try:
            stdout, stderr = process.communicate(timeout=self._timeout)
        except subprocess.TimeoutExpired:
            job_logger.error(f"Converter exceeded {self._timeout:.1f}s, killing pid {process.pid}")
            self._terminate(process, job_logger)
            raise ConversionTimeout(self._timeout)

        if process.returncode != 0:
            diagnostic = (stderr or stdout or b"").decode("utf-8", errors="replace").strip()
            detail = diagnostic or f"converter exited with status {process.returncode}"
            job_logger.error(f"Conversion error: {detail}")
            raise ConversionFailed(detail)

        if not job.artifact_path.exists():
            job_logger.error(f"Converter exited cleanly but {job.artifact_path.name} was not created")
            raise ConversionFailed("artifact missing")

    def _terminate(self, process: subprocess.Popen, job_logger: logging.Logger) -> None:
        """Kill the converter and every child it spawned, then reap it."""
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

        try:
            process.communicate(timeout=self._kill_grace)
        except subprocess.TimeoutExpired:
            job_logger.error(f"Converter pid {process.pid} did not exit after kill")

    def _count_pages(self, job: ConversionJob) -> int:
        try:
            reader = PdfReader(str(job.artifact_path))
            pages = len(reader.pages)
        except Exception as e:
            raise ArtifactUnreadable(str(e)) from e

        if pages < 1:
            raise ArtifactUnreadable("document has no pages")
        return pages

    def _cleanup(self, job: ConversionJob, job_logger: logging.Logger) -> None:
        try:
            shutil.rmtree(job.work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            job_logger.warning(f"Could not clean up temp files in {job.work_dir}: {e}")
