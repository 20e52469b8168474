"""
Unit tests for the ConversionService.

The converter binary is the fake script from conftest, so these tests run
the real subprocess, timeout and cleanup paths without LibreOffice.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.converter import ConversionResult, ConversionService, OLE2_SIGNATURE
from core.exceptions import (
    ArtifactUnreadable,
    ConversionFailed,
    ConversionTimeout,
    ConverterUnavailable,
    NoFileProvided,
    PayloadTooLarge,
    UnsupportedMediaType,
)


pytestmark = pytest.mark.skipif(os.name != "posix", reason="fake converter relies on a shebang")


# Fixtures

@pytest.fixture
def make_service(workspace):
    """Factory for a ConversionService using a given binary."""
    services = []

    def _make(binary: str, **kwargs) -> ConversionService:
        kwargs.setdefault("timeout_seconds", 10.0)
        service = ConversionService(binary=binary, workspace=workspace, **kwargs)
        services.append(service)
        return service

    yield _make
    for service in services:
        service.shutdown()


def leftover_files(workspace):
    return list(workspace.iterdir()) if workspace.exists() else []


# Tests for successful conversion

class TestConversionSuccess:
    """Converter runs and produces a readable PDF."""

    def test_returns_artifact_page_count(self, make_service, fake_converter, docx_bytes):
        """Test the page count comes from the converted PDF."""
        service = make_service(fake_converter("ok", pages=4))

        result = service.convert(docx_bytes, "report.docx")

        assert isinstance(result, ConversionResult)
        assert result.page_count == 4
        assert result.original_name == "report.docx"

    def test_to_dict_shape(self, make_service, fake_converter, docx_bytes):
        """Test the JSON body returned to HTTP callers."""
        service = make_service(fake_converter("ok", pages=2))

        body = service.convert(docx_bytes, "letter.docx").to_dict()

        assert body == {"ok": True, "pages": 2, "message": "File converted successfully"}

    def test_legacy_doc_signature_accepted(self, make_service, fake_converter):
        """Test .doc files with an OLE2 header are converted."""
        service = make_service(fake_converter("ok", pages=1))

        result = service.convert(OLE2_SIGNATURE + b"\x00" * 32, "old.doc")

        assert result.page_count == 1

    def test_no_scratch_files_left(self, make_service, fake_converter, docx_bytes, workspace):
        """Test the job directory is removed after success."""
        service = make_service(fake_converter("ok", pages=3))

        service.convert(docx_bytes, "report.docx")

        assert leftover_files(workspace) == []

    def test_unsafe_filename_is_sanitized(self, make_service, fake_converter, docx_bytes):
        """Test path components in the uploaded name never reach the filesystem."""
        service = make_service(fake_converter("ok", pages=2))

        result = service.convert(docx_bytes, "../../etc/evil name.docx")

        assert result.page_count == 2

    def test_concurrent_conversions_do_not_collide(self, make_service, fake_converter, docx_bytes, workspace):
        """Test simultaneous jobs each get their own directory."""
        service = make_service(fake_converter("ok", pages=3), max_workers=2)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda i: service.convert(docx_bytes, "same.docx"), range(4)))

        assert [r.page_count for r in results] == [3, 3, 3, 3]
        assert leftover_files(workspace) == []


# Tests for converter failures

class TestConversionFailures:
    """Converter errors map to typed exceptions and still clean up."""

    def test_non_zero_exit(self, make_service, fake_converter, docx_bytes, workspace):
        """Test a failing converter raises ConversionFailed with its stderr."""
        service = make_service(fake_converter("fail"))

        with pytest.raises(ConversionFailed) as exc_info:
            service.convert(docx_bytes, "broken.docx")

        assert "could not be loaded" in exc_info.value.detail
        assert leftover_files(workspace) == []

    def test_missing_artifact(self, make_service, fake_converter, docx_bytes):
        """Test a clean exit without a PDF is still a failure."""
        service = make_service(fake_converter("no_artifact"))

        with pytest.raises(ConversionFailed) as exc_info:
            service.convert(docx_bytes, "report.docx")

        assert exc_info.value.detail == "artifact missing"

    def test_unreadable_artifact(self, make_service, fake_converter, docx_bytes):
        """Test a corrupt PDF raises ArtifactUnreadable."""
        service = make_service(fake_converter("garbage"))

        with pytest.raises(ArtifactUnreadable):
            service.convert(docx_bytes, "report.docx")

    def test_zero_page_artifact(self, make_service, fake_converter, docx_bytes):
        """Test a PDF without pages is rejected."""
        service = make_service(fake_converter("ok", pages=0))

        with pytest.raises(ArtifactUnreadable) as exc_info:
            service.convert(docx_bytes, "empty.docx")

        assert exc_info.value.detail == "document has no pages"

    def test_hang_is_killed_at_timeout(self, make_service, fake_converter, docx_bytes, workspace):
        """Test a hung converter is killed and the call returns near the deadline."""
        service = make_service(fake_converter("hang"), timeout_seconds=1.0, kill_grace_seconds=2.0)

        started = time.monotonic()
        with pytest.raises(ConversionTimeout):
            service.convert(docx_bytes, "slow.docx")
        elapsed = time.monotonic() - started

        assert elapsed < 1.0 + 4.0
        assert leftover_files(workspace) == []

    def test_timeout_is_a_conversion_failure(self):
        """Test ConversionTimeout can be handled as ConversionFailed."""
        assert issubclass(ConversionTimeout, ConversionFailed)
        assert ConversionTimeout(5).http_status == 504

    def test_missing_binary(self, make_service, docx_bytes, tmp_path, workspace):
        """Test a non-existent converter raises ConverterUnavailable."""
        service = make_service(str(tmp_path / "no-such-soffice"))

        with pytest.raises(ConverterUnavailable) as exc_info:
            service.convert(docx_bytes, "report.docx")

        assert exc_info.value.http_status == 503
        assert leftover_files(workspace) == []

    def test_pool_busy(self, make_service, fake_converter, docx_bytes):
        """Test waiting too long for a worker slot raises ConverterUnavailable."""
        service = make_service(fake_converter("ok"), max_workers=1, queue_timeout_seconds=0.1)
        service._slots.acquire()
        try:
            with pytest.raises(ConverterUnavailable) as exc_info:
                service.convert(docx_bytes, "report.docx")
        finally:
            service._slots.release()

        assert "busy" in exc_info.value.message


# Tests for input validation

class TestValidation:
    """Inputs rejected before any scratch file is written."""

    @pytest.fixture
    def service(self, make_service, fake_converter):
        return make_service(fake_converter("ok"), max_bytes=1024)

    def test_empty_payload(self, service):
        with pytest.raises(NoFileProvided):
            service.convert(b"", "report.docx")

    def test_payload_too_large(self, service, docx_bytes):
        with pytest.raises(PayloadTooLarge) as exc_info:
            service.convert(docx_bytes + b"\x00" * 2048, "report.docx")

        assert exc_info.value.http_status == 413

    def test_wrong_extension(self, service, docx_bytes):
        with pytest.raises(UnsupportedMediaType):
            service.convert(docx_bytes, "report.pdf")

    def test_wrong_content_signature(self, service, workspace):
        """Test a renamed non-Word file is rejected by content."""
        with pytest.raises(UnsupportedMediaType) as exc_info:
            service.convert(b"%PDF-1.7 not a word document", "sneaky.docx")

        assert "not a Word document" in exc_info.value.message
        assert leftover_files(workspace) == []


# Tests for command construction and lifecycle

class TestCommandAndLifecycle:
    """Command line and workspace handling."""

    def test_command_uses_private_profile(self, make_service, fake_converter):
        """Test each job passes its own LibreOffice profile and outdir."""
        service = make_service("soffice")
        job = service._create_job("report.docx")

        command = service.build_command(job)

        assert command[0] == "soffice"
        assert command[1] == f"-env:UserInstallation={job.profile_dir.as_uri()}"
        assert "--headless" in command
        assert command[command.index("--convert-to") + 1] == "pdf:writer_pdf_Export"
        assert command[command.index("--outdir") + 1] == str(job.work_dir)
        assert command[-1] == str(job.source_path)

    def test_job_paths_are_unique(self, make_service):
        service = make_service("soffice")

        first = service._create_job("a.docx")
        second = service._create_job("a.docx")

        assert first.work_dir != second.work_dir
        assert first.artifact_path.suffix == ".pdf"

    def test_invalid_worker_count(self, workspace):
        with pytest.raises(ValueError):
            ConversionService(workspace=workspace, max_workers=0)

    def test_shutdown_removes_workspace(self, make_service, workspace):
        """Test shutdown is idempotent and removes the workspace."""
        service = make_service("soffice")
        assert workspace.exists()

        service.shutdown()
        service.shutdown()

        assert not workspace.exists()
