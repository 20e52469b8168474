"""
Document conversion route.

Handles:
- /convert-docx - Convert an uploaded DOC/DOCX with LibreOffice and return
  its page count

Errors are raised as PrintQueueError subclasses and rendered by the
application's JSON error handler:
    400 NoFileProvided, UnsupportedMediaType
    413 PayloadTooLarge
    503 ConverterUnavailable
    504 ConversionTimeout
    500 ConversionFailed, ArtifactUnreadable
"""

from flask import Blueprint, current_app, jsonify, request

from core.exceptions import ConverterUnavailable, NoFileProvided
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

convert_bp = Blueprint("convert", __name__)


@convert_bp.route("/convert-docx", methods=["POST"])
def convert_docx():
    """
    Convert the multipart ``file`` field and report its page count.

    The upload is handed to the ConversionService, which writes it into a
    private job directory, runs the converter under a deadline and removes
    every scratch file before returning.
    """
    service = current_app.config.get("CONVERSION_SERVICE")
    if service is None:
        raise ConverterUnavailable("Conversion service not initialized")

    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise NoFileProvided()

    content = upload.read()
    logger.info(f"Conversion requested: {upload.filename} ({len(content)} bytes)")

    result = service.convert(content, upload.filename)
    return jsonify(result.to_dict())
