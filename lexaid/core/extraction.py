"""File ingestion boundary: turn an uploaded file into plain text.

Plain text is decoded and PDF text is read with PyMuPDF. Images need an
extractor registered by the deployment (e.g. an OCR service); without one the
upload is refused instead of faked.
"""

import os
from typing import Callable

import fitz  # pymupdf
import structlog

from lexaid.core.config import AppSettings

logger = structlog.get_logger(__name__)

Extractor = Callable[[str, bytes], str]


class ExtractionError(Exception):
    """The upload was rejected or could not be converted to text."""

    def __init__(self, title: str, description: str):
        super().__init__(description)
        self.title = title
        self.description = description


def extract_plain_text(filename: str, data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def extract_pdf_text(filename: str, data: bytes) -> str:
    text = ""
    with fitz.open(stream=data, filetype="pdf") as pdf:
        for page in pdf:
            text += page.get_text("text") + "\n"
    return text.strip()


def _kind(filename: str, content_type: str | None) -> str:
    content_type = (content_type or "").lower()
    extension = os.path.splitext(filename)[1].lower()
    if "pdf" in content_type or extension == ".pdf":
        return "pdf"
    if content_type.startswith("image/") or extension in (".png", ".jpg", ".jpeg"):
        return "image"
    return "text"


class ExtractionService:
    """Validates uploads and dispatches them to a per-kind extractor."""

    def __init__(self, settings: AppSettings | None = None):
        self.settings = settings or AppSettings()
        self._extractors: dict[str, Extractor] = {
            "text": extract_plain_text,
            "pdf": extract_pdf_text,
        }

    def register(self, kind: str, extractor: Extractor) -> None:
        """Install an extractor for "pdf", "image" or "text"."""
        self._extractors[kind] = extractor
        logger.info("extraction.registered", kind=kind)

    def validate(self, filename: str, size: int, content_type: str | None = None) -> None:
        """Raise ExtractionError when the file is too large or of an unaccepted type."""
        limit = self.settings.max_upload_mb * 1024 * 1024
        if size > limit:
            raise ExtractionError("File too large", f"Maximum file size is {self.settings.max_upload_mb}MB")

        extension = os.path.splitext(filename)[1].lower()
        subtype = (content_type or "").split("/")[-1].lower()
        accepted = self.settings.accepted_extensions
        if extension not in accepted and not (subtype and any(subtype in a for a in accepted)):
            raise ExtractionError("Invalid file type", f"Accepted file types: {','.join(accepted)}")

    def extract(self, filename: str, data: bytes, content_type: str | None = None) -> str:
        """Validate then extract text from an uploaded file.

        Args:
            filename: Original file name (used for type detection).
            data: Raw file bytes.
            content_type: Optional MIME type reported by the client.

        Returns:
            Extracted plain text.

        Raises:
            ExtractionError: If validation fails, no extractor handles the
                kind, or the extractor itself fails.
        """
        self.validate(filename, len(data), content_type)
        kind = _kind(filename, content_type)

        extractor = self._extractors.get(kind)
        if extractor is None:
            logger.warning("extraction.unsupported", kind=kind, filename=filename)
            raise ExtractionError(
                "Unsupported document",
                f"No {kind} text extractor is configured. Paste the document text instead.",
            )

        try:
            text = extractor(filename, data)
        except Exception as e:
            logger.error("extraction.failed", kind=kind, error=str(e))
            raise ExtractionError(
                "Error processing file",
                "There was an error processing your file. Please try again.",
            ) from e

        logger.info("extraction.complete", kind=kind, chars=len(text))
        return text
