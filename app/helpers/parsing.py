import base64
import binascii
import io
import logging
from pathlib import Path

from pdfminer.high_level import extract_text as pdf_extract
from docx import Document

from app.utils.exceptions import ExtractionError, ValidationError
from app.utils.logging_config import get_logger

logging.getLogger("pdfminer").setLevel(logging.ERROR)
logger = get_logger(__name__)

SUPPORTED_SUFFIXES = (".pdf", ".docx", ".txt")


def read_txt(content: bytes) -> str:
    return content.decode("utf-8")


def read_docx(content: bytes) -> str:
    doc = Document(io.BytesIO(content))
    return "\n".join([p.text for p in doc.paragraphs])


def read_pdf(content: bytes) -> str:
    return pdf_extract(io.BytesIO(content))


def decode_base64_document(b64_string: str) -> bytes:
    try:
        return base64.b64decode(b64_string, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 document: {e}", field="base64_content", cause=e)


def read_document(content: bytes, filename: str) -> str:
    """Decode an uploaded resume into plain text, keeping line breaks."""
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_SUFFIXES:
        raise ValidationError(
            f"Unsupported file type '{ext or filename}'. Supported: {', '.join(SUPPORTED_SUFFIXES)}",
            field="filename",
            invalid_value=filename,
        )

    readers = {".txt": read_txt, ".pdf": read_pdf, ".docx": read_docx}
    try:
        text = readers[ext](content)
    except Exception as e:
        logger.warning(f"Failed to decode {filename}: {e}")
        raise ExtractionError(f"Failed to parse resume: {e}", file_name=filename, cause=e)

    logger.debug(f"Decoded {filename} into {len(text)} characters")
    return text
