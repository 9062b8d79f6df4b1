"""Attachment-to-text decoding for resume / cover letter content sniffing."""
import base64
import binascii
import io
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

import chardet
import PyPDF2
from docx import Document

from .config import settings

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".pdf", ".docx", ".doc", ".txt"}


def _to_bytes(data: bytes | str) -> bytes:
    """Gmail returns attachment data as base64url text; accept raw bytes as well."""
    if isinstance(data, bytes):
        return data
    s = (data or "").strip()
    try:
        return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))
    except (binascii.Error, ValueError):
        return s.encode("utf-8", errors="replace")


def _get_file_type(filename: str, data: bytes) -> str:
    """Detect file type using file signatures, then the extension."""
    if data.startswith(b"%PDF-"):
        return ".pdf"
    if data.startswith(b"PK\x03\x04") and filename.lower().endswith(".docx"):
        return ".docx"
    if data.startswith(b"\xD0\xCF\x11\xE0"):
        return ".doc"
    return Path(filename or "").suffix.lower()


def _extract_pdf(data: bytes) -> str:
    reader = PyPDF2.PdfReader(io.BytesIO(data))
    return "\n".join((page.extract_text() or "") for page in reader.pages)


def _extract_docx(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    text_parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = " | ".join(cell.text for cell in row.cells)
            if row_text.strip():
                text_parts.append(row_text)
    return "\n".join(text_parts)


def _extract_doc(data: bytes) -> str:
    antiword = shutil.which("antiword")
    if not antiword:
        logger.warning("antiword not installed; skipping legacy .doc attachment")
        return ""
    with tempfile.NamedTemporaryFile(suffix=".doc", delete=False) as tmp:
        tmp.write(data)
        path = tmp.name
    try:
        result = subprocess.run(
            [antiword, path],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=30,
        )
        if result.returncode != 0:
            logger.error(f"antiword failed: {result.stderr.strip()[:200]}")
            return ""
        return result.stdout
    finally:
        os.unlink(path)


def _extract_txt(data: bytes) -> str:
    encoding = chardet.detect(data[:50000]).get("encoding") or "utf-8"
    return data.decode(encoding, errors="replace")


_EXTRACTORS = {
    ".pdf": _extract_pdf,
    ".docx": _extract_docx,
    ".doc": _extract_doc,
    ".txt": _extract_txt,
}


def decode_attachment_to_text(
    filename: str,
    data: bytes | str,
    max_chars: Optional[int] = None,
) -> str:
    """
    Decode a PDF / DOCX / DOC / TXT attachment to plain text.
    Unsupported, oversized or unreadable attachments yield "" (logged).
    """
    raw = _to_bytes(data)
    if len(raw) > settings.max_attachment_bytes:
        logger.warning(f"Attachment {filename!r} exceeds {settings.max_attachment_bytes} bytes; skipped")
        return ""

    file_type = _get_file_type(filename, raw)
    extractor = _EXTRACTORS.get(file_type)
    if extractor is None:
        logger.debug(f"Unsupported attachment type {file_type!r} for {filename!r}")
        return ""

    try:
        text = extractor(raw)
    except Exception as e:
        logger.error(f"Error reading attachment {filename!r}: {e}")
        return ""

    limit = max_chars or settings.max_attachment_chars
    return text[:limit] if len(text) > limit else text
