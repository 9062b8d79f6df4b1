"""Turn fetched mailbox messages into EmailContent and attachment references."""
import base64
import logging
import re
from email.header import decode_header, make_header
from typing import Optional

from .collaborators import AttachmentRef
from .schemas import EmailContent

logger = logging.getLogger(__name__)

_MIME_WORD_RE = re.compile(r"=\?[^?]+\?[BQbq]\?[^?]*\?=")
_QUOTE_HEADER_RE = re.compile(r"^\s*On\s.+wrote:\s*$", re.M)
_RESUME_LINK_RE = re.compile(r"Resume:\s*(.*?)(?:\s*Cover\s+letter:|$)", re.I | re.S)
_URL_RE = re.compile(r"https?://\S+", re.I)


def is_mime_encoded(subject: str) -> bool:
    return bool(_MIME_WORD_RE.search(subject or ""))


def decode_mime_subject(subject: Optional[str]) -> str:
    """Decode RFC 2047 encoded-words (=?UTF-8?B?...?= / Q); plain subjects pass through."""
    if not subject or not is_mime_encoded(subject):
        return subject or ""
    try:
        return str(make_header(decode_header(subject)))
    except (UnicodeDecodeError, LookupError, ValueError) as e:
        logger.error(f"Error decoding MIME subject {subject!r}: {e}")
        return subject


def encode_mime_subject(subject: Optional[str]) -> str:
    """B-encode non-ASCII subjects for outbound replies."""
    if not subject:
        return ""
    if subject.isascii():
        return subject
    encoded = base64.b64encode(subject.encode("utf-8")).decode("ascii")
    return f"=?UTF-8?B?{encoded}?="


def strip_quoted_reply(body: Optional[str]) -> str:
    """Drop the quoted previous message ("On <date> <x> wrote:" and "> " lines)."""
    text = body or ""
    m = _QUOTE_HEADER_RE.search(text)
    if m:
        text = text[: m.start()]
    lines = [ln for ln in text.splitlines() if not ln.lstrip().startswith(">")]
    return "\n".join(lines).strip()


def extract_resume_link(body: Optional[str]) -> Optional[str]:
    """
    Structured "Resume: <url>" field as sent by job boards, up to an optional
    "Cover letter:" field. Returns the URL or None.
    """
    m = _RESUME_LINK_RE.search(body or "")
    if not m:
        return None
    url = _URL_RE.search(m.group(1))
    return url.group(0).rstrip(").,;>") if url else None


def _get_headers(message: dict) -> dict:
    return {h["name"].lower(): h["value"] for h in message.get("payload", {}).get("headers", [])}


def _decode_data(data: str) -> str:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4)).decode("utf-8", errors="replace")


def _get_body(payload: dict) -> str:
    """Prefer text/plain anywhere in the tree; fall back to tag-stripped text/html."""
    if payload.get("mimeType", "").startswith("text/plain") and payload.get("body", {}).get("data"):
        return _decode_data(payload["body"]["data"])
    html = ""
    for part in payload.get("parts", []) or []:
        if part.get("filename"):
            continue
        mime = part.get("mimeType", "")
        if mime == "text/plain" and part.get("body", {}).get("data"):
            return _decode_data(part["body"]["data"])
        if mime.startswith("multipart/"):
            nested = _get_body(part)
            if nested:
                return nested
        if mime == "text/html" and part.get("body", {}).get("data") and not html:
            html = re.sub(r"<[^>]+>", " ", _decode_data(part["body"]["data"]))
    if html:
        return html
    if not payload.get("parts") and payload.get("body", {}).get("data"):
        return _decode_data(payload["body"]["data"])
    return ""


def list_attachments(message: dict) -> list[AttachmentRef]:
    """Attachment references across all (nested) parts of a message."""
    refs: list[AttachmentRef] = []
    message_id = message.get("id")

    def walk(part: dict):
        body = part.get("body", {}) or {}
        if part.get("filename") and body.get("attachmentId"):
            refs.append(AttachmentRef(
                filename=part["filename"],
                attachment_id=body["attachmentId"],
                message_id=message_id,
            ))
        for child in part.get("parts", []) or []:
            walk(child)

    walk(message.get("payload", {}) or {})
    return refs


def message_to_email_content(message: dict, attachment_text: Optional[str] = None) -> EmailContent:
    """Subject (MIME-decoded) and reply-trimmed plain-text body of a fetched message."""
    headers = _get_headers(message)
    subject = decode_mime_subject(headers.get("subject", ""))
    body = strip_quoted_reply(_get_body(message.get("payload", {}) or {}))
    return EmailContent(subject=subject, body=body, attachment_text=attachment_text or None)
