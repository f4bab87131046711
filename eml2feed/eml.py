"""
Reading archived feed messages from EML files.

Mail clients such as Thunderbird store feed articles as plain RFC 5322
messages; the article URL travels in the Content-Base header and the body
is either HTML or plain text.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from .errors import MessageError
from .models import Message

logger = logging.getLogger(__name__)

EML_SUFFIX = ".eml"


def _parse_date(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(str(value).strip())
    except (TypeError, ValueError, IndexError):
        return None


def _header(message: EmailMessage, name: str) -> str:
    try:
        value = message.get(name)
    except (TypeError, ValueError, IndexError):
        # policy.default parses dates on access and some interpreters raise on garbage
        return ""
    return str(value or "").strip()


def _received_date(message: EmailMessage) -> Optional[datetime]:
    """Date of the most recent Received hop (the topmost header)."""
    for received in message.get_all("Received") or []:
        _, sep, date_part = str(received).rpartition(";")
        if sep:
            parsed = _parse_date(date_part)
            if parsed is not None:
                return parsed
    return None


def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        # Unknown or lying charset declaration
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _keywords(value) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(k.strip() for k in str(value).split(",") if k.strip())


def parse_message(raw: bytes) -> Message:
    """Parse raw EML bytes into a Message."""
    parsed = BytesParser(policy=policy.default).parsebytes(raw)

    html = ""
    text = ""
    for part in parsed.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        content_type = part.get_content_type()
        if content_type == "text/html" and not html:
            html = _part_text(part)
        elif content_type == "text/plain" and not text:
            text = _part_text(part)

    return Message(
        subject=_header(parsed, "Subject"),
        sender=_header(parsed, "From"),
        html=html,
        text=text,
        message_id=_header(parsed, "Message-ID").strip("<>"),
        content_base=_header(parsed, "Content-Base"),
        date=_parse_date(_header(parsed, "Date")),
        received_date=_received_date(parsed),
        keywords=_keywords(_header(parsed, "Keywords")),
    )


def load_message(path: Union[str, Path]) -> Message:
    """
    Read and parse one EML file.

    Raises:
        MessageError: If the file cannot be read or parsed
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise MessageError(f"cannot read file: {e}") from e

    try:
        return parse_message(raw)
    except Exception as e:
        raise MessageError(f"cannot parse EML: {e}") from e


def is_eml_file(path: Union[str, Path]) -> bool:
    return str(path).lower().endswith(EML_SUFFIX)


def iter_message_files(path: Union[str, Path]) -> Iterator[Path]:
    """
    Yield message files under path.

    A file path is yielded as is. Directories are walked recursively in
    sorted order and only *.eml files are yielded; unreadable
    subdirectories are logged and skipped.
    """
    path = Path(path)
    if not path.is_dir():
        yield path
        return

    def _on_error(err: OSError) -> None:
        logger.warning(f"FS Error: {err.filename}: {err}")

    for root, dirs, files in os.walk(path, onerror=_on_error):
        dirs.sort()
        for name in sorted(files):
            if is_eml_file(name):
                yield Path(root) / name
