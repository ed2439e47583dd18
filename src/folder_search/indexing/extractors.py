"""Text and metadata extraction for common document formats.

The extractor picks a handler from the filename hint's suffix and passes it
the open stream, so no format reads more than it needs. Handlers
return body text plus a metadata multi-map using the field vocabulary of
``folder_search.search.schemas`` (``title``, ``creator``, ``from`` ...).
Every failure surfaces as ``ExtractionError``.
"""

import email
import email.policy
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from html.parser import HTMLParser
from io import BytesIO
from pathlib import PurePosixPath
from typing import BinaryIO

import docx
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from folder_search.core.exceptions import ExtractionError
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)

SNIFF_SIZE = 8192


@dataclass
class ExtractedContent:
    """Result of a successful extraction.

    Attributes:
        text: Body text, unbounded.
        metadata: Field name to ordered list of values.
    """

    text: str
    metadata: dict[str, list[str]] = field(default_factory=dict)

    def add(self, name: str, value: object) -> None:
        """Append a metadata value, skipping empty ones."""
        if value is None:
            return
        if isinstance(value, datetime):
            value = value.isoformat()
        text = str(value).strip()
        if text:
            self.metadata.setdefault(name, []).append(text)


class _TextCollector(HTMLParser):
    """Collects visible text and the document title from HTML."""

    SKIPPED = {"script", "style", "noscript", "template"}
    VOID = {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "source", "wbr"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self.title: list[str] = []
        self.meta: dict[str, str] = {}
        self._stack: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "meta":
            values = dict(attrs)
            name = (values.get("name") or "").lower()
            if name and values.get("content"):
                self.meta[name] = values["content"] or ""
            return
        if tag not in self.VOID:
            self._stack.append(tag)

    def handle_endtag(self, tag: str) -> None:
        if tag in self._stack:
            while self._stack and self._stack.pop() != tag:
                pass

    def handle_data(self, data: str) -> None:
        if any(t in self.SKIPPED for t in self._stack):
            return
        if self._stack and self._stack[-1] == "title":
            self.title.append(data)
            return
        if data.strip():
            self.parts.append(data.strip())


def _decode(raw: bytes, charset: str | None = None) -> str:
    for encoding in (charset, "utf-8"):
        if not encoding:
            continue
        try:
            return raw.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    return raw.decode("latin-1")


def extract_plain(stream: BinaryIO, name: str) -> ExtractedContent:
    # Binary files are rejected before the rest of the file is read
    head = stream.read(SNIFF_SIZE)
    if b"\x00" in head:
        raise ExtractionError(name, "unsupported binary format")
    return ExtractedContent(text=_decode(head + stream.read()))


def extract_html(stream: BinaryIO, name: str) -> ExtractedContent:
    collector = _TextCollector()
    collector.feed(_decode(stream.read()))
    collector.close()
    result = ExtractedContent(text="\n".join(collector.parts))
    result.add("title", " ".join(collector.title))
    result.add("description", collector.meta.get("description"))
    result.add("keywords", collector.meta.get("keywords"))
    result.add("creator", collector.meta.get("author"))
    return result


def extract_pdf(stream: BinaryIO, name: str) -> ExtractedContent:
    reader = PdfReader(stream)
    pages = [page.extract_text() or "" for page in reader.pages]
    result = ExtractedContent(text="\n".join(pages))
    info = reader.metadata
    if info is not None:
        result.add("title", info.title)
        result.add("creator", info.author)
        result.add("creatortool", info.creator)
        result.add("description", info.subject)
        result.add("keywords", info.get("/Keywords"))
        result.add("created", info.creation_date)
        result.add("modified", info.modification_date)
    return result


def extract_docx(stream: BinaryIO, name: str) -> ExtractedContent:
    document = docx.Document(stream)
    result = ExtractedContent(text="\n".join(p.text for p in document.paragraphs))
    props = document.core_properties
    result.add("title", props.title)
    result.add("creator", props.author)
    result.add("modifier", props.last_modified_by)
    result.add("description", props.subject)
    result.add("keywords", props.keywords)
    result.add("comments", props.comments)
    result.add("language", props.language)
    result.add("identifier", props.identifier)
    result.add("created", props.created)
    result.add("modified", props.modified)
    result.add("printdate", props.last_printed)
    return result


def extract_eml(stream: BinaryIO, name: str) -> ExtractedContent:
    message = email.message_from_binary_file(stream, policy=email.policy.default)
    if not isinstance(message, EmailMessage):
        raise ExtractionError(name, "not a MIME message")

    body = message.get_body(preferencelist=("plain", "html"))
    text = ""
    if body is not None:
        text = body.get_content()
        if body.get_content_subtype() == "html":
            text = extract_html(BytesIO(text.encode("utf-8")), name).text

    result = ExtractedContent(text=text)
    result.add("title", message.get("subject"))
    result.add("from", message.get("from"))
    for header in ("to", "cc", "bcc"):
        for address in message.get_all(header) or []:
            result.add(header, address)
            result.add("recipient", address)
    result.add("created", message.get("date"))
    return result


class ContentExtractor:
    """Dispatches extraction to a handler chosen by file suffix."""

    def __init__(self) -> None:
        self._handlers: dict[str, Callable[[BinaryIO, str], ExtractedContent]] = {
            ".pdf": extract_pdf,
            ".docx": extract_docx,
            ".eml": extract_eml,
            ".html": extract_html,
            ".htm": extract_html,
        }

    def register(self, suffix: str, handler: Callable[[BinaryIO, str], ExtractedContent]) -> None:
        """Register or replace the handler for a suffix (e.g. ``".md"``)."""
        self._handlers[suffix.lower()] = handler

    @property
    def suffixes(self) -> list[str]:
        return sorted(self._handlers)

    def extract(self, stream: BinaryIO, filename_hint: str) -> ExtractedContent:
        """Extract body text and metadata.

        Args:
            stream: Binary stream positioned at the start of the file.
            filename_hint: Relative path used to pick the format.

        Returns:
            Extracted text and metadata, including a ``format`` value.

        Raises:
            ExtractionError: On I/O errors, malformed or unsupported content.
        """
        suffix = PurePosixPath(filename_hint).suffix.lower()
        handler = self._handlers.get(suffix, extract_plain)
        try:
            result = handler(stream, filename_hint)
        except ExtractionError:
            raise
        except (OSError, ValueError, KeyError, PyPdfError) as e:
            raise ExtractionError(filename_hint, str(e) or type(e).__name__, cause=e) from e
        except Exception as e:
            # Third-party parsers raise a wide variety of errors on corrupt input
            logger.debug("Extractor raised unexpected error", path=filename_hint, error=repr(e))
            raise ExtractionError(filename_hint, repr(e), cause=e) from e

        mime, _ = mimetypes.guess_type(filename_hint, strict=False)
        result.metadata.setdefault("format", [mime or "text/plain"])
        return result
