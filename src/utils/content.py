"""Submitted content handling: format detection, decoding, text extraction.

Files arrive base64 encoded (optionally as a `data:` URL). The checking
service wants the raw base64 plus a declared content format; LLM providers
want plain text, so files are decoded and HTML is reduced to its readable
text first.

Requires: beautifulsoup4, lxml
"""

import base64
import binascii
import json
import re
from pathlib import PurePosixPath
from typing import Optional

# Extension → checking-service content format
CONTENT_FORMATS = {
    "json": "JSON",
    "xml": "XML",
    "html": "HTML",
    "htm": "HTML",
    "md": "MARKDOWN",
    "docx": "WORD_DOCX",
    "pdf": "PDF",
}
DEFAULT_FORMAT = "TEXT"
DEFAULT_REFERENCE = "document.txt"


def file_extension(file_name: Optional[str]) -> str:
    """Lower-case extension without the dot, "" when there is none."""
    if not file_name:
        return ""
    return PurePosixPath(file_name).suffix.lower().lstrip(".")


def strip_data_url(content: str) -> str:
    """Drop a `data:<mime>;base64,` prefix if present."""
    if "base64," in content:
        return content.split("base64,", 1)[1]
    return content


def decode_base64(content: str) -> bytes:
    """Decode base64 file content.

    Raises:
        ValueError: content is not valid base64
    """
    try:
        return base64.b64decode(strip_data_url(content).strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"File content is not valid base64: {e}") from e


def content_size(content: str, content_type: str) -> int:
    """Size in bytes of the document the user submitted."""
    if content_type == "file":
        payload = re.sub(r"\s+", "", strip_data_url(content))
        padding = payload.count("=", max(len(payload) - 2, 0))
        return max(len(payload) * 3 // 4 - padding, 0)
    return len(content.encode("utf-8"))


def infer_content_format(
    file_name: Optional[str],
    content: str = "",
    content_type: str = "text",
) -> tuple[str, str]:
    """Return (document reference, content format) for the checking service.

    The extension wins when there is one. Plain text that parses as a JSON
    object is declared as JSON.
    """
    extension = file_extension(file_name)
    if extension in CONTENT_FORMATS:
        return file_name, CONTENT_FORMATS[extension]

    if content_type == "text" and content.strip().startswith("{"):
        try:
            json.loads(content)
            return file_name or "document.json", "JSON"
        except json.JSONDecodeError:
            pass

    return file_name or DEFAULT_REFERENCE, DEFAULT_FORMAT


def html_to_text(html: str) -> str:
    """Extract readable text from HTML, dropping scripts, styles and chrome."""
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(html, "lxml")

    for tag in soup(["script", "style", "noscript", "svg", "iframe", "template"]):
        tag.decompose()

    target = soup.body if soup.body else soup
    text = target.get_text(separator="\n", strip=True)

    # Collapse runs of whitespace on each line, drop blank lines
    lines = [re.sub(r"[ \t]+", " ", line.strip()) for line in text.split("\n")]
    return "\n".join(line for line in lines if line)


def extract_text(content: str, content_type: str, file_name: Optional[str] = None) -> str:
    """Plain text for LLM analysis.

    Raises:
        ValueError: file content is not valid base64
    """
    text = content
    if content_type == "file":
        text = decode_base64(content).decode("utf-8", errors="replace")

    if file_extension(file_name) in ("html", "htm"):
        return html_to_text(text)
    return text
