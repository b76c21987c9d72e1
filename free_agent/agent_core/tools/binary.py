"""Binary content detection and placeholder-safe rendering of tool results."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from .base import ToolName

BINARY_TOOLS = frozenset({ToolName.image_generation, ToolName.elevenlabs_tts})

_BASE64_HEAD = re.compile(r"^[A-Za-z0-9+/=]+$")
_DATA_URI = re.compile(r"^data:([\w.+-]+/[\w.+-]+)[;,]")

_TEXTUAL_MIME_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/javascript",
        "application/x-yaml",
        "application/yaml",
        "application/csv",
        "application/x-ndjson",
        "application/sql",
    }
)


@dataclass(frozen=True)
class BinaryInfo:
    mime_type: str
    size: int

    @property
    def summary(self) -> str:
        return binary_summary(self.mime_type, self.size)


def binary_summary(mime_type: str, size: int) -> str:
    return f"[Binary {mime_type} - {round(size / 1024)}KB]"


def is_textual_mime(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return True
    mime = mime_type.split(";", 1)[0].strip().lower()
    return mime.startswith("text/") or mime in _TEXTUAL_MIME_TYPES or mime.endswith(("+json", "+xml"))


def looks_like_binary_content(value: Any) -> bool:
    """Data URIs for media, or long strings whose head is pure base64."""
    if not isinstance(value, str) or not value:
        return False
    if value.startswith(("data:image/", "data:audio/", "data:video/", "data:application/")):
        return True
    return len(value) > 1000 and bool(_BASE64_HEAD.match(value[:100]))


def mime_from_data_uri(value: str) -> Optional[str]:
    match = _DATA_URI.match(value)
    return match.group(1) if match else None


def detect_binary(tool: ToolName, result: Any) -> Optional[BinaryInfo]:
    """Return ``BinaryInfo`` when ``result`` carries a binary payload."""
    if isinstance(result, dict):
        image = result.get("imageUrl")
        if tool in BINARY_TOOLS and isinstance(image, str) and image:
            return BinaryInfo(mime_type=str(result.get("mimeType") or "image/png"), size=len(image))

        audio = result.get("audioContent") or result.get("audioData")
        if tool in BINARY_TOOLS and isinstance(audio, str) and audio:
            mime = result.get("contentType") or result.get("mimeType") or "audio/mpeg"
            return BinaryInfo(mime_type=str(mime), size=len(audio))

        content = result.get("content")
        mime = result.get("mimeType")
        if isinstance(content, str):
            if mime and not is_textual_mime(str(mime)):
                return BinaryInfo(mime_type=str(mime), size=len(content))
            if looks_like_binary_content(content):
                return BinaryInfo(
                    mime_type=mime_from_data_uri(content) or "application/octet-stream",
                    size=len(content),
                )
        return None

    if looks_like_binary_content(result):
        return BinaryInfo(mime_type=mime_from_data_uri(result) or "application/octet-stream", size=len(result))
    return None


def render_result(result: Any) -> str:
    """Plain string rendering used for size checks and prompt excerpts."""
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, default=str)
