"""Heuristic content classification: text versus binary, MIME, charset, language."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


class ContentType(enum.Enum):
    """The kind of content detected."""

    BINARY = "binary"
    TEXT = "text"


_MIME_TYPES = {
    "txt": "text/plain",
    "md": "text/plain",
    "rst": "text/plain",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "json": "application/json",
    "xml": "application/xml",
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
}

_LANGUAGES = {
    "rs": "Rust",
    "py": "Python",
    "js": "JavaScript",
    "ts": "TypeScript",
    "java": "Java",
    "c": "C",
    "cpp": "C++",
    "cc": "C++",
    "cxx": "C++",
    "go": "Go",
    "rb": "Ruby",
    "php": "PHP",
    "cs": "C#",
    "kt": "Kotlin",
    "kts": "Kotlin",
    "scala": "Scala",
    "swift": "Swift",
    "sh": "Shell",
    "pl": "Perl",
    "lua": "Lua",
    "hs": "Haskell",
    "r": "R",
}

_CONTENT_MARKERS = (
    (("<?php",), "PHP"),
    (("package main",), "Go"),
    (("public class",), "Java"),
    (("#!/usr/bin/env bash", "#!/bin/bash"), "Shell"),
    (("#!/usr/bin/env python",), "Python"),
)

_ALLOWED_CONTROLS = frozenset(b"\n\r\t")


def _extension(path: PathLike) -> Optional[str]:
    name = os.path.basename(os.fspath(path))
    _, ext = os.path.splitext(name)
    return ext[1:].lower() if ext else None


@dataclass(frozen=True)
class ContentInspector:
    """Thresholds for text versus binary detection."""

    max_null_bytes: int = 4
    max_control_ratio: float = 0.3

    def inspect(self, data: bytes) -> ContentType:
        """Classify bytes as TEXT or BINARY."""
        if data.count(0) > self.max_null_bytes:
            return ContentType.BINARY
        controls = sum(1 for b in data if b < 32 and b not in _ALLOWED_CONTROLS)
        ratio = controls / len(data) if data else 0.0
        return ContentType.BINARY if ratio > self.max_control_ratio else ContentType.TEXT

    def guess_mime_type(self, path: PathLike) -> Optional[str]:
        """Guess a MIME type from the file extension, or None."""
        ext = _extension(path)
        return _MIME_TYPES.get(ext) if ext else None

    def guess_charset(self, data: bytes) -> Optional[str]:
        """Return "UTF-8" if the bytes decode as UTF-8, else None."""
        try:
            bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            return None
        return "UTF-8"

    def guess_language(self, path: PathLike, content: bytes) -> Optional[str]:
        """Guess a programming language by extension, then by content markers."""
        ext = _extension(path)
        if ext and ext in _LANGUAGES:
            return _LANGUAGES[ext]
        text = bytes(content).decode("utf-8", errors="replace")
        for markers, language in _CONTENT_MARKERS:
            if any(marker in text for marker in markers):
                return language
        return None


def inspect(data: bytes) -> ContentType:
    """Classify bytes with the default thresholds."""
    return ContentInspector().inspect(data)