"""HTTPS Git repository URLs without credentials, query or fragment."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlsplit

GIT_URL_ERROR_MESSAGE = (
    "only https URLs without credentials, query parameters, or fragment identifiers "
    "are supported"
)

_DOT = {".", "%2e"}
_DOT_DOT = {"..", ".%2e", "%2e.", "%2e%2e"}


class GitUrlError(ValueError):
    """Raised when a URL is not an acceptable Git URL."""

    def __init__(self, message: str = GIT_URL_ERROR_MESSAGE) -> None:
        super().__init__(message)


def _normalize_path(path: str) -> str:
    if not path:
        return "/"
    segments = path.lstrip("/").split("/") if path.startswith("/") else path.split("/")
    out = []
    trailing = False
    for segment in segments:
        lowered = segment.lower()
        if lowered in _DOT:
            trailing = True
        elif lowered in _DOT_DOT:
            if out:
                out.pop()
            trailing = True
        else:
            out.append(segment)
            trailing = False
    if trailing:
        out.append("")
    return "/" + "/".join(out)


@dataclass(frozen=True, order=True)
class GitUrl:
    """A normalised HTTPS URL for a Git repository."""

    url: str
    host: str = field(compare=False)
    port: Optional[int] = field(compare=False, default=None)
    path: str = field(compare=False, default="/")

    @classmethod
    def parse(cls, text: str) -> GitUrl:
        """Parse and validate a URL; raises `GitUrlError`."""
        text = text.strip()
        if "?" in text or "#" in text:
            raise GitUrlError()
        try:
            parts = urlsplit(text)
            port = parts.port
        except ValueError as exc:
            raise GitUrlError() from exc
        if parts.scheme != "https" or not parts.netloc.strip():
            raise GitUrlError()
        if parts.username or parts.password is not None:
            raise GitUrlError()
        host = (parts.hostname or "").lower()
        if not host:
            raise GitUrlError()
        if port == 443:
            port = None
        path = _normalize_path(parts.path)
        if any(segment == ".." for segment in path.split("/")):
            raise GitUrlError()
        try:
            is_ipv6 = isinstance(ipaddress.ip_address(host), ipaddress.IPv6Address)
        except ValueError:
            is_ipv6 = False
        netloc = f"[{host}]" if is_ipv6 else host
        if port is not None:
            netloc = f"{netloc}:{port}"
        return cls(url=f"https://{netloc}{path}", host=host, port=port, path=path)

    def segments(self) -> Tuple[str, ...]:
        return tuple(self.path.lstrip("/").split("/"))

    def to_path(self) -> Path:
        """Map the URL to a relative filesystem path: scheme/host[:port]/segments."""
        host = self.host if self.port is None else f"{self.host}:{self.port}"
        return Path("https", host, *(s for s in self.segments() if s))

    def as_str(self) -> str:
        return self.url

    def __str__(self) -> str:
        return self.url