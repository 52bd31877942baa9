"""Guessing MIME type, charset and language of content."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from kingfisher.content_type import ContentInspector

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class Guess:
    """The result of guessing what some content is."""

    mime_type: Optional[str] = None
    mime_params: Tuple[Tuple[str, str], ...] = ()
    language: Optional[str] = None

    def path_guess(self) -> Optional[str]:
        return self.mime_type

    def content_guess(self) -> Optional[str]:
        return self.language

    def essence_str(self) -> Optional[str]:
        return self.mime_type

    def get_param(self, param: str) -> Optional[str]:
        """Return the value of the first MIME parameter named `param`."""
        return next((value for name, value in self.mime_params if name == param), None)


@dataclass(frozen=True)
class Guesser:
    """Content guesser backed by a `ContentInspector`."""

    inspector: ContentInspector = field(default_factory=ContentInspector)

    def guess(self, data: bytes, path: Optional[PathLike] = None) -> Guess:
        """Guess what `data` is, optionally using the path it came from."""
        charset = self.inspector.guess_charset(data)
        params = (("charset", charset),) if charset is not None else ()
        if path is None:
            return Guess(mime_type="text/plain", mime_params=params)
        mime = self.inspector.guess_mime_type(path) or "application/octet-stream"
        return Guess(
            mime_type=mime,
            mime_params=params,
            language=self.inspector.guess_language(path, data),
        )