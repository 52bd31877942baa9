from pathlib import Path

import pytest

from kingfisher.content_type import ContentInspector, ContentType, inspect


def test_binary_vs_text():
    ins = ContentInspector()
    assert ins.inspect(bytes([0, 1, 2, 0, 0, 0, 5])) == ContentType.BINARY
    assert ins.inspect(b"Hello\nWorld") == ContentType.TEXT


def test_empty_is_text():
    assert inspect(b"") == ContentType.TEXT


def test_null_threshold():
    assert inspect(b"\x00" * 4 + b"a" * 20) == ContentType.TEXT
    assert inspect(b"\x00" * 5 + b"a" * 200) == ContentType.BINARY


def test_allowed_whitespace_controls_are_text():
    assert inspect(b"\n\r\t" * 10) == ContentType.TEXT


def test_control_ratio_threshold():
    assert inspect(b"\x01" * 3 + b"a" * 7) == ContentType.TEXT
    assert inspect(b"\x01" * 4 + b"a" * 6) == ContentType.BINARY


def test_custom_thresholds():
    strict = ContentInspector(max_null_bytes=0)
    assert strict.inspect(b"abc\x00def") == ContentType.BINARY


def test_mime_guess():
    ins = ContentInspector()
    assert ins.guess_mime_type(Path("a.md")) == "text/plain"
    assert ins.guess_mime_type(Path("img.png")) == "image/png"
    assert ins.guess_mime_type(Path("x.xyz")) is None


@pytest.mark.parametrize("name", ["noext", ".bashrc", "dir.d/file"])
def test_mime_guess_without_extension(name):
    assert ContentInspector().guess_mime_type(name) is None


def test_mime_guess_is_case_insensitive():
    assert ContentInspector().guess_mime_type("PHOTO.JPEG") == "image/jpeg"


def test_charset_guess():
    ins = ContentInspector()
    assert ins.guess_charset(b"ok") == "UTF-8"
    assert ins.guess_charset(bytes([0xFF, 0xFE, 0xFD])) is None


def test_language_guess():
    ins = ContentInspector()
    assert ins.guess_language(Path("main.rs"), b"") == "Rust"
    assert ins.guess_language(Path("x"), b"<?php echo; ?>") == "PHP"
    assert ins.guess_language(Path("run"), b"#!/bin/bash\necho hi") == "Shell"


def test_language_extension_wins_over_content():
    assert ContentInspector().guess_language("tool.py", b"package main") == "Python"


def test_language_content_markers():
    ins = ContentInspector()
    assert ins.guess_language("a", b"package main\nfunc main() {}") == "Go"
    assert ins.guess_language("a", b"public class Foo {}") == "Java"
    assert ins.guess_language("a", b"#!/usr/bin/env python3\n") == "Python"
    assert ins.guess_language("a", b"plain words") is None


def test_language_extension_case_insensitive():
    assert ContentInspector().guess_language("LIB.RS", b"") == "Rust"