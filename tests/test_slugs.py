"""Tests for slug helpers."""

import pytest

from mdstore.slugs import slugify, unique_slug


@pytest.mark.parametrize("text,expected", [
    ("Hello World", "hello-world"),
    ("Hello, World! How's it going?", "hello-world-how-s-it-going"),
    ("Café au lait", "caf-au-lait"),
    ("already-clean", "already-clean"),
    ("hello---world", "hello-world"),
    ("  --Trim me--  ", "trim-me"),
    ("Release 2.0", "release-2-0"),
])
def test_slugify(text, expected):
    assert slugify(text) == expected


@pytest.mark.parametrize("text", ["", "@#$%^&*()", "---"])
def test_slugify_empty_result_is_untitled(text):
    assert slugify(text) == "untitled"


def test_unique_slug_no_collision():
    assert unique_slug("Hello World", lambda s: False) == "hello-world"


def test_unique_slug_with_collisions():
    existing = {"hello-world", "hello-world-2"}

    assert unique_slug("Hello World", existing.__contains__) == "hello-world-3"


def test_unique_slug_first_collision():
    assert unique_slug("test", {"test"}.__contains__) == "test-2"


def test_unique_slug_against_files(tmp_path):
    (tmp_path / "my-note.md").touch()

    slug = unique_slug("My Note", lambda s: (tmp_path / f"{s}.md").exists())

    assert slug == "my-note-2"
