# tests/unit/test_sanitize.py
"""Unit tests for identifier validation and path joining."""

from pathlib import Path

import pytest

from tool_exporter.validation import safe_join, sanitize_job_id, sanitize_tool_id


def test_job_id_accepts_hex_and_strips():
    assert sanitize_job_id("  0123456789abcdef0123456789abcdef ") == "0123456789abcdef0123456789abcdef"


@pytest.mark.parametrize("job_id", ["short", "has space 12345", "../../etc/passwd", "x" * 65])
def test_job_id_rejects_bad_values(job_id: str):
    with pytest.raises(ValueError, match="Invalid job ID"):
        sanitize_job_id(job_id)


@pytest.mark.parametrize("tool_id", ["contact-form", "Form_2", "a"])
def test_tool_id_accepts(tool_id: str):
    assert sanitize_tool_id(tool_id) == tool_id


@pytest.mark.parametrize("tool_id", ["", "-leading", "a/b", "a.b", "x" * 129])
def test_tool_id_rejects(tool_id: str):
    with pytest.raises(ValueError, match="Invalid tool ID"):
        sanitize_tool_id(tool_id)


def test_safe_join_inside_base(tmp_path: Path):
    assert safe_join(tmp_path, "public/assets/logo.png") == tmp_path.resolve() / "public" / "assets" / "logo.png"


@pytest.mark.parametrize("relative", ["", "/etc/passwd", "../escape", "a/../../escape"])
def test_safe_join_rejects_escapes(tmp_path: Path, relative: str):
    with pytest.raises(ValueError):
        safe_join(tmp_path, relative)


def test_safe_join_rejects_symlink_escape(tmp_path: Path):
    base = tmp_path / "base"
    base.mkdir()
    (base / "link").symlink_to(tmp_path)

    with pytest.raises(ValueError, match="escapes"):
        safe_join(base, "link/secret")
