# tests/unit/test_snapshots.py
"""Unit tests for snapshot sources."""

import json
from pathlib import Path

import pytest
import yaml

from conftest import make_form
from tool_exporter.errors import InvalidSnapshot
from tool_exporter.models.jobs import ToolType
from tool_exporter.snapshots.source import DirectorySnapshotSource, InMemorySnapshotSource


def _write_tool(root: Path, tool_id: str, manifest: dict, submissions=None, assets=None) -> Path:
    tool_dir = root / tool_id
    tool_dir.mkdir(parents=True)
    (tool_dir / "tool.yaml").write_text(yaml.safe_dump(manifest))
    if submissions is not None:
        (tool_dir / "submissions.json").write_text(json.dumps(submissions))
    for name, content in (assets or {}).items():
        path = tool_dir / "assets" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return tool_dir


@pytest.mark.asyncio
async def test_directory_source_loads_tool(tmp_path: Path):
    tool_dir = _write_tool(
        tmp_path,
        "contact-form",
        {
            "tool_type": "forms",
            "name": "Contact form",
            "status": "draft",
            "schema": {"fields": [{"name": "email"}]},
            "theme": {"colors": {"primary": "#fff"}},
            "assets": ["logo.png"],
            "metadata": {"owner": "team-a"},
        },
        submissions=[{"email": "a@example.com"}],
        assets={"logo.png": b"png"},
    )

    snapshot = await DirectorySnapshotSource(tmp_path).get_snapshot("contact-form")

    assert snapshot.tool_id == "contact-form"
    assert snapshot.kind == ToolType.FORMS
    assert snapshot.status == "draft"
    assert snapshot.schema == {"fields": [{"name": "email"}]}
    assert snapshot.submissions == [{"email": "a@example.com"}]
    assert snapshot.assets == {"logo.png": tool_dir / "assets" / "logo.png"}
    assert snapshot.metadata == {"owner": "team-a"}


@pytest.mark.asyncio
async def test_directory_source_defaults(tmp_path: Path):
    _write_tool(tmp_path, "brand", {"tool_type": "themes"})

    snapshot = await DirectorySnapshotSource(tmp_path).get_snapshot("brand")

    assert snapshot.name == "brand"
    assert snapshot.status == "published"
    assert snapshot.submissions == []
    assert snapshot.assets == {}


@pytest.mark.asyncio
async def test_unknown_type_has_no_kind(tmp_path: Path):
    _write_tool(tmp_path, "quiz", {"tool_type": "quizzes"})

    snapshot = await DirectorySnapshotSource(tmp_path).get_snapshot("quiz")

    assert snapshot.tool_type == "quizzes"
    assert snapshot.kind is None


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_id", ["missing", "../outside", ""])
async def test_directory_source_missing_or_outside_root(tmp_path: Path, tool_id: str):
    root = tmp_path / "tools"
    root.mkdir()
    _write_tool(tmp_path, "outside", {"tool_type": "forms"})

    assert await DirectorySnapshotSource(root).get_snapshot(tool_id) is None


@pytest.mark.asyncio
async def test_in_memory_source_returns_copies(tmp_path: Path):
    source = InMemorySnapshotSource([make_form(tmp_path)])

    first = await source.get_snapshot("contact-form")
    first.schema["fields"].append({"name": "injected"})
    second = await source.get_snapshot("contact-form")

    assert len(second.schema["fields"]) == 1


@pytest.mark.asyncio
async def test_in_memory_source_remove(tmp_path: Path):
    source = InMemorySnapshotSource([make_form(tmp_path)])
    source.remove("contact-form")

    assert await source.get_snapshot("contact-form") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["../escape.png", "nested/../../escape.png", "C:\\temp\\x.png", ""])
async def test_directory_source_rejects_asset_names_outside_assets(tmp_path: Path, name: str):
    _write_tool(tmp_path, "f", {"tool_type": "forms", "assets": [name]})

    with pytest.raises(InvalidSnapshot):
        await DirectorySnapshotSource(tmp_path).get_snapshot("f")


@pytest.mark.asyncio
async def test_directory_source_rejects_absolute_asset_name(tmp_path: Path):
    secret = tmp_path / "secret.txt"
    secret.write_text("TOP SECRET")
    _write_tool(tmp_path, "f", {"tool_type": "forms", "assets": [str(secret)]})

    with pytest.raises(InvalidSnapshot, match="Invalid asset name"):
        await DirectorySnapshotSource(tmp_path).get_snapshot("f")


@pytest.mark.asyncio
async def test_directory_source_rejects_symlinked_asset_outside_tool(tmp_path: Path):
    secret = tmp_path / "secret.txt"
    secret.write_text("TOP SECRET")
    tool_dir = _write_tool(tmp_path, "f", {"tool_type": "forms", "assets": ["logo.png"]})
    (tool_dir / "assets").mkdir()
    (tool_dir / "assets" / "logo.png").symlink_to(secret)

    with pytest.raises(InvalidSnapshot, match="escapes"):
        await DirectorySnapshotSource(tmp_path).get_snapshot("f")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "manifest_text, reason",
    [
        ("tool_type: forms\nschema: just a string\n", "'schema' must be a mapping"),
        ("tool_type: forms\ntheme: [red, blue]\n", "'theme' must be a mapping"),
        ("- forms\n- workflows\n", "must contain a mapping"),
        ("tool_type: forms\nschema: {fields: [unclosed\n", "not valid YAML"),
        ("tool_type: forms\nassets: logo.png\n", "'assets' must be a list"),
        ("tool_type: forms\nname: {first: a}\n", "'name' must be a string"),
    ],
)
async def test_directory_source_rejects_malformed_manifest(
    tmp_path: Path, manifest_text: str, reason: str
):
    tool_dir = tmp_path / "f"
    tool_dir.mkdir()
    (tool_dir / "tool.yaml").write_text(manifest_text)

    with pytest.raises(InvalidSnapshot) as exc_info:
        await DirectorySnapshotSource(tmp_path).get_snapshot("f")

    assert exc_info.value.code == "invalid_snapshot"
    assert reason in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["{not json", '{"email": "a@example.com"}', "[1, 2]"])
async def test_directory_source_rejects_malformed_submissions(tmp_path: Path, content: str):
    tool_dir = _write_tool(tmp_path, "f", {"tool_type": "forms"})
    (tool_dir / "submissions.json").write_text(content)

    with pytest.raises(InvalidSnapshot):
        await DirectorySnapshotSource(tmp_path).get_snapshot("f")
