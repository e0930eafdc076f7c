from __future__ import annotations

import json

import pytest

from contractdiff.contract.models import AddedItem, BreakingChange, ContractDiff, DiffSummary, ModifiedItem
from contractdiff.errors import FormatError
from contractdiff.report import normalize_format, render_diff


def _diff(**overrides) -> ContractDiff:
    data = {
        "package_name": "pkg",
        "old_version": "v1.0.0",
        "new_version": "v2.0.0",
        "breaking_changes": [
            BreakingChange(
                type="removed_function",
                item="connect",
                description="Function connect was removed",
                old_value="connect(host: str)",
            )
        ],
        "added_items": [AddedItem(type="function", item="dial", description="New function dial was added")],
        "modified_items": [
            ModifiedItem(
                type="constant_value",
                item="MAX_RETRIES",
                description="Constant MAX_RETRIES value changed",
                old_value="3",
                new_value="5",
            )
        ],
        "summary": DiffSummary(
            total_breaking_changes=1, total_additions=1, total_modifications=1, has_breaking_changes=True
        ),
    }
    data.update(overrides)
    return ContractDiff(**data)


@pytest.mark.parametrize(
    ("given", "expected"),
    [("json", "json"), ("md", "markdown"), ("Markdown", "markdown"), ("txt", "text"), (" text ", "text")],
)
def test_normalize_format_aliases(given, expected):
    assert normalize_format(given) == expected


def test_unknown_format_is_format_error():
    with pytest.raises(FormatError) as excinfo:
        render_diff(_diff(), "yaml")

    assert "unsupported output format: yaml" in str(excinfo.value)
    assert isinstance(excinfo.value, ValueError)


def test_json_output_parses_back():
    output = render_diff(_diff(), "json")

    payload = json.loads(output)
    assert payload["summary"]["has_breaking_changes"] is True
    assert payload["breaking_changes"][0]["item"] == "connect"
    assert output.endswith("\n")


def test_markdown_sections():
    output = render_diff(_diff(), "markdown")

    assert output.startswith("# API Contract Diff: pkg\n")
    assert "- **Old Version**: v1.0.0" in output
    assert "- **Breaking Changes**: 1" in output
    assert "**Warning: This update contains breaking changes!**" in output
    assert "### removed_function: connect" in output
    assert "```python\nconnect(host: str)\n```" in output
    assert "- **function**: dial - New function dial was added" in output
    assert "- **constant_value**: MAX_RETRIES - Constant MAX_RETRIES value changed" in output


def test_markdown_without_changes_has_no_change_sections():
    output = render_diff(
        _diff(old_version="", new_version="", breaking_changes=[], added_items=[], modified_items=[], summary=DiffSummary()),
        "md",
    )

    assert "Version Information" not in output
    assert "Warning" not in output
    assert "Breaking Changes\n" not in output
    assert "Additions\n" not in output


def test_text_output():
    output = render_diff(_diff(), "text")
    lines = output.splitlines()

    assert lines[0] == "WARNING: Breaking changes detected!"
    assert "=== API Contract Diff ===" in lines
    assert "Versions: v1.0.0 -> v2.0.0" in lines
    assert "Breaking changes: 1" in lines
    assert "- removed_function: connect - Function connect was removed" in lines
    assert "- function: dial - New function dial was added" in lines


def test_text_output_without_breaking_changes_has_no_warning():
    output = render_diff(_diff(breaking_changes=[], summary=DiffSummary(total_additions=1)), "txt")

    assert not output.startswith("WARNING")
    assert "BREAKING CHANGES:" not in output
    assert "ADDITIONS:" in output
