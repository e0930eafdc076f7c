"""
Human-readable rendering of contract diffs.

Module: report
Purpose: turn a ContractDiff into JSON, Markdown or plain text for the CLI.
Dependencies: contractdiff.contract.models
"""

from __future__ import annotations

from contractdiff.contract.models import AddedItem, ContractDiff, ModifiedItem
from contractdiff.errors import FormatError

FORMAT_JSON = "json"
FORMAT_MARKDOWN = "markdown"
FORMAT_TEXT = "text"

_FORMAT_ALIASES = {
    "json": FORMAT_JSON,
    "markdown": FORMAT_MARKDOWN,
    "md": FORMAT_MARKDOWN,
    "text": FORMAT_TEXT,
    "txt": FORMAT_TEXT,
}

SUPPORTED_FORMATS: tuple[str, ...] = tuple(_FORMAT_ALIASES)


def normalize_format(fmt: str) -> str:
    """
    Resolve a user-supplied format name.

    Raises:
        FormatError: the format is not supported
    """
    try:
        return _FORMAT_ALIASES[fmt.strip().lower()]
    except KeyError:
        supported = ", ".join(SUPPORTED_FORMATS)
        raise FormatError(f"unsupported output format: {fmt} (supported: {supported})") from None


def render_diff(diff: ContractDiff, fmt: str = FORMAT_JSON) -> str:
    resolved = normalize_format(fmt)
    if resolved == FORMAT_MARKDOWN:
        return render_markdown(diff)
    if resolved == FORMAT_TEXT:
        return render_text(diff)
    return diff.to_json() + "\n"


def _item_line(item: AddedItem | ModifiedItem, bold: bool) -> str:
    kind = f"**{item.type}**" if bold else item.type
    return f"- {kind}: {item.item} - {item.description}"


def render_markdown(diff: ContractDiff) -> str:
    lines = [f"# API Contract Diff: {diff.package_name}", ""]

    if diff.old_version or diff.new_version:
        lines.append("## Version Information")
        if diff.old_version:
            lines.append(f"- **Old Version**: {diff.old_version}")
        if diff.new_version:
            lines.append(f"- **New Version**: {diff.new_version}")
        lines.append("")

    summary = diff.summary
    lines += [
        "## Summary",
        "",
        f"- **Breaking Changes**: {summary.total_breaking_changes}",
        f"- **Additions**: {summary.total_additions}",
        f"- **Modifications**: {summary.total_modifications}",
    ]
    if summary.has_breaking_changes:
        lines += ["", "⚠️  **Warning: This update contains breaking changes!**"]
    lines.append("")

    if diff.breaking_changes:
        lines += ["## 🚨 Breaking Changes", ""]
        for change in diff.breaking_changes:
            lines += [f"### {change.type}: {change.item}", change.description, ""]
            if change.old_value:
                lines += ["**Old:**", "```python", change.old_value, "```", ""]
            if change.new_value:
                lines += ["**New:**", "```python", change.new_value, "```", ""]

    if diff.added_items:
        lines += ["## ➕ Additions", ""]
        lines += [_item_line(item, bold=True) for item in diff.added_items]
        lines.append("")

    if diff.modified_items:
        lines += ["## 📝 Modifications", ""]
        lines += [_item_line(item, bold=True) for item in diff.modified_items]
        lines.append("")

    return "\n".join(lines) + "\n"


def render_text(diff: ContractDiff) -> str:
    lines: list[str] = []
    if diff.summary.has_breaking_changes:
        lines += ["WARNING: Breaking changes detected!", ""]

    lines += [
        "=== API Contract Diff ===",
        f"Package: {diff.package_name}",
    ]
    if diff.old_version or diff.new_version:
        lines.append(f"Versions: {diff.old_version or '?'} -> {diff.new_version or '?'}")
    lines += [
        f"Breaking changes: {len(diff.breaking_changes)}",
        f"Added items: {len(diff.added_items)}",
        f"Modified items: {len(diff.modified_items)}",
        "",
    ]

    if diff.breaking_changes:
        lines.append("BREAKING CHANGES:")
        lines += [f"- {c.type}: {c.item} - {c.description}" for c in diff.breaking_changes]
        lines.append("")
    if diff.added_items:
        lines.append("ADDITIONS:")
        lines += [_item_line(item, bold=False) for item in diff.added_items]
        lines.append("")
    if diff.modified_items:
        lines.append("MODIFICATIONS:")
        lines += [_item_line(item, bold=False) for item in diff.modified_items]
        lines.append("")

    return "\n".join(lines)
