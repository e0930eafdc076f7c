from __future__ import annotations

import json

import pytest

from contractdiff.cli import EXIT_BREAKING, EXIT_ERROR, EXIT_OK, main, resolve_git_diff_args
from contractdiff.contract.models import load_contract

V1_SOURCE = '''
MAX_RETRIES = 3


def connect(host: str) -> None:
    """Open a connection."""
'''

V2_SOURCE = '''
MAX_RETRIES = 3


def dial(host: str) -> None:
    """Open a connection."""
'''


@pytest.fixture
def contract_files(write_package, tmp_path):
    """Extract two versions of a package to JSON files and return their paths."""
    v1 = write_package({"api.py": V1_SOURCE}, name="v1/pkg")
    v2 = write_package({"api.py": V2_SOURCE}, name="v2/pkg")
    old_path = tmp_path / "old.json"
    new_path = tmp_path / "new.json"
    assert main(["extract", str(v1), "--version", "v1", "-o", str(old_path)]) == EXIT_OK
    assert main(["extract", str(v2), "--version", "v2", "-o", str(new_path)]) == EXIT_OK
    return old_path, new_path


def test_extract_writes_contract_file(contract_files):
    old_path, _ = contract_files

    contract = load_contract(old_path)

    assert contract.package_name == "pkg"
    assert contract.version == "v1"
    assert [f.name for f in contract.functions] == ["connect"]


def test_extract_to_stdout(write_package, capsys):
    package = write_package({"api.py": V1_SOURCE})

    assert main(["extract", str(package)]) == EXIT_OK

    payload = json.loads(capsys.readouterr().out)
    assert payload["package_name"] == "pkg"
    assert payload["constants"][0]["name"] == "MAX_RETRIES"


def test_compare_identical_contracts_exits_zero(contract_files, capsys):
    old_path, _ = contract_files

    code = main(["compare", str(old_path), str(old_path)])

    assert code == EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"]["has_breaking_changes"] is False


def test_compare_breaking_change_exits_one(contract_files, capsys):
    old_path, new_path = contract_files

    code = main(["compare", str(old_path), str(new_path), "--format", "text"])

    captured = capsys.readouterr()
    assert code == EXIT_BREAKING
    assert "- removed_function: connect - Function connect was removed" in captured.out
    assert "Breaking changes detected!" in captured.err


def test_compare_writes_report_file(contract_files, tmp_path, capsys):
    old_path, new_path = contract_files
    report = tmp_path / "report.md"

    code = main(["compare", str(old_path), str(new_path), "--format", "md", "-o", str(report)])

    assert code == EXIT_BREAKING
    assert report.read_text(encoding="utf-8").startswith("# API Contract Diff: pkg")
    assert f"Saved to {report}" in capsys.readouterr().out


def test_compare_unknown_format_exits_two(contract_files, capsys):
    old_path, new_path = contract_files

    code = main(["compare", str(old_path), str(new_path), "--format", "yaml"])

    assert code == EXIT_ERROR
    assert "unsupported output format" in capsys.readouterr().err


def test_compare_missing_contract_exits_two(tmp_path, capsys):
    code = main(["compare", str(tmp_path / "a.json"), str(tmp_path / "b.json")])

    assert code == EXIT_ERROR
    assert "contract file not found" in capsys.readouterr().err


def test_extract_empty_directory_exits_two(tmp_path, capsys):
    empty = tmp_path / "empty"
    empty.mkdir()

    assert main(["extract", str(empty)]) == EXIT_ERROR
    assert "no Python source files found" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# git-diff argument resolution
# ---------------------------------------------------------------------------


def _no_tag():
    raise AssertionError("latest tag should not be looked up")


@pytest.mark.parametrize(
    ("refs", "baseline", "expected"),
    [
        (["v1.0.0", "v1.1.0", "src/pkg"], "", ("v1.0.0", "v1.1.0", "src/pkg")),
        (["v1.0.0", "v1.1.0"], "", ("v1.0.0", "v1.1.0", ".")),
        (["v1.0.0"], "", ("v1.0.0", "", ".")),
        (["feature"], "v1.0.0", ("v1.0.0", "feature", ".")),
        (["./src/pkg"], "v1.0.0", ("v1.0.0", "", "./src/pkg")),
        ([], "v1.0.0", ("v1.0.0", "", ".")),
    ],
)
def test_resolve_git_diff_args(refs, baseline, expected):
    assert resolve_git_diff_args(refs, baseline, _no_tag) == expected


def test_resolve_git_diff_args_falls_back_to_latest_tag():
    assert resolve_git_diff_args(["/abs/pkg"], "", lambda: "v2.0.0") == ("v2.0.0", "", "/abs/pkg")
    assert resolve_git_diff_args([], "", lambda: "v2.0.0") == ("v2.0.0", "", ".")


def test_resolve_git_diff_args_rejects_extra_arguments():
    with pytest.raises(ValueError, match="too many arguments"):
        resolve_git_diff_args(["a", "b", "c", "d"], "", _no_tag)
