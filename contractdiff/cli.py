"""
contractdiff command line.

Usage:
    contractdiff extract mypkg -o contract.json
    contractdiff extract ./src/mypkg --include-private
    contractdiff compare old.json new.json --format markdown
    contractdiff git-diff v1.0.0 v1.1.0 src/mypkg
    contractdiff git-diff --baseline v1.0.0 ./src/mypkg
    contractdiff tags

Exit codes:
    0  no breaking changes
    1  breaking changes detected
    2  usage or runtime error
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

EXIT_OK = 0
EXIT_BREAKING = 1
EXIT_ERROR = 2


def _add_output_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-o", "--output", help="Output file (default: stdout)")


def _add_verbose_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")


def _add_differ_arguments(parser: argparse.ArgumentParser, default_format: str) -> None:
    parser.add_argument(
        "--format",
        default=default_format,
        help="Output format: json, markdown, text (default: %(default)s)",
    )
    parser.add_argument(
        "--ignore-positions",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Ignore source position changes",
    )
    parser.add_argument(
        "--ignore-comments",
        action="store_true",
        help="Ignore documentation comment changes",
    )


def build_parser() -> argparse.ArgumentParser:
    from contractdiff.config import DEFAULT_VERSION_PATTERN

    parser = argparse.ArgumentParser(
        prog="contractdiff",
        description="Extract public API contracts from Python packages and detect breaking changes",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Extract the API contract of a package")
    extract.add_argument("target", help="Source directory or importable module path")
    extract.add_argument("--include-private", action="store_true", help="Include underscore-prefixed names")
    extract.add_argument("--include-tests", action="store_true", help="Include test modules")
    extract.add_argument("--include-internal", action="store_true", help="Include internal modules")
    extract.add_argument("--version", dest="contract_version", default="", help="Version label to record")
    _add_output_argument(extract)
    _add_verbose_argument(extract)

    compare = subparsers.add_parser("compare", help="Compare two saved API contracts")
    compare.add_argument("old_contract")
    compare.add_argument("new_contract")
    _add_differ_arguments(compare, default_format="json")
    _add_output_argument(compare)
    _add_verbose_argument(compare)

    git_diff = subparsers.add_parser("git-diff", help="Compare API contracts between git references")
    git_diff.add_argument("refs", nargs="*", metavar="ARG", help="[old-ref] [new-ref] [package-path]")
    git_diff.add_argument(
        "--baseline", default="", help="Baseline reference; with one ref, compares against the working tree"
    )
    git_diff.add_argument("--version-pattern", default=DEFAULT_VERSION_PATTERN, help="Pattern for version tags")
    git_diff.add_argument("--repo", default=".", help="Repository path (default: current directory)")
    _add_differ_arguments(git_diff, default_format="markdown")
    _add_output_argument(git_diff)
    _add_verbose_argument(git_diff)

    tags = subparsers.add_parser("tags", help="List version tags available for comparison")
    tags.add_argument("repo", nargs="?", default=".", help="Repository path (default: current directory)")
    tags.add_argument("--pattern", default=DEFAULT_VERSION_PATTERN, help="Pattern for version tags")
    _add_verbose_argument(tags)

    return parser


def _emit(text: str, output: str | None, verbose: bool) -> None:
    """
    Print ``text`` or write it to ``output``.

    Side Effects:
        - Writes to stdout, or creates/overwrites ``output``
    """
    if not output:
        sys.stdout.write(text)
        return
    if verbose:
        print(f"Saving to: {output}", file=sys.stderr)
    Path(output).write_text(text, encoding="utf-8")
    print(f"Saved to {output}")


def _exit_code_for(diff) -> int:
    if diff.summary.has_breaking_changes:
        print("Breaking changes detected!", file=sys.stderr)
        return EXIT_BREAKING
    return EXIT_OK


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_extract(args: argparse.Namespace) -> int:
    from contractdiff.contract.builder import ExtractorOptions
    from contractdiff.contract.extractor import Extractor

    options = ExtractorOptions(
        include_private=args.include_private,
        include_tests=args.include_tests,
        include_internal=args.include_internal,
    )
    if args.verbose:
        print(f"Extracting API contract from: {args.target}", file=sys.stderr)

    contract = Extractor(options).extract(args.target)
    if args.contract_version:
        contract = contract.with_version(args.contract_version)

    if args.output:
        contract.save(args.output)
        print(f"API contract saved to {args.output}")
    else:
        sys.stdout.write(contract.to_json() + "\n")
    return EXIT_OK


def _differ_from(args: argparse.Namespace):
    from contractdiff.contract.differ import Differ, DifferOptions

    return Differ(DifferOptions(ignore_positions=args.ignore_positions, ignore_comments=args.ignore_comments))


def cmd_compare(args: argparse.Namespace) -> int:
    from contractdiff.contract.models import load_contract
    from contractdiff.report import normalize_format, render_diff

    fmt = normalize_format(args.format)
    if args.verbose:
        print(f"Comparing {args.old_contract} -> {args.new_contract}", file=sys.stderr)

    diff = _differ_from(args).compare(load_contract(args.old_contract), load_contract(args.new_contract))
    _emit(render_diff(diff, fmt), args.output, args.verbose)
    return _exit_code_for(diff)


def _looks_like_path(arg: str) -> bool:
    return arg.startswith((".", "/"))


def resolve_git_diff_args(
    refs: list[str], baseline: str, latest_tag
) -> tuple[str, str, str]:
    """
    Map positional git-diff arguments to ``(old_ref, new_ref, package_path)``.

    An empty ``new_ref`` means the working tree. ``latest_tag`` is called
    only when no baseline is given and one is needed.
    """
    if len(refs) > 3:
        raise ValueError("too many arguments")
    if len(refs) == 3:
        return refs[0], refs[1], refs[2]
    if len(refs) == 2:
        return refs[0], refs[1], "."
    if len(refs) == 1 and not _looks_like_path(refs[0]):
        if baseline:
            return baseline, refs[0], "."
        return refs[0], "", "."
    package_path = refs[0] if refs else "."
    return baseline or latest_tag(), "", package_path


def cmd_git_diff(args: argparse.Namespace) -> int:
    from contractdiff.contract.extractor import Extractor
    from contractdiff.report import normalize_format, render_diff
    from contractdiff.vcs.git import GitReferenceAdapter

    fmt = normalize_format(args.format)
    adapter = GitReferenceAdapter(args.repo)
    old_ref, new_ref, package_path = resolve_git_diff_args(
        args.refs, args.baseline, lambda: adapter.find_latest_version_tag(args.version_pattern)
    )
    if args.verbose:
        print(f"Comparing: {old_ref} -> {new_ref or 'working tree'} (package: {package_path})", file=sys.stderr)

    extractor = Extractor()
    differ = _differ_from(args)
    if new_ref:
        diff = adapter.compare_refs(old_ref, new_ref, package_path, extractor, differ)
    else:
        diff = adapter.compare_ref_with_worktree(old_ref, package_path, extractor, differ)

    _emit(render_diff(diff, fmt), args.output, args.verbose)
    return _exit_code_for(diff)


def cmd_tags(args: argparse.Namespace) -> int:
    from contractdiff.vcs.git import GitReferenceAdapter

    adapter = GitReferenceAdapter(args.repo)
    tags = adapter.list_version_tags(args.pattern)
    if not tags:
        print(f"No version tags found matching pattern: {args.pattern}")
        return EXIT_OK

    print(f"Available version tags ({len(tags)} found):\n")
    for tag in tags:
        if args.verbose:
            print(f"  {tag.name} ({tag.date:%Y-%m-%d}) - {tag.commit[:8]}\n    {tag.message}")
        else:
            print(f"  {tag.name}")
    return EXIT_OK


_COMMANDS = {
    "extract": cmd_extract,
    "compare": cmd_compare,
    "git-diff": cmd_git_diff,
    "tags": cmd_tags,
}


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    # Import every module first so that each module logger exists before the level is applied
    import contractdiff.report
    import contractdiff.vcs.git  # noqa: F401
    from contractdiff.errors import ContractError
    from contractdiff.observability.logging import set_log_level

    set_log_level("DEBUG" if args.verbose else os.getenv("CONTRACTDIFF_LOG_LEVEL", "WARNING"))
    try:
        return _COMMANDS[args.command](args)
    except (ContractError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
