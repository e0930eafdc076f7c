"""contractdiff - extract public API contracts from Python packages and flag breaking changes"""

from __future__ import annotations

__version__ = "0.1.0"


# Lazy imports so that `import contractdiff` stays cheap for the CLI and config
def __getattr__(name: str):
    """
    Lazy imports to avoid loading pydantic models when only the config or errors are needed.
    """
    if name in ("Contract", "ContractDiff", "load_contract", "load_diff"):
        from contractdiff.contract import models

        return getattr(models, name)

    if name in ("Extractor", "ExtractorOptions"):
        from contractdiff.contract import builder, extractor

        if name == "Extractor":
            return extractor.Extractor
        return builder.ExtractorOptions

    if name in ("Differ", "DifferOptions"):
        from contractdiff.contract import differ

        return getattr(differ, name)

    if name == "GitReferenceAdapter":
        from contractdiff.vcs.git import GitReferenceAdapter

        return GitReferenceAdapter

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Contract",
    "ContractDiff",
    "Differ",
    "DifferOptions",
    "Extractor",
    "ExtractorOptions",
    "GitReferenceAdapter",
    "load_contract",
    "load_diff",
]
