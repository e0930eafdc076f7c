"""Version-control adapters - contracts at git references."""

from contractdiff.vcs.git import GitReferenceAdapter, TagInfo

__all__ = ["GitReferenceAdapter", "TagInfo"]
