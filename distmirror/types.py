from dataclasses import dataclass
from datetime import datetime

from distmirror.hashing import HashKind

# Content hash -> raw bytes. Owned by exactly one run at a time; only the
# acquirer writes to it, and never concurrently.
BlobCache = dict[str, bytes]


@dataclass(frozen=True)
class RawReference:
    """
    A tag or branch head as enumerated from the upstream repository, before
    any filtering.
    """

    name: str
    timestamp: datetime
    target: str
    is_tag: bool = True


@dataclass(frozen=True)
class CandidateReference:
    reference_name: str
    timestamp: datetime


@dataclass(frozen=True)
class ManifestEntry:
    content_hash: str
    relative_path: str
    hash_kind: HashKind


@dataclass(frozen=True)
class IgnoredSource:
    """
    A blob written into the tree that must be taken out again before the
    tree is committed downstream.
    """

    path: str
    hash_kind: HashKind
