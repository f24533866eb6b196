import enum
from dataclasses import dataclass, field

from distmirror.types import BlobCache, CandidateReference, IgnoredSource
from distmirror.upstream import UpstreamRepository


class RunState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    REFERENCE_CHECKED_OUT = "reference-checked-out"
    MANIFEST_PROCESSED = "manifest-processed"
    NO_MANIFEST = "no-manifest"
    BLOBS_RECONCILED = "blobs-reconciled"
    POST_PROCESSED = "post-processed"


@dataclass
class RunContext:
    """
    Everything one in-flight package run owns.

    A context belongs to exactly one run and one working tree; nothing in
    it is safe to share with a concurrent run. Once a run fails the
    context is spent, and a new one must be made to try again.
    """

    repository: UpstreamRepository
    package: str
    references: list[CandidateReference] = field(default_factory=list)
    reference: str | None = None
    blob_cache: BlobCache = field(default_factory=dict)
    ignored_sources: list[IgnoredSource] = field(default_factory=list)
    state: RunState = RunState.UNINITIALIZED
