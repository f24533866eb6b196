import logging
import re
from collections.abc import Iterable

from distmirror.constants import HEADS_PREFIX, TAGS_PREFIX, ZERO_OID
from distmirror.types import CandidateReference, RawReference

logger = logging.getLogger(__name__)

# refs/tags/imports/<branch>/<name>-<release>, with "." also accepted as the
# branch separator (e.g. imports/c9s1.bash-3).
TAG_IMPORT_RE = re.compile(
    r"^refs/tags/(?P<tag>imports/(?P<branch>[^/.]+)[/.](?P<name>.+)-(?P<release>[^-/]+))$"
)


def import_prefix(prefix: str, version: int) -> str:
    return f"imports/{prefix}{version}"


def _newer(candidate: CandidateReference, existing: CandidateReference) -> bool:
    """
    Latest timestamp wins; identical timestamps go to the greater reference
    name so the result never depends on enumeration order.
    """
    return (candidate.timestamp, candidate.reference_name) > (
        existing.timestamp,
        existing.reference_name,
    )


def resolve_latest(
    tags: Iterable[RawReference],
    heads: Iterable[RawReference],
    prefix: str,
    version: int,
) -> list[CandidateReference]:
    """
    Ranks upstream import references for one distribution version.

    Annotated tags under imports/<prefix><version> are grouped by the branch
    they were imported on and only the newest of each group is kept. If no
    tag qualifies, the remote branch heads for that version are used instead.
    The result is ordered oldest first.
    """
    wanted = import_prefix(prefix, version)
    latest: dict[str, CandidateReference] = {}

    for tag in tags:
        if tag.target == ZERO_OID:
            continue
        tag_name = tag.name.removeprefix(TAGS_PREFIX)
        if not tag_name.startswith(wanted):
            continue
        match = TAG_IMPORT_RE.match(f"{TAGS_PREFIX}{tag_name}")
        if match is None:
            logger.debug(f"Skipping tag {tag_name} (not an import tag)")
            continue
        candidate = CandidateReference(
            reference_name=f"{TAGS_PREFIX}{tag_name}", timestamp=tag.timestamp
        )
        key = match.group("branch")
        existing = latest.get(key)
        if existing is not None and not _newer(candidate, existing):
            continue
        latest[key] = candidate

    if not latest:
        logger.info(f"No {wanted} import tags found, falling back to branch heads")
        for head in heads:
            if head.target == ZERO_OID:
                continue
            branch = head.name.removeprefix(HEADS_PREFIX)
            if not branch.startswith(f"{prefix}{version}"):
                continue
            latest[branch] = CandidateReference(
                reference_name=f"{HEADS_PREFIX}{branch}", timestamp=head.timestamp
            )

    result = sorted(
        latest.values(), key=lambda c: (c.timestamp, c.reference_name)
    )
    for candidate in result:
        logger.info(f"Candidate {candidate.reference_name}")
    return result


def import_name(reference: str) -> str:
    """
    Human-readable package label for a resolved reference.
    """
    match = TAG_IMPORT_RE.match(reference)
    if match is not None:
        return match.group("name")
    return reference.removeprefix(HEADS_PREFIX)


def upstream_branch(reference: str) -> str:
    """
    The upstream branch a reference belongs to; this is the branch segment of
    the origin lookaside URL.
    """
    match = TAG_IMPORT_RE.match(reference)
    if match is not None:
        return match.group("branch")
    return reference.removeprefix(HEADS_PREFIX)
