from distmirror.exceptions import ManifestError
from distmirror.hashing import HashKind
from distmirror.types import ManifestEntry


def parse_manifest(text: str) -> list[ManifestEntry]:
    """
    Parses a dist-git metadata file: one "<hash> <path>" record per line.

    Blank lines are skipped. The hash algorithm is decided here, once per
    entry, from the length of the declared digest.
    """
    entries = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        fields = line.strip().split(None, 1)
        if len(fields) != 2 or not fields[1].strip():
            raise ManifestError(f"Malformed metadata line {lineno}: {line!r}")
        content_hash, relative_path = fields[0].strip(), fields[1].strip()
        entries.append(
            ManifestEntry(
                content_hash=content_hash,
                relative_path=relative_path,
                hash_kind=HashKind.from_digest(content_hash),
            )
        )
    return entries
