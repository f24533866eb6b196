import enum
import hashlib
import re

from distmirror.exceptions import ManifestError

HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


class HashKind(enum.Enum):
    """
    Hash algorithms that may appear in a package metadata file.

    The value is the length of the hex digest, which is how dist-git
    manifests tell them apart.
    """

    MD5 = 32
    SHA1 = 40
    SHA256 = 64
    SHA512 = 128

    @classmethod
    def from_digest(cls, digest: str) -> "HashKind":
        """
        Works out the algorithm from the shape of a declared hex digest.
        """
        if not HEX_RE.match(digest):
            raise ManifestError(f"Content hash {digest!r} is not hexadecimal")
        try:
            return cls(len(digest))
        except ValueError:
            raise ManifestError(
                f"Cannot determine hash algorithm for {digest!r} ({len(digest)} chars)"
            )

    @property
    def algorithm(self) -> str:
        return self.name.lower()

    def compute(self, data: bytes) -> str:
        return hashlib.new(self.algorithm, data).hexdigest()

    def matches(self, data: bytes, digest: str) -> bool:
        return self.compute(data) == digest.lower()
