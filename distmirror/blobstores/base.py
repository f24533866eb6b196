from typing import ClassVar


class BaseBlobStore:
    """
    Root blob store class that defines the main interfaces.

    Blob stores are content-addressed by the hash declared in a package's
    metadata file, so no locking or overwrite protection is performed: a
    given hash always maps to the same bytes.

    Stores never verify what they return; callers check the hash.
    """

    type_aliases: list[str] = []

    implementation_registry: ClassVar[dict[str, type["BaseBlobStore"]]] = {}

    def __init_subclass__(cls) -> None:
        if not cls.type_aliases:
            raise RuntimeError(
                "You must define at least one type alias per blob store implementation"
            )
        for alias in cls.type_aliases:
            BaseBlobStore.implementation_registry[alias] = cls

    @classmethod
    def implementation_get(cls, alias: str) -> type["BaseBlobStore"]:
        return cls.implementation_registry[alias]

    def read(self, content_hash: str) -> bytes | None:
        """
        Returns the stored bytes for the hash, or None if this store does not
        have them.
        """
        raise NotImplementedError()

    def write(self, content_hash: str, data: bytes):
        """
        Stores the bytes under the given hash. Mirror runs only read; this is
        how a store gets seeded.
        """
        raise NotImplementedError()

    def content_path(self, content_hash: str) -> str:
        """
        Works out the storage path for a hash. Uses a 3-char prefix so a
        listing has at most 4096 entries at the top level.
        """
        return f"{content_hash[:3]}/{content_hash}"
