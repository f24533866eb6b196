from pathlib import Path

from distmirror.blobstores.base import BaseBlobStore
from distmirror.exceptions import BlobStoreError


class LocalBlobStore(BaseBlobStore):
    """
    A blob store kept in a local filesystem directory.
    """

    type_aliases = ["local", "file"]

    def __init__(self, root: str):
        self.root = Path(root).expanduser()
        if self.root.exists() and not self.root.is_dir():
            raise BlobStoreError(f"Blob store root {self.root} is not a directory")

    def __str__(self):
        return f"Local (root {self.root})"

    def disk_path(self, content_hash: str) -> Path:
        return self.root / self.content_path(content_hash)

    def read(self, content_hash: str) -> bytes | None:
        try:
            return self.disk_path(content_hash).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BlobStoreError(f"Failed to read {content_hash}: {e}")

    def write(self, content_hash: str, data: bytes):
        path = self.disk_path(content_hash)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise BlobStoreError(f"Failed to write {content_hash}: {e}")
