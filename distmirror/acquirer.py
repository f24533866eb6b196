import logging

import requests

from distmirror.blobstores.base import BaseBlobStore
from distmirror.config import RunConfig
from distmirror.constants import origin_url
from distmirror.context import RunContext
from distmirror.exceptions import InfrastructureError, IntegrityError
from distmirror.types import IgnoredSource, ManifestEntry

logger = logging.getLogger(__name__)


class BlobAcquirer:
    """
    Materializes the out-of-band source blobs listed in a package manifest.

    Each blob is taken from the first tier that has it: the run's in-memory
    cache, then the blob store, then the dist-git origin over HTTP. Whatever
    the tier, the bytes are checked against the declared hash before they
    are cached or written anywhere.
    """

    def __init__(
        self,
        config: RunConfig,
        blob_store: BaseBlobStore | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config
        self.blob_store = blob_store
        self.session = session or requests.Session()

    def acquire(
        self,
        entries: list[ManifestEntry],
        package: str,
        branch: str,
        context: RunContext,
    ) -> list[IgnoredSource]:
        """
        Fetches, verifies and writes every entry into the context's working
        tree. Raises IntegrityError on the first checksum mismatch, before the
        offending bytes are cached or written.
        """
        cache = context.blob_cache
        ignored = []
        for entry in entries:
            cached = entry.content_hash in cache
            if cached:
                logger.info(f"Retrieving {entry.content_hash} from cache")
                body = cache[entry.content_hash]
            else:
                body = self._from_store(entry)
                if body is None:
                    body = self._from_origin(entry, package, branch)

            if not entry.hash_kind.matches(body, entry.content_hash):
                raise IntegrityError(
                    entry.relative_path,
                    entry.content_hash,
                    entry.hash_kind.compute(body),
                )
            if not cached:
                cache[entry.content_hash] = body

            context.repository.write_file(entry.relative_path, body)
            ignored.append(
                IgnoredSource(path=entry.relative_path, hash_kind=entry.hash_kind)
            )
        return ignored

    def _from_store(self, entry: ManifestEntry) -> bytes | None:
        if self.blob_store is None or self.config.no_storage_download:
            return None
        body = self.blob_store.read(entry.content_hash)
        if body is not None:
            logger.info(f"Downloading {entry.content_hash} from blob storage")
        return body

    def _from_origin(self, entry: ManifestEntry, package: str, branch: str) -> bytes:
        url = origin_url(
            self.config.origin_host, package, branch, entry.content_hash
        )
        logger.info(f"Downloading {url}")
        try:
            response = self.session.get(url, headers={"Accept-Encoding": "*"})
            response.raise_for_status()
        except requests.RequestException as e:
            raise InfrastructureError(f"Could not download dist-git file: {e}")
        return response.content
