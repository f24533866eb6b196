import hashlib
from unittest.mock import MagicMock

import pytest
import requests

from distmirror.acquirer import BlobAcquirer
from distmirror.blobstores.base import BaseBlobStore
from distmirror.config import RunConfig
from distmirror.exceptions import InfrastructureError, IntegrityError
from distmirror.manifest import parse_manifest

SOURCE_BLOB = b"pretend this is a release tarball\n"
SOURCE_SHA256 = hashlib.sha256(SOURCE_BLOB).hexdigest()
TAMPERED = b"not the tarball you were looking for"


@pytest.fixture
def config():
    return RunConfig(
        package="bash",
        upstream_location="https://git.example.com/rpms/bash",
        version=9,
        origin_host="git.example.com",
    )


@pytest.fixture
def blob_store():
    store = MagicMock(spec=BaseBlobStore)
    store.read.return_value = None
    return store


def entries(path: str = "/SOURCES/a.tar.gz", content_hash: str = SOURCE_SHA256):
    return parse_manifest(f"{content_hash} {path}\n")


class TestTiers:
    """
    Tests for the cache -> blob store -> origin fallback.
    """

    def test_origin_download(self, config, blob_store, session, context, repository):
        acquirer = BlobAcquirer(config, blob_store=blob_store, session=session)
        ignored = acquirer.acquire(entries(), "bash", "c9", context)

        session.get.assert_called_once_with(
            f"https://git.example.com/sources/bash/c9/{SOURCE_SHA256}",
            headers={"Accept-Encoding": "*"},
        )
        blob_store.read.assert_called_once_with(SOURCE_SHA256)
        assert (repository.workdir / "SOURCES" / "a.tar.gz").read_bytes() == SOURCE_BLOB
        assert [source.path for source in ignored] == ["/SOURCES/a.tar.gz"]
        assert context.blob_cache[SOURCE_SHA256] == SOURCE_BLOB

    def test_blob_store_before_origin(
        self, config, blob_store, session, context, repository
    ):
        blob_store.read.return_value = SOURCE_BLOB
        acquirer = BlobAcquirer(config, blob_store=blob_store, session=session)
        acquirer.acquire(entries(), "bash", "c9", context)

        session.get.assert_not_called()
        assert (repository.workdir / "SOURCES" / "a.tar.gz").read_bytes() == SOURCE_BLOB

    def test_no_storage_download_skips_store(
        self, config, blob_store, session, context
    ):
        blob_store.read.return_value = SOURCE_BLOB
        config = config.model_copy(update={"no_storage_download": True})
        acquirer = BlobAcquirer(config, blob_store=blob_store, session=session)
        acquirer.acquire(entries(), "bash", "c9", context)

        blob_store.read.assert_not_called()
        session.get.assert_called_once()

    def test_cache_hit_skips_store_and_origin(
        self, config, blob_store, session, context, repository
    ):
        context.blob_cache[SOURCE_SHA256] = SOURCE_BLOB
        acquirer = BlobAcquirer(config, blob_store=blob_store, session=session)
        ignored = acquirer.acquire(entries(), "bash", "c9", context)

        blob_store.read.assert_not_called()
        session.get.assert_not_called()
        assert len(ignored) == 1
        assert (repository.workdir / "SOURCES" / "a.tar.gz").read_bytes() == SOURCE_BLOB

    def test_repeated_hash_fetched_once(self, config, session, context, repository):
        manifest = parse_manifest(
            f"{SOURCE_SHA256} SOURCES/a.tar.gz\n{SOURCE_SHA256} SOURCES/b.tar.gz\n"
        )
        acquirer = BlobAcquirer(config, session=session)
        ignored = acquirer.acquire(manifest, "bash", "c9", context)

        session.get.assert_called_once()
        assert [source.path for source in ignored] == [
            "SOURCES/a.tar.gz",
            "SOURCES/b.tar.gz",
        ]
        assert (repository.workdir / "SOURCES" / "b.tar.gz").read_bytes() == SOURCE_BLOB

    def test_md5_manifest(self, config, session, context):
        md5 = hashlib.md5(SOURCE_BLOB).hexdigest()
        acquirer = BlobAcquirer(config, session=session)
        ignored = acquirer.acquire(entries(content_hash=md5), "bash", "c9", context)
        assert ignored[0].hash_kind.name == "MD5"


class TestVerification:
    """
    Tests that corrupted content never reaches the tree or the cache.
    """

    def test_origin_mismatch_aborts_before_write(
        self, config, session, context, repository
    ):
        session.get.return_value.content = TAMPERED
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(IntegrityError) as excinfo:
            acquirer.acquire(entries(), "bash", "c9", context)

        assert excinfo.value.expected == SOURCE_SHA256
        assert excinfo.value.actual == hashlib.sha256(TAMPERED).hexdigest()
        assert not (repository.workdir / "SOURCES" / "a.tar.gz").exists()
        assert SOURCE_SHA256 not in context.blob_cache

    def test_blob_store_mismatch_aborts(self, config, blob_store, session, context):
        blob_store.read.return_value = TAMPERED
        acquirer = BlobAcquirer(config, blob_store=blob_store, session=session)
        with pytest.raises(IntegrityError):
            acquirer.acquire(entries(), "bash", "c9", context)
        session.get.assert_not_called()

    def test_poisoned_cache_aborts(self, config, session, context, repository):
        context.blob_cache[SOURCE_SHA256] = TAMPERED
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(IntegrityError):
            acquirer.acquire(entries(), "bash", "c9", context)
        assert not (repository.workdir / "SOURCES" / "a.tar.gz").exists()

    def test_earlier_entries_kept_on_later_mismatch(self, config, session, context):
        bad = hashlib.sha256(b"other").hexdigest()
        manifest = parse_manifest(
            f"{SOURCE_SHA256} SOURCES/a.tar.gz\n{bad} SOURCES/b.tar.gz\n"
        )
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(IntegrityError) as excinfo:
            acquirer.acquire(manifest, "bash", "c9", context)
        assert excinfo.value.path == "SOURCES/b.tar.gz"


class TestFailures:
    """
    Tests for transport and filesystem failures.
    """

    def test_http_error_status(self, config, session, context):
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError(
            "404 Client Error"
        )
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(InfrastructureError):
            acquirer.acquire(entries(), "bash", "c9", context)

    def test_connection_error(self, config, session, context):
        session.get.side_effect = requests.ConnectionError("no route to host")
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(InfrastructureError):
            acquirer.acquire(entries(), "bash", "c9", context)

    def test_path_outside_tree(self, config, session, context):
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(InfrastructureError):
            acquirer.acquire(entries(path="../escape.tar.gz"), "bash", "c9", context)

    def test_symlinked_directory_outside_tree(
        self, tmp_path, config, session, context, repository
    ):
        outside = tmp_path / "outside"
        outside.mkdir()
        (repository.workdir / "SOURCES").symlink_to(outside)
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(InfrastructureError):
            acquirer.acquire(entries(path="SOURCES/a.tar.gz"), "bash", "c9", context)
        assert not (outside / "a.tar.gz").exists()

    def test_symlinked_file_refused(
        self, tmp_path, config, session, context, repository
    ):
        target = tmp_path / "victim"
        target.write_bytes(b"untouched")
        (repository.workdir / "SOURCES").mkdir()
        (repository.workdir / "SOURCES" / "a.tar.gz").symlink_to(target)
        acquirer = BlobAcquirer(config, session=session)
        with pytest.raises(InfrastructureError):
            acquirer.acquire(entries(), "bash", "c9", context)
        assert target.read_bytes() == b"untouched"
