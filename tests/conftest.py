from pathlib import Path
from unittest.mock import MagicMock

import pygit2
import pytest
import requests
from pygit2.enums import ObjectType

from distmirror.config import RunConfig
from distmirror.context import RunContext
from distmirror.upstream import UpstreamRepository

SOURCE_BLOB = b"pretend this is a release tarball\n"


class UpstreamBuilder:
    """
    Builds a small dist-git style repository to fetch from.
    """

    def __init__(self, path: Path):
        self.path = path
        self.repo = pygit2.init_repository(str(path))

    def signature(self, when: int) -> pygit2.Signature:
        return pygit2.Signature("Builder", "builder@example.com", when, 0)

    def commit(self, branch: str, files: dict[str, bytes], when: int) -> pygit2.Oid:
        for name, content in files.items():
            file_path = self.path / name
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        self.repo.index.add_all()
        self.repo.index.write()
        tree = self.repo.index.write_tree()
        ref = f"refs/heads/{branch}"
        parents = []
        if ref in self.repo.references:
            parents = [self.repo.references[ref].target]
        signature = self.signature(when)
        return self.repo.create_commit(
            ref, signature, signature, f"Update {branch}", tree, parents
        )

    def tag(self, name: str, target: pygit2.Oid, when: int) -> pygit2.Oid:
        return self.repo.create_tag(
            name, target, ObjectType.COMMIT, self.signature(when), f"Import {name}"
        )


@pytest.fixture
def upstream(tmp_path):
    """
    An empty upstream repository for the "bash" package.
    """
    return UpstreamBuilder(tmp_path / "bash")


@pytest.fixture
def run_config(upstream):
    return RunConfig(
        package="bash",
        upstream_location=str(upstream.path),
        import_branch_prefix="c",
        version=9,
    )


@pytest.fixture
def repository(tmp_path):
    """
    A working tree whose remote is never contacted.
    """
    return UpstreamRepository(tmp_path / "work", "https://git.example.com/rpms/bash")


@pytest.fixture
def context(repository):
    return RunContext(repository=repository, package="bash", reference="refs/heads/c9")


@pytest.fixture
def session():
    """
    A requests session whose GET returns SOURCE_BLOB.
    """
    session = MagicMock(spec=requests.Session)
    response = MagicMock()
    response.content = SOURCE_BLOB
    session.get.return_value = response
    return session
