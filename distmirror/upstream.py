import logging
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath

import pygit2
from pygit2.enums import CheckoutStrategy

from distmirror.constants import (
    HEADS_PREFIX,
    HEADS_REFSPEC,
    REMOTE_HEADS_PREFIX,
    REMOTE_NAME,
    TAGS_PREFIX,
    TAGS_REFSPEC,
)
from distmirror.exceptions import InfrastructureError
from distmirror.types import RawReference

logger = logging.getLogger(__name__)


def signature_time(signature: pygit2.Signature) -> datetime:
    """
    Converts a git signature's epoch + offset into an aware datetime.
    """
    tz = timezone(timedelta(minutes=signature.offset))
    return datetime.fromtimestamp(signature.time, tz)


class UpstreamRepository:
    """
    A local working tree tracking an upstream dist-git repository.

    Wraps the handful of pygit2 operations a mirror run needs, and turns
    every git or filesystem failure into an InfrastructureError.
    """

    def __init__(self, workdir: Path, url: str):
        self.workdir = workdir.resolve()
        self.url = url
        try:
            self.workdir.mkdir(parents=True, exist_ok=True)
            self.repo = pygit2.init_repository(str(self.workdir))
            if REMOTE_NAME in [remote.name for remote in self.repo.remotes]:
                self.repo.remotes.set_url(REMOTE_NAME, url)
            else:
                self.repo.remotes.create(REMOTE_NAME, url, HEADS_REFSPEC)
        except (pygit2.GitError, OSError) as e:
            raise InfrastructureError(f"Could not init git repository: {e}")

    def __str__(self):
        return f"UpstreamRepository ({self.workdir} of {self.url})"

    def fetch(self, refspecs: list[str] | None = None):
        """
        Fetches branch heads and all tags (or the given refspecs), forcing
        updates of refs that moved upstream.
        """
        if refspecs is None:
            refspecs = [HEADS_REFSPEC, TAGS_REFSPEC]
        logger.debug(f"Fetching {refspecs} from {self.url}")
        try:
            self.repo.remotes[REMOTE_NAME].fetch(refspecs)
        except (pygit2.GitError, KeyError) as e:
            raise InfrastructureError(f"Could not fetch upstream: {e}")

    def _references(self, prefix: str) -> Iterator[tuple[str, pygit2.Reference]]:
        for name in list(self.repo.references):
            if not name.startswith(prefix):
                continue
            try:
                yield name, self.repo.references[name].resolve()
            except (pygit2.GitError, KeyError) as e:
                logger.warning(f"Could not read reference {name}: {e}")

    def annotated_tags(self) -> Iterator[RawReference]:
        """
        Yields every annotated tag with its tagger time. Lightweight tags carry
        no tagger and are ignored.
        """
        for name, ref in self._references(TAGS_PREFIX):
            try:
                obj = self.repo[ref.target]
            except (pygit2.GitError, KeyError, ValueError) as e:
                logger.warning(f"Could not get tag object for {name}: {e}")
                continue
            if not isinstance(obj, pygit2.Tag) or obj.tagger is None:
                continue
            yield RawReference(
                name=f"{TAGS_PREFIX}{obj.name}",
                timestamp=signature_time(obj.tagger),
                target=str(ref.target),
            )

    def remote_heads(self) -> Iterator[RawReference]:
        """
        Yields the fetched upstream branch heads, timestamped by the head
        commit's committer.
        """
        for name, ref in self._references(REMOTE_HEADS_PREFIX):
            branch = name.removeprefix(REMOTE_HEADS_PREFIX)
            if branch == "HEAD":
                continue
            try:
                commit = self.repo[ref.target].peel(pygit2.Commit)
            except (pygit2.GitError, KeyError, ValueError) as e:
                logger.warning(f"Could not get commit object for ref {name}: {e}")
                continue
            yield RawReference(
                name=f"{HEADS_PREFIX}{branch}",
                timestamp=signature_time(commit.committer),
                target=str(ref.target),
                is_tag=False,
            )

    def checkout(self, reference: str):
        """
        Checks out the given reference, discarding local modifications.
        """
        if reference.startswith(HEADS_PREFIX):
            branch = reference.removeprefix(HEADS_PREFIX)
            self.fetch([f"+{reference}:{reference}"])
            logger.info(f"Checking out upstream branch {branch}")
        else:
            logger.info(f"Checking out upstream tag {reference}")
        try:
            commit = self.repo.revparse_single(reference).peel(pygit2.Commit)
            self.repo.checkout_tree(commit, strategy=CheckoutStrategy.FORCE)
            self.repo.set_head(commit.id)
        except (pygit2.GitError, KeyError) as e:
            raise InfrastructureError(f"Could not checkout {reference}: {e}")

    def stage_all(self):
        try:
            self.repo.index.add_all()
            self.repo.index.write()
        except (pygit2.GitError, OSError) as e:
            raise InfrastructureError(f"Could not stage working tree: {e}")

    def unstage(self, path: str):
        relative = self.relative_path(path)
        try:
            if relative in self.repo.index:
                self.repo.index.remove(relative)
                self.repo.index.write()
        except (pygit2.GitError, OSError) as e:
            raise InfrastructureError(f"Could not unstage {relative}: {e}")

    def relative_path(self, path: str) -> str:
        """
        Normalises a manifest path to a tree-relative POSIX path, refusing
        anything that would land outside the working tree.
        """
        relative = PurePosixPath(path.lstrip("/"))
        if not relative.parts or ".." in relative.parts or relative.parts[0] == ".git":
            raise InfrastructureError(f"Path {path!r} is outside the working tree")
        return str(relative)

    def disk_path(self, path: str) -> Path:
        """
        Maps a tree path onto disk. Symlinks in the checked-out tree must not
        redirect a write outside the working tree, and the file itself must
        not be a symlink.
        """
        disk_path = self.workdir / self.relative_path(path)
        parent = disk_path.parent.resolve()
        if not parent.is_relative_to(self.workdir) or parent.is_relative_to(
            self.workdir / ".git"
        ):
            raise InfrastructureError(f"Path {path!r} escapes the working tree")
        if disk_path.is_symlink():
            raise InfrastructureError(f"Path {path!r} is a symlink")
        return disk_path

    def open_text(self, path: str) -> str | None:
        """
        Returns the contents of a tree file, or None if it does not exist.
        """
        disk_path = self.disk_path(path)
        if not disk_path.is_file():
            return None
        try:
            return disk_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise InfrastructureError(f"{path} is not valid UTF-8: {e}")
        except OSError as e:
            raise InfrastructureError(f"Could not read {path}: {e}")

    def write_file(self, path: str, data: bytes):
        disk_path = self.disk_path(path)
        try:
            disk_path.parent.mkdir(parents=True, exist_ok=True)
            with open(disk_path, "wb") as fh:
                fh.write(data)
        except OSError as e:
            raise InfrastructureError(f"Could not write {path} into tree: {e}")

    def path_exists(self, path: str) -> bool:
        return self.disk_path(path).exists()

    def remove(self, path: str):
        try:
            self.disk_path(path).unlink()
        except OSError as e:
            raise InfrastructureError(f"Could not remove {path}: {e}")
