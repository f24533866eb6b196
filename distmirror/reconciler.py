import logging

from distmirror.acquirer import BlobAcquirer
from distmirror.constants import metadata_filename
from distmirror.context import RunContext, RunState
from distmirror.exceptions import MirrorError
from distmirror.manifest import parse_manifest
from distmirror.refs import upstream_branch
from distmirror.types import IgnoredSource

logger = logging.getLogger(__name__)


class TreeReconciler:
    """
    Drives a checked-out reference through blob acquisition and cleanup.

    Each step advances the context's state; an error leaves the state where
    it was and is re-raised stamped with it.
    """

    def __init__(self, acquirer: BlobAcquirer):
        self.acquirer = acquirer

    def write_source(self, context: RunContext) -> list[IgnoredSource]:
        """
        Checks out context.reference and fills in the blobs listed in the
        package metadata file. Returns the sources that were written.
        """
        try:
            return self._write_source(context)
        except MirrorError as e:
            e.state = context.state
            raise

    def _write_source(self, context: RunContext) -> list[IgnoredSource]:
        if context.state != RunState.UNINITIALIZED:
            raise MirrorError(
                f"Run context already used ({context.state.value}); start a new run"
            )
        if context.reference is None:
            raise MirrorError("No reference chosen for this run")
        repository = context.repository

        repository.checkout(context.reference)
        repository.stage_all()
        context.state = RunState.REFERENCE_CHECKED_OUT

        metadata_name = metadata_filename(context.package)
        text = repository.open_text(metadata_name)
        if text is None:
            logger.warning(f"Could not open {metadata_name}, so skipping sources")
            context.state = RunState.NO_MANIFEST
            return []
        entries = parse_manifest(text)
        context.state = RunState.MANIFEST_PROCESSED

        ignored = self.acquirer.acquire(
            entries,
            context.package,
            upstream_branch(context.reference),
            context,
        )
        context.ignored_sources.extend(ignored)
        context.state = RunState.BLOBS_RECONCILED
        return ignored

    def post_process(self, context: RunContext):
        """
        Removes the written blobs from the tree again and re-stages it.
        """
        try:
            self._post_process(context)
        except MirrorError as e:
            e.state = context.state
            raise

    def _post_process(self, context: RunContext):
        if context.state not in (RunState.BLOBS_RECONCILED, RunState.NO_MANIFEST):
            raise MirrorError(
                f"Cannot post-process a run in state {context.state.value}"
            )
        repository = context.repository
        for source in context.ignored_sources:
            if repository.path_exists(source.path):
                logger.debug(f"Removing dist-git file {source.path}")
                repository.remove(source.path)
            repository.unstage(source.path)
        repository.stage_all()
        context.state = RunState.POST_PROCESSED
