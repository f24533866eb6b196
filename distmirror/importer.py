import logging
from dataclasses import dataclass
from pathlib import Path

import requests

from distmirror.acquirer import BlobAcquirer
from distmirror.blobstores.base import BaseBlobStore
from distmirror.config import RunConfig
from distmirror.context import RunContext, RunState
from distmirror.exceptions import MirrorError
from distmirror.reconciler import TreeReconciler
from distmirror.refs import import_name, resolve_latest
from distmirror.types import BlobCache, CandidateReference, IgnoredSource
from distmirror.upstream import UpstreamRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    reference: str
    import_name: str
    ignored_sources: list[IgnoredSource]
    state: RunState


class Importer:
    """
    Top-level coordinator for mirroring one package.

    Resolves the upstream references, then runs each chosen reference
    through the reconciler. This is the only place that decides a run
    stops: any MirrorError from below ends it.
    """

    def __init__(
        self,
        config: RunConfig,
        blob_store: BaseBlobStore | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config
        self.reconciler = TreeReconciler(
            BlobAcquirer(config, blob_store=blob_store, session=session)
        )

    def resolve(self, repository: UpstreamRepository) -> list[CandidateReference]:
        repository.fetch()
        return resolve_latest(
            repository.annotated_tags(),
            repository.remote_heads(),
            self.config.import_branch_prefix,
            self.config.version,
        )

    def prepare(self, workdir: Path) -> RunContext:
        """
        Sets up the working tree and resolves the candidate references.
        """
        repository = UpstreamRepository(workdir, self.config.upstream_location)
        return RunContext(
            repository=repository,
            package=self.config.package,
            references=self.resolve(repository),
        )

    def run(self, workdir: Path, reference: str | None = None) -> ImportResult:
        """
        Mirrors a single reference; the newest candidate unless one is given.
        """
        context = self.prepare(workdir)
        if reference is None:
            if not context.references:
                raise MirrorError(
                    f"No import references found for {self.config.package}"
                )
            reference = context.references[-1].reference_name
        context.reference = reference
        return self._run_context(context)

    def run_all(self, workdir: Path) -> list[ImportResult]:
        """
        Mirrors every candidate reference in order, oldest first. The blob
        cache is carried from one reference to the next.
        """
        first = self.prepare(workdir)
        cache: BlobCache = first.blob_cache
        results = []
        for candidate in first.references:
            context = RunContext(
                repository=first.repository,
                package=first.package,
                references=first.references,
                reference=candidate.reference_name,
                blob_cache=cache,
            )
            results.append(self._run_context(context))
        return results

    def _run_context(self, context: RunContext) -> ImportResult:
        logger.info(f"Importing {context.package} from {context.reference}")
        self.reconciler.write_source(context)
        self.reconciler.post_process(context)
        name = import_name(context.reference)
        logger.info(
            f"Imported {name} with {len(context.ignored_sources)} external sources"
        )
        return ImportResult(
            reference=context.reference,
            import_name=name,
            ignored_sources=list(context.ignored_sources),
            state=context.state,
        )
