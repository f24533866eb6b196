import logging
import tempfile
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from distmirror.config import Config
from distmirror.exceptions import MirrorError
from distmirror.importer import Importer
from distmirror.refs import import_name
from distmirror.upstream import UpstreamRepository


class ColoredFormatter(logging.Formatter):
    """
    Custom formatter with colors for different log levels
    """

    COLORS = {
        logging.DEBUG: "\033[90m",  # Grey
        logging.INFO: "\033[37m",  # White
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[31m",  # Red
    }
    RESET = "\033[0m"

    ABBREVIATIONS = {
        "DEBUG": "DBG",
        "INFO": "INF",
        "WARNING": "WRN",
        "ERROR": "ERR",
        "CRITICAL": "CRT",
    }

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.RESET)
        levelname_abbr = self.ABBREVIATIONS.get(record.levelname, record.levelname[:3])
        record.levelname = f"{color}{levelname_abbr:>3}{self.RESET}"
        record.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(record)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default="INFO",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="distmirror.yaml",
)
@click.pass_context
def main(ctx, log_level: str, config_path: Path):
    # Configure logging with custom colored formatter
    handler = logging.StreamHandler()
    handler.setFormatter(
        ColoredFormatter("%(asctime)s | %(levelname)s | %(message)s", datefmt="%H:%M")
    )
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[handler],
    )
    ctx.obj = Config.load(config_path)


def _workdir(workdir: Path | None, package: str) -> Path:
    if workdir is not None:
        return workdir
    return Path(tempfile.mkdtemp(prefix=f"distmirror-{package}-"))


@main.command("import")
@click.argument("package")
@click.option("-w", "--workdir", type=click.Path(path_type=Path), default=None)
@click.option("--reference", default=None, help="Import this ref instead of the newest")
@click.option("--all", "import_all", is_flag=True, help="Import every candidate ref")
@click.option("--version", "version", type=int, default=None)
@click.option("--prefix", "import_branch_prefix", default=None)
@click.option("--no-storage-download", is_flag=True, help="Skip the blob store")
@click.pass_obj
def import_package(
    config: Config,
    package: str,
    workdir: Path | None,
    reference: str | None,
    import_all: bool,
    no_storage_download: bool,
    **overrides,
):
    """
    Mirror a package's dist-git tree into a working tree
    """
    if no_storage_download:
        overrides["no_storage_download"] = True
    run_config = config.run_config(package, **overrides)
    importer = Importer(run_config, blob_store=config.blob_store())
    workdir = _workdir(workdir, package)
    try:
        if import_all:
            results = importer.run_all(workdir)
        else:
            results = [importer.run(workdir, reference=reference)]
    except MirrorError as e:
        raise click.ClickException(str(e))
    for result in results:
        click.echo(
            f"{result.import_name}\t{result.reference}\t"
            f"{len(result.ignored_sources)} sources"
        )
    click.echo(f"Working tree: {workdir}")


@main.group()
@click.pass_context
def debug(ctx):
    """
    Debug commands for inspecting upstream state
    """
    pass


@debug.command("list-refs")
@click.argument("package")
@click.option("-w", "--workdir", type=click.Path(path_type=Path), default=None)
@click.option("--version", "version", type=int, default=None)
@click.option("--prefix", "import_branch_prefix", default=None)
@click.pass_obj
def list_refs(config: Config, package: str, workdir: Path | None, **overrides):
    """
    List the candidate import references for a package, oldest first
    """
    run_config = config.run_config(package, **overrides)
    importer = Importer(run_config)
    try:
        repository = UpstreamRepository(
            _workdir(workdir, package), run_config.upstream_location
        )
        references = importer.resolve(repository)
    except MirrorError as e:
        raise click.ClickException(str(e))

    console = Console()
    table = Table()

    table.add_column("Reference", style="cyan")
    table.add_column("Import Name", style="green")
    table.add_column("Timestamp", style="yellow")

    for candidate in references:
        table.add_row(
            candidate.reference_name,
            import_name(candidate.reference_name),
            candidate.timestamp.strftime("%Y-%m-%d %H:%M:%S %z"),
        )

    console.print(table)


if __name__ == "__main__":
    main()
