#!/usr/bin/env python3


import asyncio
import logging
from pathlib import Path

import click
import rich

from . import settings as settings_module
from .candidate_store import RunState
from .generators import Language
from .pipeline import ImageRenamer
from .rename_images import rename_images, review_proposals
from .settings import FolderAccessError, PathFolderAccess, load_settings
from .types import AnalysisOptions, CliOptions


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option(
    "--server",
    "server_address",
    type=click.STRING,
    default=None,
    help="Model server address: IP, host:port or URL (default: last used, or 127.0.0.1:11434)",
)
@click.option("--model", "model_name", type=click.STRING, default=None, help="Vision model to use")
@click.option(
    "--language",
    type=click.Choice([language.value for language in Language], case_sensitive=False),
    default=Language.ENGLISH.value,
    help="Language for generated filenames (default: English)",
)
@click.option(
    "--auto-rename/--review",
    "auto_rename",
    default=True,
    help="Rename files as soon as they are analyzed, or review proposals batch by batch",
)
@click.option(
    "--batch-size",
    type=click.IntRange(1, 500),
    default=20,
    help="Number of files per review batch (default: 20)",
)
@click.option("--list-models", is_flag=True, help="List the models available on the server and exit")
@click.option(
    "--authorize-folder",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Remember a folder (e.g. on an external or network drive) as authorized",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="WARNING",
    help="Set the logging level (default: WARNING)",
)
def main(
    paths: tuple[Path, ...],
    server_address: str | None,
    model_name: str | None,
    language: str,
    auto_rename: bool,
    batch_size: int,
    list_models: bool,
    authorize_folder: Path | None,
    log_level: str,
) -> None:
    """Rename image files using descriptions from a local vision model."""
    # Set up logging
    level = getattr(logging, log_level.upper())
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    # When not in debug mode, only show our own debug messages
    if level != logging.DEBUG:
        # Set third-party loggers to WARNING
        for logger_name in logging.root.manager.loggerDict:
            if not logger_name.startswith("image_renamer"):
                logging.getLogger(logger_name).setLevel(logging.WARNING)

    settings = load_settings()
    if not settings.config_file_found:
        logging.debug(f"No settings file at {settings_module.CONFIG_FILE_PATH}, using defaults")
    options = CliOptions(
        server_address=server_address or settings.server_address,
        model=model_name,
        list_models=list_models,
        analysis=AnalysisOptions(
            auto_rename=auto_rename,
            language=Language(language.capitalize()),
            batch_size=batch_size,
        ),
    )

    if authorize_folder is not None:
        try:
            PathFolderAccess(settings).authorize(authorize_folder)
        except FolderAccessError as e:
            raise click.ClickException(str(e)) from e
        rich.print(f"Authorized {settings.folder_bookmark}")
        if not paths and not list_models:
            return

    renamer = ImageRenamer.from_settings(settings, options=options.analysis, model=options.model)

    if server_address is not None:
        if not asyncio.run(renamer.apply_server_address(options.server_address)):
            raise click.ClickException(renamer.store.error_message or "Invalid server address")
    elif options.list_models or options.model is None:
        asyncio.run(renamer.refresh_models())

    if options.list_models:
        if renamer.store.error_message:
            raise click.ClickException(renamer.store.error_message)
        for name in renamer.available_models:
            marker = "*" if name == renamer.selected_model else " "
            rich.print(f"{marker} {name}")
        return

    if options.model is not None and options.model not in renamer.available_models:
        logging.warning(f"Model {options.model} is not listed by the server")
        renamer.selected_model = options.model

    state = asyncio.run(rename_images(list(paths), renamer=renamer))
    if state == RunState.FAILED:
        raise click.ClickException(renamer.store.error_message or "Analysis failed")

    if not options.analysis.auto_rename and state in (RunState.COMPLETED, RunState.CANCELLED):
        review_proposals(renamer, confirm=click.confirm)


if __name__ == "__main__":
    main()
