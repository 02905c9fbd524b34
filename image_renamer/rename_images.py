import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path

import rich
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from .candidate_store import RunState, StoreSnapshot
from .list_files import EmptyDirectoryError
from .pipeline import ImageRenamer


def report_empty_directories(empty_directories: list[EmptyDirectoryError]) -> None:
    skipped_file_count = 0
    for error in empty_directories:
        rich.print(f"[yellow]Directory {error.path} has no images left to rename[/yellow]")
        if error.ignored_files:
            rich.print("  [yellow]Already renamed:[/yellow]")
            rich.print(", ".join(f"[yellow]{file.name}[/yellow]" for file in error.ignored_files[:10]))
            if len(error.ignored_files) > 10:
                rich.print("    [yellow]... and more[/yellow]")
            skipped_file_count += len(error.ignored_files)
    if skipped_file_count:
        logging.debug(f"{skipped_file_count} files already carry the rename marker")


def print_summary(snapshot: StoreSnapshot, *, auto_rename: bool) -> None:
    done = len(snapshot.all_proposals)
    failed = len(snapshot.errors)
    verb = "renamed" if auto_rename else "named"
    if snapshot.run_state == RunState.CANCELLED:
        rich.print(f"\n[yellow]Cancelled after {snapshot.processed_count} of {snapshot.total_count} files[/yellow]")
    rich.print(f"Processed {snapshot.processed_count} files: {done} {verb}, {failed} failed")
    for path, message in snapshot.errors.items():
        rich.print(f"  [red]{path.name}: {message}[/red]")


async def rename_images(files: list[Path], *, renamer: ImageRenamer) -> RunState:
    """Analyze (and optionally rename) image files with the configured model server.

    Args:
        files: Files and folders picked by the user
        renamer: Renamer bound to a model server

    Returns:
        The state the run ended in
    """
    store = renamer.store
    if not files:
        rich.print("[yellow]No files to process[/yellow]")
        return store.run_state

    report_empty_directories(renamer.select_paths(files))
    if not store.candidates:
        rich.print("[yellow]No valid image files to process[/yellow]")
        return store.run_state

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        transient=True,
    )
    task_id = progress.add_task("Checking server...", total=None)

    def on_change(snapshot: StoreSnapshot) -> None:
        description = "Analyzing images..." if snapshot.run_state == RunState.RUNNING else "Checking server..."
        progress.update(
            task_id,
            description=description,
            completed=snapshot.processed_count,
            total=snapshot.total_count or None,
        )

    unsubscribe = store.subscribe(on_change)

    # Handle SIGINT gracefully
    is_cancelled = False

    def sigint_handler(signum, frame):
        nonlocal is_cancelled
        if is_cancelled:
            sys.exit(1)
        is_cancelled = True
        renamer.cancel_analysis()
        rich.print("\n[yellow]Cancelling after the current image... Press Ctrl+C again to force quit[/yellow]")

    original_sigint_handler = signal.signal(signal.SIGINT, sigint_handler)
    try:
        with progress:
            task = renamer.start_analysis()
            state = await task if task is not None else store.run_state
    finally:
        signal.signal(signal.SIGINT, original_sigint_handler)
        unsubscribe()

    # A failed health check is reported by the caller
    if state != RunState.FAILED:
        print_summary(store.snapshot(), auto_rename=renamer.options.auto_rename)
    return state


def review_proposals(renamer: ImageRenamer, *, confirm: Callable[[str], bool]) -> None:
    """Walk the batches, showing proposals and renaming the ones the user accepts."""
    store = renamer.store
    while True:
        snapshot = store.snapshot()
        if snapshot.visible_proposals:
            start = snapshot.batch_index * snapshot.batch_size
            table = Table(title=f"Batch {snapshot.batch_index + 1} (files {start + 1}-{start + len(snapshot.visible)})")
            table.add_column("File")
            table.add_column("Proposed name")
            for path in snapshot.visible:
                proposal = snapshot.visible_proposals.get(path)
                table.add_row(path.name, proposal or "[dim]No proposal[/dim]")
            rich.print(table)

            if confirm(f"Rename {len(snapshot.visible_proposals)} files?"):
                renamer.rename_visible()
                if store.batch_index != snapshot.batch_index:
                    continue
                return

        if not store.advance_to_next_batch():
            return
