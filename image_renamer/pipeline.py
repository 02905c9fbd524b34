"""Batch analysis pipeline: describe each candidate image and rename it."""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from .candidate_store import CandidateStore, RunState
from .generators import DEFAULT_MODEL, build_prompt, propose_base_name
from .image_utils import ImageConversionError, convert_to_jpeg_if_needed
from .list_files import EmptyDirectoryError, UnsupportedFileError, iter_image_files, partition_candidates
from .ollama_client import (
    DEFAULT_SERVER_ADDRESS,
    HTTPStatusError,
    InvalidServerAddress,
    OllamaClient,
    OllamaClientError,
    VisionClient,
    normalize_server_address,
)
from .rate_limiter import RequestThrottle
from .rename import RenameError, mark_base, rename_file
from .settings import Settings, save_settings
from .types import AnalysisOptions
from .utils import has_rename_marker

# Failures that are recorded against a single file without stopping the run
PER_FILE_ERRORS = (OllamaClientError, RenameError, ImageConversionError, OSError)


class AnalysisCancelled(Exception):
    """Raised at a cancellation checkpoint once the run has been cancelled."""


class CancellationToken:
    """Cooperative cancellation flag, polled between files."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AnalysisCancelled()


class ImageRenamer:
    """Drives analysis runs over the candidates held in a CandidateStore."""

    def __init__(
        self,
        client: VisionClient,
        *,
        options: AnalysisOptions | None = None,
        store: CandidateStore | None = None,
        throttle: RequestThrottle | None = None,
        model: str | None = None,
        settings: Settings | None = None,
        settings_path: Path | None = None,
    ):
        self.client = client
        self.options = options or AnalysisOptions()
        self.store = store or CandidateStore(self.options.batch_size)
        self.throttle = throttle or RequestThrottle(self.options.request_delay, self.options.retry_backoff)
        self.selected_model = model or getattr(client, "model", "") or DEFAULT_MODEL
        self.available_models = [self.selected_model]
        self.server_address = getattr(client, "base_url", DEFAULT_SERVER_ADDRESS)
        self.settings = settings
        self.settings_path = settings_path
        self._task: asyncio.Task | None = None
        self._token: CancellationToken | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        options: AnalysisOptions | None = None,
        model: str | None = None,
        settings_path: Path | None = None,
    ) -> "ImageRenamer":
        """Build a renamer talking to the server stored in settings (or the default one)."""
        options = options or AnalysisOptions()
        try:
            base_url = normalize_server_address(settings.server_address)
        except InvalidServerAddress:
            logging.warning(f"Stored server address {settings.server_address!r} is invalid, using default")
            base_url = DEFAULT_SERVER_ADDRESS
        client = _build_client(base_url, model or DEFAULT_MODEL, options)
        return cls(client, options=options, model=model, settings=settings, settings_path=settings_path)

    def select_paths(self, paths: Iterable[Path]) -> list[EmptyDirectoryError]:
        """Discover candidates from user-selected files and folders.

        Returns:
            Directories that had nothing left to rename
        """
        candidates: list[Path] = []
        empty_directories: list[EmptyDirectoryError] = []
        for item in iter_image_files(paths):
            if isinstance(item, EmptyDirectoryError):
                empty_directories.append(item)
            else:
                candidates.append(item)
        self.store.set_candidates(candidates)
        return empty_directories

    async def refresh_models(self) -> list[str]:
        """Fetch the model list and keep the selection valid."""
        try:
            models = await asyncio.to_thread(self.client.list_models)
        except OllamaClientError as e:
            self.store.set_error_message(str(e))
            return self.available_models
        self.available_models = sorted(models)
        if self.selected_model not in self.available_models and self.available_models:
            self.selected_model = self.available_models[0]
        return self.available_models

    async def apply_server_address(self, address: str) -> bool:
        """Point the renamer at a new server, persist it and refresh the model list."""
        try:
            base_url = normalize_server_address(address)
        except InvalidServerAddress as e:
            self.store.set_error_message(str(e))
            return False

        self.server_address = base_url
        if self.settings is not None:
            self.settings.server_address = base_url
            save_settings(self.settings, self.settings_path)

        self.client = _build_client(base_url, self.selected_model or DEFAULT_MODEL, self.options)
        await self.refresh_models()
        return True

    def start_analysis(self) -> asyncio.Task | None:
        """Schedule a run in the background. Returns None if one is already active."""
        if self.store.is_processing or (self._task is not None and not self._task.done()):
            return None
        self._token = CancellationToken()
        self._task = asyncio.create_task(self.analyze(self._token))
        return self._task

    def cancel_analysis(self) -> None:
        if self._token is not None:
            self._token.cancel()

    async def analyze(self, token: CancellationToken | None = None) -> RunState:
        """Describe every supported candidate, in order, one request at a time."""
        token = token or CancellationToken()
        store = self.store
        if store.is_processing:
            return store.run_state

        supported, unsupported = partition_candidates(store.candidates)
        if not supported:
            for path in unsupported:
                store.record_error(path, str(UnsupportedFileError(path)))
            return store.run_state

        store.begin_run(len(supported))
        for path in unsupported:
            logging.warning(f"Skipping {path.name}: unsupported or already renamed")
            store.record_error(path, str(UnsupportedFileError(path)))

        try:
            token.raise_if_cancelled()
            logging.debug(f"Checking server at {self.server_address}")
            try:
                await asyncio.to_thread(self.client.health_check)
            except OllamaClientError as e:
                logging.error(f"Server check failed: {e}")
                store.set_error_message(str(e))
                store.set_run_state(RunState.FAILED)
                return RunState.FAILED
            token.raise_if_cancelled()

            store.set_run_state(RunState.RUNNING)
            for path in supported:
                token.raise_if_cancelled()
                await self._process_file(path, token)
        except AnalysisCancelled:
            logging.info(f"Analysis cancelled after {store.processed_count} of {store.total_count} files")
            store.set_run_state(RunState.CANCELLED)
            return RunState.CANCELLED
        except asyncio.CancelledError:
            store.set_run_state(RunState.CANCELLED)
            raise
        except Exception:
            store.set_run_state(RunState.FAILED)
            raise

        logging.info(f"Analysis finished: {store.processed_count} of {store.total_count} files")
        store.set_run_state(RunState.COMPLETED)
        return RunState.COMPLETED

    async def _process_file(self, path: Path, token: CancellationToken) -> None:
        store = self.store
        if has_rename_marker(path):
            store.increment_processed()
            return

        current = path
        try:
            current = await asyncio.to_thread(convert_to_jpeg_if_needed, path)
            if current != path:
                store.replace_candidate(path, current)

            base = await self._describe(current)
            # A result that arrives after cancellation is dropped
            token.raise_if_cancelled()
            self._apply_proposal(current, base)
        except PER_FILE_ERRORS as e:
            logging.warning(f"Error processing {current}: {e}")
            store.record_error(current, str(e), surface=True)

        store.increment_processed()
        await self.throttle.after_request()

    async def _describe(self, path: Path) -> str:
        data = await asyncio.to_thread(path.read_bytes)
        prompt = build_prompt(self.options.prompt, self.options.language)

        logging.debug(f"Requesting description of {path.name} from {self.selected_model}")
        try:
            response = await asyncio.to_thread(self.client.describe_image, data, prompt, self.selected_model)
        except HTTPStatusError as e:
            if not self.throttle.should_retry(e.status_code):
                raise
            await self.throttle.before_retry()
            response = await asyncio.to_thread(self.client.describe_image, data, prompt, self.selected_model)

        logging.debug(f"Model response for {path.name}: {response!r}")
        return propose_base_name(response)

    def _apply_proposal(self, path: Path, base: str) -> None:
        if not self.options.auto_rename:
            self.store.set_proposal(path, base)
            return
        new_path, marked = rename_file(path, base)
        logging.info(f"Renamed {path.name} → {new_path.name}")
        self.store.apply_rename_result(path, new_path, marked)

    def rename_visible(self) -> None:
        """Rename every file in the visible batch that has a pending proposal, then advance."""
        if self.store.is_processing:
            return
        proposals = self.store.visible_proposals
        if not proposals:
            return

        for path, base in proposals.items():
            if has_rename_marker(path):
                continue
            try:
                new_path, marked = rename_file(path, base)
            except RenameError as e:
                logging.warning(str(e))
                self.store.set_error_message(str(e))
                self.store.set_proposal(path, mark_base(base))
                continue
            logging.info(f"Renamed {path.name} → {new_path.name}")
            self.store.apply_rename_result(path, new_path, marked)

        self.store.advance_to_next_batch()


def _build_client(base_url: str, model: str, options: AnalysisOptions) -> OllamaClient:
    return OllamaClient(
        base_url,
        model,
        timeout=options.request_timeout,
        large_payload_bytes=options.large_payload_warning_bytes,
    )
