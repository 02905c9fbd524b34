"""State owner for a batch rename session.

The store holds the discovered candidates, the visible batch window,
proposals, per-file errors and progress counters. Observers subscribe to
change notifications and receive immutable snapshots; only the pipeline
mutates the store.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

DEFAULT_BATCH_SIZE = 20


class RunState(str, Enum):
    IDLE = "idle"
    HEALTH_CHECKING = "health_checking"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class StoreSnapshot:
    """Read-only view of the store at one point in time."""

    candidates: tuple[Path, ...]
    batch_index: int
    visible: tuple[Path, ...]
    visible_proposals: Mapping[Path, str]
    all_proposals: Mapping[Path, str]
    errors: Mapping[Path, str]
    error_message: str | None
    run_state: RunState
    is_processing: bool
    processed_count: int
    total_count: int
    batch_size: int

    @property
    def has_next_batch(self) -> bool:
        return (self.batch_index + 1) * self.batch_size < len(self.candidates)


Subscriber = Callable[[StoreSnapshot], None]


class CandidateStore:
    """Candidate set, batch window and results for one session."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self._candidates: list[Path] = []
        self._batch_index = 0
        self._visible: list[Path] = []
        self._visible_proposals: dict[Path, str] = {}
        self._all_proposals: dict[Path, str] = {}
        self._errors: dict[Path, str] = {}
        self._error_message: str | None = None
        self._run_state = RunState.IDLE
        self._processed_count = 0
        self._total_count = 0
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            candidates=tuple(self._candidates),
            batch_index=self._batch_index,
            visible=tuple(self._visible),
            visible_proposals=MappingProxyType(dict(self._visible_proposals)),
            all_proposals=MappingProxyType(dict(self._all_proposals)),
            errors=MappingProxyType(dict(self._errors)),
            error_message=self._error_message,
            run_state=self._run_state,
            is_processing=self._run_state in (RunState.HEALTH_CHECKING, RunState.RUNNING),
            processed_count=self._processed_count,
            total_count=self._total_count,
            batch_size=self.batch_size,
        )

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            callback(snapshot)

    @property
    def candidates(self) -> list[Path]:
        return list(self._candidates)

    @property
    def visible(self) -> list[Path]:
        return list(self._visible)

    @property
    def batch_index(self) -> int:
        return self._batch_index

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def is_processing(self) -> bool:
        return self._run_state in (RunState.HEALTH_CHECKING, RunState.RUNNING)

    @property
    def visible_proposals(self) -> dict[Path, str]:
        return dict(self._visible_proposals)

    @property
    def all_proposals(self) -> dict[Path, str]:
        return dict(self._all_proposals)

    @property
    def errors(self) -> dict[Path, str]:
        return dict(self._errors)

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def processed_count(self) -> int:
        return self._processed_count

    @property
    def total_count(self) -> int:
        return self._total_count

    def window_bounds(self, index: int | None = None) -> tuple[int, int]:
        """Return ``[start, end)`` of a batch window in the candidate sequence."""
        if index is None:
            index = self._batch_index
        start = index * self.batch_size
        end = min(start + self.batch_size, len(self._candidates))
        return start, end

    def has_next_batch(self) -> bool:
        return (self._batch_index + 1) * self.batch_size < len(self._candidates)

    def _recompute_visible(self) -> None:
        start, end = self.window_bounds()
        self._visible = self._candidates[start:end]

    def set_candidates(self, candidates: Sequence[Path]) -> None:
        """Replace the candidate sequence and show its first batch."""
        self._candidates = list(candidates)
        self._batch_index = 0
        self._recompute_visible()
        logging.debug(f"{len(self._candidates)} candidates, showing {len(self._visible)}")
        self._notify()

    def advance_to_next_batch(self) -> bool:
        """Move the window to the next batch. Returns False (and does nothing) at the end."""
        if not self.has_next_batch():
            return False
        self._batch_index += 1
        self._recompute_visible()
        self._errors.clear()
        self._visible_proposals = {
            path: self._all_proposals[path] for path in self._visible if path in self._all_proposals
        }
        self._error_message = None
        logging.debug(f"Advanced to batch {self._batch_index}: {self.window_bounds()}")
        self._notify()
        return True

    def _replace_reference(self, old: Path, new: Path) -> None:
        self._candidates = [new if path == old else path for path in self._candidates]
        self._visible = [new if path == old else path for path in self._visible]

    def replace_candidate(self, old: Path, new: Path) -> None:
        """Point every reference to ``old`` at ``new`` (e.g. after a format conversion)."""
        if old == new:
            return
        self._replace_reference(old, new)
        for proposals in (self._visible_proposals, self._all_proposals):
            if old in proposals:
                proposals[new] = proposals.pop(old)
        if old in self._errors:
            self._errors[new] = self._errors.pop(old)
        self._notify()

    def set_proposal(self, path: Path, base: str) -> None:
        """Store a proposed base name without renaming anything."""
        self._all_proposals[path] = base
        if path in self._visible:
            self._visible_proposals[path] = base
        self._errors.pop(path, None)
        self._notify()

    def apply_rename_result(self, old: Path, new: Path, base: str) -> None:
        """Record that ``old`` now lives at ``new`` under the marked base name ``base``."""
        self._replace_reference(old, new)
        self._all_proposals.pop(old, None)
        self._all_proposals[new] = base
        self._visible_proposals.pop(old, None)
        if new in self._visible:
            self._visible_proposals[new] = base
        self._errors.pop(old, None)
        self._notify()

    def record_error(self, path: Path, message: str, *, surface: bool = False) -> None:
        """Record a per-file failure. With ``surface``, also show it as the top-level message."""
        self._errors[path] = message
        self._all_proposals.pop(path, None)
        self._visible_proposals.pop(path, None)
        if surface:
            self._error_message = message
        self._notify()

    def set_error_message(self, message: str | None) -> None:
        self._error_message = message
        self._notify()

    def begin_run(self, total: int) -> None:
        """Reset counters and results for a fresh run over ``total`` files."""
        self._processed_count = 0
        self._total_count = total
        self._error_message = None
        self._visible_proposals.clear()
        self._all_proposals.clear()
        self._errors.clear()
        self._run_state = RunState.HEALTH_CHECKING
        self._notify()

    def set_run_state(self, state: RunState) -> None:
        self._run_state = state
        self._notify()

    def increment_processed(self) -> None:
        if self._processed_count < self._total_count:
            self._processed_count += 1
        self._notify()
