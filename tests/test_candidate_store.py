"""Tests for the candidate store and its batch window."""

from pathlib import Path

import pytest

from image_renamer.candidate_store import CandidateStore, RunState, StoreSnapshot


def paths(count: int) -> list[Path]:
    return [Path(f"/photos/IMG_{i:04d}.jpg") for i in range(count)]


def test_set_candidates_shows_first_batch() -> None:
    store = CandidateStore(batch_size=20)
    candidates = paths(45)

    store.set_candidates(candidates)

    assert store.candidates == candidates
    assert store.batch_index == 0
    assert store.visible == candidates[:20]
    assert store.window_bounds() == (0, 20)


def test_advance_to_next_batch() -> None:
    store = CandidateStore(batch_size=20)
    candidates = paths(45)
    store.set_candidates(candidates)

    assert store.advance_to_next_batch()
    assert store.window_bounds() == (20, 40)
    assert store.visible == candidates[20:40]

    assert store.advance_to_next_batch()
    assert store.window_bounds() == (40, 45)
    assert store.visible == candidates[40:45]

    # Nothing after the last window
    assert not store.advance_to_next_batch()
    assert store.batch_index == 2
    assert store.visible == candidates[40:45]


def test_set_candidates_resets_window() -> None:
    store = CandidateStore(batch_size=2)
    store.set_candidates(paths(5))
    store.advance_to_next_batch()

    store.set_candidates(paths(3))

    assert store.batch_index == 0
    assert store.visible == paths(3)[:2]


def test_invalid_batch_size() -> None:
    with pytest.raises(ValueError):
        CandidateStore(batch_size=0)


def test_advance_repopulates_visible_proposals() -> None:
    store = CandidateStore(batch_size=2)
    candidates = paths(4)
    store.set_candidates(candidates)
    store.begin_run(4)
    for path in candidates:
        store.set_proposal(path, path.stem.lower())
    store.record_error(candidates[1], "HTTP 404: not found", surface=True)

    assert store.visible_proposals == {candidates[0]: "img_0000"}
    assert store.error_message == "HTTP 404: not found"

    store.advance_to_next_batch()

    assert store.visible_proposals == {candidates[2]: "img_0002", candidates[3]: "img_0003"}
    assert store.errors == {}
    assert store.error_message is None
    assert len(store.all_proposals) == 3


def test_apply_rename_result() -> None:
    store = CandidateStore(batch_size=2)
    candidates = paths(3)
    store.set_candidates(candidates)
    new_path = Path("/photos/cat__IR__.jpg")

    store.apply_rename_result(candidates[1], new_path, "cat__IR__")

    assert store.candidates == [candidates[0], new_path, candidates[2]]
    assert store.visible == [candidates[0], new_path]
    assert store.visible_proposals == {new_path: "cat__IR__"}
    assert store.all_proposals == {new_path: "cat__IR__"}

    # Outside the visible window only the global map changes
    other = Path("/photos/dog__IR__.jpg")
    store.apply_rename_result(candidates[2], other, "dog__IR__")
    assert store.visible_proposals == {new_path: "cat__IR__"}
    assert store.all_proposals == {new_path: "cat__IR__", other: "dog__IR__"}
    assert store.candidates[2] == other


def test_rename_after_proposal_moves_key() -> None:
    store = CandidateStore(batch_size=5)
    old = Path("/photos/IMG_1.jpg")
    new = Path("/photos/cat__IR__.jpg")
    store.set_candidates([old])
    store.set_proposal(old, "cat")

    store.apply_rename_result(old, new, "cat__IR__")

    assert old not in store.all_proposals
    assert old not in store.visible_proposals
    assert store.all_proposals[new] == "cat__IR__"


def test_replace_candidate() -> None:
    store = CandidateStore(batch_size=5)
    heic = Path("/photos/IMG_1.heic")
    jpeg = Path("/photos/IMG_1.jpg")
    store.set_candidates([heic])

    store.replace_candidate(heic, jpeg)

    assert store.candidates == [jpeg]
    assert store.visible == [jpeg]


def test_error_replaces_proposal() -> None:
    store = CandidateStore()
    path = Path("/photos/IMG_1.jpg")
    store.set_candidates([path])
    store.set_proposal(path, "cat")

    store.record_error(path, "boom")

    assert store.errors == {path: "boom"}
    assert store.all_proposals == {}
    assert store.error_message is None


def test_run_bookkeeping() -> None:
    store = CandidateStore()
    store.set_candidates(paths(2))
    store.set_proposal(paths(2)[0], "old")

    store.begin_run(2)

    assert store.run_state == RunState.HEALTH_CHECKING
    assert store.is_processing
    assert store.all_proposals == {}
    assert (store.processed_count, store.total_count) == (0, 2)

    for _ in range(3):
        store.increment_processed()
    assert store.processed_count == 2

    store.set_run_state(RunState.COMPLETED)
    assert not store.is_processing


def test_subscribers_receive_snapshots() -> None:
    store = CandidateStore(batch_size=2)
    received: list[StoreSnapshot] = []
    unsubscribe = store.subscribe(received.append)

    store.set_candidates(paths(3))
    store.begin_run(3)
    store.increment_processed()

    assert [s.processed_count for s in received] == [0, 0, 1]
    assert received[0].visible == tuple(paths(3)[:2])
    assert received[0].has_next_batch
    assert received[-1].is_processing

    unsubscribe()
    store.increment_processed()
    assert len(received) == 3


def test_snapshot_is_read_only() -> None:
    store = CandidateStore()
    path = Path("/photos/IMG_1.jpg")
    store.set_candidates([path])
    store.set_proposal(path, "cat")

    snapshot = store.snapshot()
    store.set_proposal(path, "dog")

    assert snapshot.all_proposals[path] == "cat"
    with pytest.raises(TypeError):
        snapshot.all_proposals[path] = "bird"  # type: ignore[index]
    assert not snapshot.has_next_batch
