"""Property-based tests for PositionNavigator using Hypothesis.

Each example builds a fresh in-memory store, plays one track from a queue
of random length and checks that shuffle toggling and boundary navigation
never change which track is current unexpectedly.
"""

import sys
from contextlib import contextmanager
from hypothesis import given, strategies as st
from pathlib import Path
from unittest.mock import Mock

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.artwork import ArtworkCache
from core.db import DB_TABLES, MusicDatabase
from core.models import RepeatMode
from core.navigator import PositionNavigator
from core.shuffle import MAX_SEED
from tests.helpers.queues import add_tracks


@contextmanager
def playing(length: int, index: int, seeds):
    """Navigator playing sequential ``index`` of a ``length``-track queue."""
    db = MusicDatabase(':memory:', DB_TABLES)
    try:
        seed_iter = iter(seeds)
        navigator = PositionNavigator(
            db,
            Mock(),
            ArtworkCache(loader=Mock(return_value=None)),
            seed_factory=lambda previous: next(seed_iter),
        )
        track_ids = add_tracks(db, [f"T{i}" for i in range(length)])
        navigator.create_or_reuse_queue_from_selection("Library", track_ids, index)
        yield navigator
    finally:
        db.close()


@st.composite
def cursors(draw, max_length=30):
    length = draw(st.integers(min_value=1, max_value=max_length))
    index = draw(st.integers(min_value=0, max_value=length - 1))
    return length, index


seeds = st.integers(min_value=2, max_value=MAX_SEED)


class TestToggleProperties:
    @given(cursor=cursors(), seed=seeds)
    def test_toggle_keeps_track(self, cursor, seed):
        length, index = cursor
        with playing(length, index, [seed]) as navigator:
            before = navigator.get_current_track()
            snapshot = navigator.toggle_shuffle()
            assert snapshot.track == before
            assert snapshot.display_index == index

    @given(cursor=cursors(), seed=seeds, steps=st.integers(min_value=0, max_value=10))
    def test_double_toggle_round_trip(self, cursor, seed, steps):
        length, index = cursor
        with playing(length, index, [seed]) as navigator:
            navigator.toggle_shuffle()
            for _ in range(steps):
                navigator.next()
            during = navigator.get_current_track()

            snapshot = navigator.toggle_shuffle()

            assert snapshot.shuffle_seed == 1
            assert snapshot.track == during
            assert [t.id for t in navigator.db.get_display_tracks(snapshot.queue_id)] == [
                t.id for t in navigator.db.get_queue_tracks(snapshot.queue_id)
            ]

    @given(cursor=cursors(), seed_list=st.lists(seeds, min_size=4, max_size=4))
    def test_repeated_toggles_keep_track(self, cursor, seed_list):
        length, index = cursor
        with playing(length, index, seed_list) as navigator:
            before = navigator.get_current_track()
            for _ in range(7):
                assert navigator.toggle_shuffle().track == before


class TestBoundaryProperties:
    @given(length=st.integers(min_value=1, max_value=30), shuffled=st.booleans(), seed=seeds)
    def test_next_at_end_is_noop(self, length, shuffled, seed):
        with playing(length, 0, [seed]) as navigator:
            if shuffled:
                navigator.toggle_shuffle()
            navigator.jump_to(length - 1)
            before = navigator.get_state()
            assert navigator.next() is False
            assert navigator.get_state() == before

    @given(length=st.integers(min_value=1, max_value=30), shuffled=st.booleans(), seed=seeds)
    def test_repeat_queue_wraps(self, length, shuffled, seed):
        with playing(length, 0, [seed]) as navigator:
            if shuffled:
                navigator.toggle_shuffle()
            navigator.set_repeat_mode(RepeatMode.QUEUE)
            navigator.jump_to(length - 1)
            assert navigator.next() is True
            assert navigator.get_current_display_index() == 0

    @given(cursor=cursors(), seed=seeds)
    def test_previous_at_start_is_noop(self, cursor, seed):
        length, index = cursor
        with playing(length, index, [seed]) as navigator:
            navigator.toggle_shuffle()
            navigator.jump_to(0)
            before = navigator.get_state()
            assert navigator.previous() is False
            assert navigator.get_state() == before

    @given(cursor=cursors(), seed=seeds)
    def test_walk_visits_every_track_once(self, cursor, seed):
        """Walking a shuffled queue from display 0 plays each queued entry exactly once."""
        length, index = cursor
        with playing(length, index, [seed]) as navigator:
            navigator.toggle_shuffle()
            navigator.jump_to(0)
            seen = [navigator.get_current_track().id]
            while navigator.next():
                seen.append(navigator.get_current_track().id)
            assert sorted(seen) == sorted(t.id for t in navigator.db.get_queue_tracks(navigator.get_current_queue_id()))
