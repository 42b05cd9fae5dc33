"""Position navigator.

Owns the playback cursor (active queue, display index, shuffle seed and
anchor, current track) and is its only writer. Every operation runs under one
reentrant lock, persists through the queue store, starts playback on the
device, and only then commits the new cursor locally and notifies observers.
"""

import threading
from collections.abc import Callable
from config import SEQUENTIAL_SEED
from core.artwork import ArtworkCache
from core.errors import NotFound, PersistenceFailure, PlaybackFailure
from core.logging import log_error, log_player_action, navigator_logger
from core.models import NavigatorSnapshot, RepeatMode, Track
from core.shuffle import fresh_seed, permute, unpermute
from dataclasses import dataclass, replace
from eliot import log_message, start_action

Listener = Callable[[NavigatorSnapshot], None]


@dataclass
class NavigatorState:
    """The navigator's cursor. Never handed out; observers get snapshots."""

    queue_id: int | None = None
    display_index: int | None = None
    shuffle_seed: int = SEQUENTIAL_SEED
    shuffle_anchor: int = 0
    track: Track | None = None
    repeat_mode: RepeatMode = RepeatMode.OFF

    @property
    def is_shuffled(self) -> bool:
        return self.shuffle_seed != SEQUENTIAL_SEED

    def sequential_index(self, length: int) -> int:
        """Sequential index of the current track in a queue of ``length``."""
        if not self.is_shuffled or not 0 <= self.shuffle_anchor < length:
            return self.display_index
        return unpermute(length, self.shuffle_seed, self.shuffle_anchor, self.display_index)

    def snapshot(self) -> NavigatorSnapshot:
        return NavigatorSnapshot(
            queue_id=self.queue_id,
            display_index=self.display_index,
            shuffle_seed=self.shuffle_seed,
            shuffle_anchor=self.shuffle_anchor,
            track=self.track,
            repeat_mode=self.repeat_mode,
        )


class PositionNavigator:
    """Next/previous/shuffle/jump over the active queue.

    Args:
        db: MusicDatabase (queue store, library and preferences)
        device: Playback device with ``play``/``stop``
        artwork: Cache refreshed on every track change
        seed_factory: Called as ``seed_factory(previous)`` to pick a shuffle seed
    """

    def __init__(self, db, device, artwork: ArtworkCache | None = None, seed_factory=fresh_seed):
        self.db = db
        self.device = device
        self.artwork = artwork or ArtworkCache()
        self._seed_factory = seed_factory
        self._lock = threading.RLock()
        self._state = NavigatorState(repeat_mode=db.get_repeat_mode())
        self._last_seeds: dict[int, int] = {}
        self._track_listeners: list[Listener] = []
        self._shuffle_listeners: list[Listener] = []

    # Observers

    def subscribe_track_changed(self, callback: Listener) -> Callable[[], None]:
        """Call ``callback(snapshot)`` whenever the current track changes. Returns an unsubscribe function."""
        return self._subscribe(self._track_listeners, callback)

    def subscribe_shuffle_changed(self, callback: Listener) -> Callable[[], None]:
        """Call ``callback(snapshot)`` whenever shuffle is toggled. Returns an unsubscribe function."""
        return self._subscribe(self._shuffle_listeners, callback)

    def _subscribe(self, listeners: list[Listener], callback: Listener) -> Callable[[], None]:
        with self._lock:
            listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def _notify(self, listeners: list[Listener]) -> None:
        snapshot = self._state.snapshot()
        for callback in list(listeners):
            try:
                callback(snapshot)
            except Exception as e:
                log_error(navigator_logger, e, context="navigator_listener")

    # UI getters

    def get_current_queue_id(self) -> int | None:
        with self._lock:
            return self._state.queue_id

    def get_current_display_index(self) -> int | None:
        with self._lock:
            return self._state.display_index

    def get_current_track(self) -> Track | None:
        with self._lock:
            return self._state.track

    def get_state(self) -> NavigatorSnapshot:
        with self._lock:
            return self._state.snapshot()

    # Navigation

    def next(self, trigger_source: str = "gui") -> bool:
        """Advance one display position. Returns False when nothing was played.

        At the end of the queue this is a no-op unless repeat-queue is on, in
        which case it wraps to display index 0.
        """
        with self._lock, start_action(navigator_logger, "navigator_next", trigger_source=trigger_source):
            if self._state.queue_id is None:
                return False
            try:
                length = self.db.queue_length(self._state.queue_id)
                target = self._state.display_index + 1
                if target >= length:
                    if self._state.repeat_mode is not RepeatMode.QUEUE:
                        log_message(message_type="end_of_queue", queue_id=self._state.queue_id)
                        return False
                    target = 0
                self._move_to(target, "next", trigger_source)
            except NotFound as e:
                log_message(message_type="navigation_skipped", action="next", reason=str(e))
                return False
            return True

    def previous(self, trigger_source: str = "gui") -> bool:
        """Go back one display position. No-op at the start of the queue."""
        with self._lock, start_action(navigator_logger, "navigator_previous", trigger_source=trigger_source):
            if self._state.queue_id is None:
                return False
            target = self._state.display_index - 1
            if target < 0:
                log_message(message_type="start_of_queue", queue_id=self._state.queue_id)
                return False
            try:
                self._move_to(target, "previous", trigger_source)
            except NotFound as e:
                log_message(message_type="navigation_skipped", action="previous", reason=str(e))
                return False
            return True

    def jump_to(self, display_index: int, trigger_source: str = "gui") -> Track:
        """Play the row the user clicked (``display_index`` is already in the active order).

        Raises:
            NotFound: If there is no active queue or the index is out of range
        """
        with self._lock, start_action(navigator_logger, "navigator_jump_to", display_index=display_index):
            if self._state.queue_id is None:
                raise NotFound("no active queue")
            return self._move_to(display_index, "jump_to", trigger_source)

    def on_track_ended(self, filepath: str | None = None) -> bool:
        """Auto-advance after the device finished a track.

        Behaves like ``next()``; at the end of the queue repeat-one replays the
        last track and repeat-queue wraps. An end reported for ``filepath``
        other than the current track's is stale and ignored.
        """
        with self._lock, start_action(navigator_logger, "navigator_track_ended", filepath=filepath):
            state = self._state
            if state.queue_id is None or state.track is None:
                return False
            if filepath is not None and filepath != state.track.filepath:
                log_message(message_type="stale_track_end", filepath=filepath, current=state.track.filepath)
                return False
            if state.repeat_mode is RepeatMode.ONE:
                try:
                    at_end = state.display_index + 1 >= self.db.queue_length(state.queue_id)
                except NotFound as e:
                    log_message(message_type="navigation_skipped", action="track_ended", reason=str(e))
                    return False
                if at_end:
                    self._play(state.track, "repeat_one", "automatic")
                    return True
            return self.next(trigger_source="automatic")

    def toggle_shuffle(self) -> NavigatorSnapshot:
        """Switch between sequential and a fresh shuffled order.

        The current track keeps playing and keeps its display index; only the
        other tracks move.
        """
        with self._lock, start_action(navigator_logger, "navigator_toggle_shuffle") as action:
            state = self._state
            if state.queue_id is None or state.track is None:
                raise NotFound("no active queue")
            queue_id = state.queue_id

            # A shuffle is defined over a fixed length
            self.db.wait_for_queue_loads(queue_id)
            length = self.db.queue_length(queue_id)
            original = state.sequential_index(length)

            if state.is_shuffled:
                self._last_seeds[queue_id] = state.shuffle_seed
                seed = SEQUENTIAL_SEED
            else:
                seed = self._seed_factory(self._last_seeds.get(queue_id))

            display_index = permute(length, seed, original, original)
            self._persist(queue_id, display_index, seed, original, "toggle_shuffle")

            self._state = replace(state, display_index=display_index, shuffle_seed=seed, shuffle_anchor=original)
            action.add_success_fields(shuffle_seed=seed, shuffle_anchor=original)
            log_player_action(
                "toggle_shuffle",
                trigger_source="gui",
                old_state="shuffled" if state.is_shuffled else "sequential",
                new_state="shuffled" if self._state.is_shuffled else "sequential",
                description=f"Shuffle {'enabled' if self._state.is_shuffled else 'disabled'}",
            )
            self._notify(self._shuffle_listeners)
            return self._state.snapshot()

    # Repeat mode

    def set_repeat_mode(self, mode: RepeatMode) -> RepeatMode:
        with self._lock:
            mode = RepeatMode(mode)
            self.db.set_repeat_mode(mode)
            self._state = replace(self._state, repeat_mode=mode)
            log_player_action("set_repeat_mode", trigger_source="gui", description=f"Repeat mode: {mode.value}")
            return mode

    def cycle_repeat_mode(self) -> RepeatMode:
        """OFF → QUEUE → ONE → OFF."""
        with self._lock:
            return self.set_repeat_mode(self._state.repeat_mode.cycle())

    # Queue lifecycle

    def activate_queue(self, queue_id: int, play: bool = True) -> NavigatorSnapshot:
        """Make ``queue_id`` the active queue at its persisted cursor.

        Raises:
            NotFound: If the queue does not exist or is empty
        """
        with self._lock, start_action(navigator_logger, "navigator_activate_queue", queue_id=queue_id):
            queue = self.db.get_queue(queue_id)
            if queue.length == 0:
                raise NotFound(f"queue {queue_id} is empty")
            anchor = min(queue.shuffle_anchor, queue.length - 1)
            index = min(queue.current_index, queue.length - 1)
            self._open(queue_id, index, queue.shuffle_seed, anchor, play, "activate_queue", "gui")
            return self._state.snapshot()

    def restore_active_queue(self, play: bool = False) -> NavigatorSnapshot | None:
        """Pick up the queue that was active when the app last exited."""
        with self._lock:
            queue = self.db.get_active_queue()
            if queue is None or queue.length == 0:
                return None
            return self.activate_queue(queue.id, play=play)

    def create_or_reuse_queue_from_selection(self, name: str, track_ids: list[int], clicked_index: int) -> int:
        """Play ``track_ids[clicked_index]`` from a library view, through a new or reused queue.

        ``clicked_index`` is the row in the selection, i.e. a sequential index;
        a reused queue may be shuffled, so it is mapped into the display order.
        Returns the queue id.
        """
        with self._lock, start_action(
            navigator_logger, "navigator_queue_from_selection", name=name, count=len(track_ids), clicked_index=clicked_index
        ):
            if not 0 <= clicked_index < len(track_ids):
                raise NotFound(f"clicked index {clicked_index} out of range")
            queue_id = self.db.create_or_reuse_queue(name, track_ids, clicked_index)
            queue = self.db.get_queue(queue_id)

            display_index = clicked_index
            if queue.is_shuffled:
                self.db.wait_for_queue_loads(queue_id)
                length = self.db.queue_length(queue_id)
                display_index = permute(length, queue.shuffle_seed, queue.shuffle_anchor, clicked_index)

            self._open(queue_id, display_index, queue.shuffle_seed, queue.shuffle_anchor, True, "play_selection", "gui")
            return queue_id

    def delete_queue(self, queue_id: int) -> None:
        """Delete a queue, handing playback over to another queue if it was active."""
        with self._lock, start_action(navigator_logger, "navigator_delete_queue", queue_id=queue_id):
            if not self.db.delete_queue(queue_id):
                raise NotFound(f"queue {queue_id} does not exist")
            self.on_queue_deleted(queue_id)

    def on_queue_deleted(self, deleted_queue_id: int) -> None:
        """Move playback to a replacement queue, or go idle if none has tracks."""
        with self._lock, start_action(navigator_logger, "navigator_queue_deleted", queue_id=deleted_queue_id):
            self._last_seeds.pop(deleted_queue_id, None)
            if deleted_queue_id != self._state.queue_id:
                return
            self.device.stop()

            # Nothing may point at the deleted queue, even if the handover below fails
            self.db.clear_active_queue()
            self._go_idle("queue_deleted")

            replacement = self.db.next_queue(deleted_queue_id)
            if replacement is None or replacement.length == 0:
                replacement = next(
                    (q for q in self.db.list_queues() if q.id != deleted_queue_id and q.length > 0),
                    None,
                )

            if replacement is None:
                return

            log_message(message_type="queue_replaced", deleted=deleted_queue_id, replacement=replacement.id)
            self.activate_queue(replacement.id, play=True)

    # Queue mutations (positions are display positions of the active queue)

    def append_tracks(self, track_ids: list[int]) -> int:
        with self._lock:
            queue_id = self._require_queue()
            self.db.wait_for_queue_loads(queue_id)
            length = self.db.append_tracks(queue_id, track_ids)
            self._reload_cursor(queue_id)
            return length

    def insert_tracks_after_current(self, track_ids: list[int]) -> int:
        """Queue tracks to play right after the current one (sequential order)."""
        with self._lock:
            queue_id = self._require_queue()
            self.db.wait_for_queue_loads(queue_id)
            current = self._state.sequential_index(self.db.queue_length(queue_id))
            length = self.db.insert_tracks_after(queue_id, track_ids, current)
            self._reload_cursor(queue_id)
            return length

    def remove_track_at(self, display_index: int) -> int:
        """Remove a row. Removing the current track stops playback on the track that follows it."""
        with self._lock, start_action(navigator_logger, "navigator_remove_track", display_index=display_index):
            queue_id = self._require_queue()
            self.db.wait_for_queue_loads(queue_id)
            length = self.db.queue_length(queue_id)
            position = self._to_sequential(display_index, length)
            removed_current = position == self._state.sequential_index(length)

            new_length = self.db.remove_track_at(queue_id, position)
            if removed_current:
                self.device.stop()
            if new_length == 0:
                self.db.clear_active_queue()
                self._go_idle("queue_emptied")
            else:
                self._reload_cursor(queue_id, force_track_changed=removed_current)
            return new_length

    def reorder_track(self, from_index: int, to_index: int) -> int:
        """Move a row; the current track keeps playing. Returns the new display index."""
        with self._lock, start_action(navigator_logger, "navigator_reorder_track", from_index=from_index, to_index=to_index):
            queue_id = self._require_queue()
            self.db.wait_for_queue_loads(queue_id)
            length = self.db.queue_length(queue_id)
            self.db.reorder_track(queue_id, self._to_sequential(from_index, length), self._to_sequential(to_index, length))
            self._reload_cursor(queue_id)
            return self._state.display_index

    # Internals (callers hold the lock)

    def _require_queue(self) -> int:
        if self._state.queue_id is None:
            raise NotFound("no active queue")
        return self._state.queue_id

    def _to_sequential(self, display_index: int, length: int) -> int:
        if not 0 <= display_index < length:
            raise NotFound(f"position {display_index} out of range for queue of {length}")
        state = self._state
        if not state.is_shuffled or not 0 <= state.shuffle_anchor < length:
            return display_index
        return unpermute(length, state.shuffle_seed, state.shuffle_anchor, display_index)

    def _move_to(self, display_index: int, action: str, trigger_source: str) -> Track:
        state = self._state
        return self._open(
            state.queue_id, display_index, state.shuffle_seed, state.shuffle_anchor, True, action, trigger_source
        )

    def _open(
        self,
        queue_id: int,
        display_index: int,
        seed: int,
        anchor: int,
        play: bool,
        action: str,
        trigger_source: str,
    ) -> Track:
        """Resolve, persist, play, then commit. Local state is untouched on failure."""
        track = self.db.track_at_shuffled_position(queue_id, display_index, seed, anchor)
        if track is None:
            raise NotFound(f"no track at position {display_index} in queue {queue_id}")

        previous = self._state
        switching = queue_id != previous.queue_id

        self._persist(queue_id, display_index, seed, anchor, action, activate=switching)
        if play:
            try:
                self._play(track, action, trigger_source)
            except PlaybackFailure:
                self._rollback(previous, queue_id, switching)
                raise

        self._state = replace(
            previous,
            queue_id=queue_id,
            display_index=display_index,
            shuffle_seed=seed,
            shuffle_anchor=anchor,
            track=track,
        )
        self.artwork.refresh(track)
        self._notify(self._track_listeners)
        if switching or seed != previous.shuffle_seed:
            self._notify(self._shuffle_listeners)
        return track

    def _persist(self, queue_id: int, display_index: int, seed: int, anchor: int, action: str, activate=False):
        try:
            self.db.set_queue_cursor(queue_id, display_index, seed, anchor)
            if activate:
                self.db.set_active_queue(queue_id)
        except PersistenceFailure as e:
            log_error(navigator_logger, e, operation=action, queue_id=queue_id)
            raise

    def _play(self, track: Track, action: str, trigger_source: str) -> None:
        try:
            self.device.play(track.filepath)
        except PlaybackFailure as e:
            log_error(navigator_logger, e, operation=action, filepath=track.filepath)
            raise
        log_player_action(
            action,
            trigger_source=trigger_source,
            track=track.display_name,
            description=f"{action.replace('_', ' ').capitalize()}: {track.display_name}",
        )

    def _rollback(self, previous: NavigatorState, queue_id: int, switching: bool) -> None:
        """Put the persisted cursor back after the device refused to play."""
        try:
            if not switching:
                self.db.set_queue_cursor(
                    queue_id, previous.display_index, previous.shuffle_seed, previous.shuffle_anchor
                )
            elif previous.queue_id is None:
                self.db.clear_active_queue()
            else:
                self.db.set_active_queue(previous.queue_id)
        except (NotFound, PersistenceFailure) as e:
            log_error(navigator_logger, e, context="cursor_rollback", queue_id=queue_id)

    def _reload_cursor(self, queue_id: int, force_track_changed: bool = False) -> None:
        """Re-read the cursor after the store re-anchored it for a mutation."""
        queue = self.db.get_queue(queue_id)
        track = self.db.track_at_shuffled_position(
            queue_id, queue.current_index, queue.shuffle_seed, queue.shuffle_anchor
        )
        previous = self._state
        self._state = replace(
            previous,
            display_index=queue.current_index,
            shuffle_seed=queue.shuffle_seed,
            shuffle_anchor=queue.shuffle_anchor,
            track=track,
        )
        if force_track_changed or track != previous.track:
            self.artwork.refresh(track)
            self._notify(self._track_listeners)

    def _go_idle(self, reason: str) -> None:
        self._state = NavigatorState(repeat_mode=self._state.repeat_mode)
        self.artwork.clear()
        log_player_action("idle", trigger_source="automatic", description=f"Playback idle: {reason.replace('_', ' ')}")
        self._notify(self._track_listeners)
        self._notify(self._shuffle_listeners)
