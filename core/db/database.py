"""Main database facade class."""
import sqlite3
import threading
from config import QUEUE_BATCH_SIZE
from core.db.library import LibraryManager
from core.db.preferences import PreferencesManager
from core.db.queues import QueueStore
from core.models import Queue, RepeatMode, Track


class MusicDatabase:
    """Facade class providing unified interface to all database operations.

    This class delegates to specialized manager classes for different domains:
    - PreferencesManager: repeat mode, volume
    - LibraryManager: tracks referenced by queues
    - QueueStore: queues, queue contents and the persisted playback cursor

    The connection is shared by the navigator, the playback bridge and the
    queue loader threads; every manager call holds the same reentrant lock.
    """

    def __init__(self, db_name: str, db_tables: dict[str, str], batch_size: int = QUEUE_BATCH_SIZE):
        """Initialize database connection and create tables if they don't exist."""
        self.db_name = db_name
        self.db_conn = sqlite3.connect(db_name, check_same_thread=False)
        self.db_cursor = self.db_conn.cursor()
        self.lock = threading.RLock()

        self.db_cursor.execute("PRAGMA foreign_keys = ON")

        # Create tables
        for _, create_sql in db_tables.items():
            self.db_cursor.execute(create_sql)

        # Initialize sub-managers
        self._preferences = PreferencesManager(self.db_conn, self.db_cursor, self.lock)
        self._library = LibraryManager(self.db_conn, self.db_cursor, self.lock)
        self._queues = QueueStore(self.db_conn, self.db_cursor, self.lock, batch_size=batch_size)

        self.db_conn.commit()

    def close(self):
        """Close the database connection."""
        self._queues.wait_for_loads()
        if hasattr(self, 'db_conn'):
            self.db_conn.close()

    # Preferences delegation methods
    def get_repeat_mode(self) -> RepeatMode:
        return self._preferences.get_repeat_mode()

    def set_repeat_mode(self, mode: RepeatMode):
        self._preferences.set_repeat_mode(mode)

    def get_volume(self) -> int:
        return self._preferences.get_volume()

    def set_volume(self, volume: int):
        self._preferences.set_volume(volume)

    # Library delegation methods
    def add_track(self, filepath: str, metadata: dict | None = None) -> int:
        return self._library.add_track(filepath, metadata)

    def get_track(self, track_id: int) -> Track | None:
        return self._library.get_track(track_id)

    def get_track_by_filepath(self, filepath: str) -> Track | None:
        return self._library.get_track_by_filepath(filepath)

    # Queue delegation methods
    def get_queue(self, queue_id: int) -> Queue:
        return self._queues.get_queue(queue_id)

    def list_queues(self) -> list[Queue]:
        return self._queues.list_queues()

    def get_active_queue(self) -> Queue | None:
        return self._queues.get_active_queue()

    def set_active_queue(self, queue_id: int):
        self._queues.set_active_queue(queue_id)

    def clear_active_queue(self):
        self._queues.clear_active_queue()

    def next_queue(self, excluded_queue_id: int) -> Queue | None:
        return self._queues.next_queue(excluded_queue_id)

    def delete_queue(self, queue_id: int) -> bool:
        return self._queues.delete_queue(queue_id)

    def queue_length(self, queue_id: int) -> int:
        return self._queues.length(queue_id)

    def get_current_index(self, queue_id: int) -> int:
        return self._queues.current_index(queue_id)

    def set_current_index(self, queue_id: int, index: int):
        self._queues.set_current_index(queue_id, index)

    def get_shuffle_seed(self, queue_id: int) -> int:
        return self._queues.shuffle_seed(queue_id)

    def set_shuffle_seed(self, queue_id: int, seed: int):
        self._queues.set_shuffle_seed(queue_id, seed)

    def get_shuffle_anchor(self, queue_id: int) -> int:
        return self._queues.shuffle_anchor(queue_id)

    def set_shuffle_anchor(self, queue_id: int, anchor: int):
        self._queues.set_shuffle_anchor(queue_id, anchor)

    def set_queue_cursor(self, queue_id: int, current_index: int, seed: int, anchor: int):
        self._queues.set_cursor(queue_id, current_index, seed, anchor)

    def track_at_sequential_position(self, queue_id: int, position: int) -> Track | None:
        return self._queues.track_at_sequential_position(queue_id, position)

    def track_at_shuffled_position(self, queue_id: int, position: int, seed: int, anchor: int) -> Track | None:
        return self._queues.track_at_shuffled_position(queue_id, position, seed, anchor)

    def get_queue_tracks(self, queue_id: int) -> list[Track]:
        return self._queues.get_queue_tracks(queue_id)

    def get_display_tracks(self, queue_id: int) -> list[Track]:
        return self._queues.get_display_tracks(queue_id)

    def create_or_reuse_queue(self, name: str, track_ids: list[int], clicked_index: int = 0) -> int:
        return self._queues.create_or_reuse_queue(name, track_ids, clicked_index)

    def wait_for_queue_loads(self, queue_id: int | None = None, timeout: float | None = None):
        self._queues.wait_for_loads(queue_id, timeout)

    def append_tracks(self, queue_id: int, track_ids: list[int]) -> int:
        return self._queues.append_tracks(queue_id, track_ids)

    def insert_tracks_after(self, queue_id: int, track_ids: list[int], after_position: int) -> int:
        return self._queues.insert_tracks_after(queue_id, track_ids, after_position)

    def remove_track_at(self, queue_id: int, position: int) -> int:
        return self._queues.remove_track_at(queue_id, position)

    def reorder_track(self, queue_id: int, from_position: int, to_position: int) -> int:
        return self._queues.reorder_track(queue_id, from_position, to_position)
