"""Persisted queues: ordered track lists with a shuffle-aware playback cursor."""

import hashlib
import sqlite3
import threading
import time
from config import QUEUE_BATCH_SIZE, SEQUENTIAL_SEED
from core.db.base import DatabaseManager
from core.db.library import QUEUED_TRACK_COLUMNS, row_to_track
from core.errors import NotFound, PersistenceFailure
from core.logging import db_logger, log_error, log_queue_operation, queue_logger
from core.models import Queue, Track
from core.shuffle import display_order, unpermute
from eliot import log_message, start_action

QUEUE_COLUMNS = '''
    q.id, q.name, q.is_active, q.current_index, q.shuffle_seed, q.shuffle_anchor,
    (SELECT COUNT(*) FROM queue_tracks qt WHERE qt.queue_id = q.id)
'''


def content_hash(track_ids: list[int]) -> str:
    """Digest of an ordered track id sequence, used for queue reuse."""
    return hashlib.sha256(",".join(str(track_id) for track_id in track_ids).encode()).hexdigest()


def row_to_queue(row: tuple) -> Queue:
    queue_id, name, is_active, current_index, seed, anchor, length = row
    return Queue(
        id=queue_id,
        name=name,
        is_active=bool(is_active),
        current_index=current_index,
        shuffle_seed=seed,
        shuffle_anchor=anchor,
        length=length,
    )


class QueueStore(DatabaseManager):
    """Queue position store.

    Positions passed to the mutation methods are sequential (as-added order).
    After a mutation the cursor is re-anchored on the track that was current,
    so the playing track keeps its identity whatever the shuffle state.
    Mutations first wait for the queue's background load to finish; callers
    must not hold the store lock when calling them.
    """

    def __init__(self, db_conn, db_cursor, lock, batch_size: int = QUEUE_BATCH_SIZE):
        super().__init__(db_conn, db_cursor, lock)
        self.batch_size = max(1, batch_size)
        self._loaders: dict[int, threading.Thread] = {}

    # Queue records

    def get_queue(self, queue_id: int) -> Queue:
        row = self.fetchone(f"SELECT {QUEUE_COLUMNS} FROM queues q WHERE q.id = ?", (queue_id,))
        if row is None:
            raise NotFound(f"queue {queue_id} does not exist")
        return row_to_queue(row)

    def list_queues(self) -> list[Queue]:
        rows = self.fetchall(f"SELECT {QUEUE_COLUMNS} FROM queues q ORDER BY q.date_created ASC, q.id ASC")
        return [row_to_queue(row) for row in rows]

    def get_active_queue(self) -> Queue | None:
        row = self.fetchone(f"SELECT {QUEUE_COLUMNS} FROM queues q WHERE q.is_active = 1 LIMIT 1")
        return row_to_queue(row) if row else None

    def set_active_queue(self, queue_id: int) -> None:
        """Mark one queue active and every other queue inactive."""
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            cursor.execute("UPDATE queues SET is_active = (id = ?)", (queue_id,))
        log_queue_operation("set_active", queue_id=queue_id)

    def clear_active_queue(self) -> None:
        with self.transaction() as cursor:
            cursor.execute("UPDATE queues SET is_active = 0")

    def next_queue(self, excluded_queue_id: int) -> Queue | None:
        """Most recently modified queue other than ``excluded_queue_id``."""
        row = self.fetchone(
            f"SELECT {QUEUE_COLUMNS} FROM queues q WHERE q.id != ? ORDER BY q.date_modified DESC, q.id DESC LIMIT 1",
            (excluded_queue_id,),
        )
        return row_to_queue(row) if row else None

    def delete_queue(self, queue_id: int) -> bool:
        with self.transaction() as cursor:
            cursor.execute("DELETE FROM queue_tracks WHERE queue_id = ?", (queue_id,))
            cursor.execute("DELETE FROM queues WHERE id = ?", (queue_id,))
            deleted = cursor.rowcount > 0
        log_queue_operation("delete", queue_id=queue_id, deleted=deleted)
        return deleted

    # Cursor

    def length(self, queue_id: int) -> int:
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            return self._length(cursor, queue_id)

    def current_index(self, queue_id: int) -> int:
        return self._get_column(queue_id, "current_index")

    def set_current_index(self, queue_id: int, index: int) -> None:
        self._set_column(queue_id, "current_index", index)

    def shuffle_seed(self, queue_id: int) -> int:
        return self._get_column(queue_id, "shuffle_seed")

    def set_shuffle_seed(self, queue_id: int, seed: int) -> None:
        self._set_column(queue_id, "shuffle_seed", seed)

    def shuffle_anchor(self, queue_id: int) -> int:
        return self._get_column(queue_id, "shuffle_anchor")

    def set_shuffle_anchor(self, queue_id: int, anchor: int) -> None:
        self._set_column(queue_id, "shuffle_anchor", anchor)

    def set_cursor(self, queue_id: int, current_index: int, seed: int, anchor: int) -> None:
        """Persist index, seed and anchor in one transaction."""
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            cursor.execute(
                '''
                UPDATE queues SET current_index = ?, shuffle_seed = ?, shuffle_anchor = ?, date_modified = ?
                WHERE id = ?
                ''',
                (current_index, seed, anchor, int(time.time()), queue_id),
            )

    # Track lookups

    def track_at_sequential_position(self, queue_id: int, position: int) -> Track | None:
        if position < 0:
            return None
        row = self.fetchone(
            f'''
            SELECT {QUEUED_TRACK_COLUMNS}
            FROM queue_tracks qt JOIN tracks t ON t.id = qt.track_id
            WHERE qt.queue_id = ? AND qt.position = ?
            ''',
            (queue_id, position),
        )
        return row_to_track(row)

    def track_at_shuffled_position(self, queue_id: int, position: int, seed: int, anchor: int) -> Track | None:
        """Track shown at display ``position`` under the shuffle ``(seed, anchor)``."""
        with self._lock:
            length = self.length(queue_id)
            if not 0 <= position < length or not 0 <= anchor < length:
                return None
            return self.track_at_sequential_position(queue_id, unpermute(length, seed, anchor, position))

    def get_queue_tracks(self, queue_id: int) -> list[Track]:
        """Tracks in sequential order."""
        rows = self.fetchall(
            f'''
            SELECT {QUEUED_TRACK_COLUMNS}
            FROM queue_tracks qt JOIN tracks t ON t.id = qt.track_id
            WHERE qt.queue_id = ?
            ORDER BY qt.position ASC
            ''',
            (queue_id,),
        )
        return [row_to_track(row) for row in rows]

    def get_display_tracks(self, queue_id: int) -> list[Track]:
        """Tracks in the queue's active order (sequential or shuffled)."""
        with self._lock:
            queue = self.get_queue(queue_id)
            tracks = self.get_queue_tracks(queue_id)
        if not tracks or not queue.is_shuffled or queue.shuffle_anchor >= len(tracks):
            return tracks
        return [tracks[index] for index in display_order(len(tracks), queue.shuffle_seed, queue.shuffle_anchor)]

    # Creation

    def create_or_reuse_queue(self, name: str, track_ids: list[int], clicked_index: int = 0) -> int:
        """Return the id of a queue holding exactly ``track_ids``, creating it if needed.

        A new queue gets its first batch (always covering ``clicked_index``)
        written before returning; the rest is appended by a background loader.
        """
        if not track_ids:
            raise NotFound("cannot create an empty queue")

        digest = content_hash(track_ids)
        with start_action(db_logger, "create_or_reuse_queue", name=name, count=len(track_ids)):
            with self.transaction() as cursor:
                cursor.execute(
                    "SELECT id FROM queues WHERE content_hash = ? ORDER BY id ASC LIMIT 1",
                    (digest,),
                )
                existing = cursor.fetchone()
                if existing:
                    log_message(message_type="queue_reused", queue_id=existing[0], name=name)
                    return existing[0]

                now = int(time.time())
                cursor.execute(
                    '''
                    INSERT INTO queues (name, current_index, shuffle_seed, shuffle_anchor, content_hash, date_created, date_modified)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ''',
                    (self._unique_name(cursor, name), 0, SEQUENTIAL_SEED, 0, digest, now, now),
                )
                queue_id = cursor.lastrowid

                first_batch = max(self.batch_size, clicked_index + 1)
                self._insert_rows(cursor, queue_id, track_ids[:first_batch], start=0)

            remaining = track_ids[first_batch:]
            if remaining:
                self._start_loader(queue_id, remaining, start=first_batch)

            log_queue_operation("create", queue_id=queue_id, count=len(track_ids), streamed=len(remaining))
            return queue_id

    def wait_for_loads(self, queue_id: int | None = None, timeout: float | None = None) -> None:
        """Block until background loading finishes (for one queue or all)."""
        if queue_id is not None:
            loaders = [self._loaders.get(queue_id)]
        else:
            loaders = list(self._loaders.values())
        for loader in loaders:
            if loader is not None:
                loader.join(timeout)

    def is_loading(self, queue_id: int) -> bool:
        loader = self._loaders.get(queue_id)
        return loader is not None and loader.is_alive()

    def _start_loader(self, queue_id: int, track_ids: list[int], start: int) -> None:
        def load():
            position = start
            try:
                with start_action(queue_logger, "queue_background_load", queue_id=queue_id, count=len(track_ids)):
                    for offset in range(0, len(track_ids), self.batch_size):
                        batch = track_ids[offset : offset + self.batch_size]
                        with self.transaction() as cursor:
                            if not self._exists(cursor, queue_id):
                                log_message(message_type="queue_load_abandoned", queue_id=queue_id)
                                return
                            self._insert_rows(cursor, queue_id, batch, start=position)
                        position += len(batch)
                    log_message(message_type="queue_load_complete", queue_id=queue_id, length=position)
            except PersistenceFailure as e:
                log_error(queue_logger, e, context="queue_batch_load", queue_id=queue_id)
            finally:
                self._loaders.pop(queue_id, None)

        loader = threading.Thread(target=load, name=f"queue-loader-{queue_id}", daemon=True)
        self._loaders[queue_id] = loader
        loader.start()

    # Mutations

    def append_tracks(self, queue_id: int, track_ids: list[int]) -> int:
        """Append tracks to the end of the queue, returning the new length."""
        self.wait_for_loads(queue_id)
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            current = self._current_sequential(cursor, queue_id)
            length = self._length(cursor, queue_id)
            self._insert_rows(cursor, queue_id, track_ids, start=length)
            new_length = length + len(track_ids)
            self._reanchor(cursor, queue_id, current if current is not None else 0, new_length)
            self._rehash(cursor, queue_id)
        log_queue_operation("append", queue_id=queue_id, count=len(track_ids))
        return new_length

    def insert_tracks_after(self, queue_id: int, track_ids: list[int], after_position: int) -> int:
        """Insert tracks after a sequential position (-1 inserts at the front)."""
        self.wait_for_loads(queue_id)
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            length = self._length(cursor, queue_id)
            after_position = max(-1, min(after_position, length - 1))
            current = self._current_sequential(cursor, queue_id)

            cursor.execute(
                "UPDATE queue_tracks SET position = position + ? WHERE queue_id = ? AND position > ?",
                (len(track_ids), queue_id, after_position),
            )
            self._insert_rows(cursor, queue_id, track_ids, start=after_position + 1)

            if current is None:
                current = 0
            elif current > after_position:
                current += len(track_ids)
            new_length = length + len(track_ids)
            self._reanchor(cursor, queue_id, current, new_length)
            self._rehash(cursor, queue_id)
        log_queue_operation("insert", queue_id=queue_id, count=len(track_ids), after_position=after_position)
        return new_length

    def remove_track_at(self, queue_id: int, position: int) -> int:
        """Remove the track at a sequential position, returning the new length."""
        self.wait_for_loads(queue_id)
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            length = self._length(cursor, queue_id)
            if not 0 <= position < length:
                raise NotFound(f"position {position} out of range for queue {queue_id}")
            current = self._current_sequential(cursor, queue_id)

            cursor.execute("DELETE FROM queue_tracks WHERE queue_id = ? AND position = ?", (queue_id, position))
            cursor.execute(
                "UPDATE queue_tracks SET position = position - 1 WHERE queue_id = ? AND position > ?",
                (queue_id, position),
            )

            new_length = length - 1
            if current is not None and position < current:
                current -= 1
            self._reanchor(cursor, queue_id, current or 0, new_length)
            self._rehash(cursor, queue_id)
        log_queue_operation("remove", queue_id=queue_id, position=position)
        return new_length

    def reorder_track(self, queue_id: int, from_position: int, to_position: int) -> int:
        """Move a track between sequential positions, returning the new current index."""
        self.wait_for_loads(queue_id)
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            length = self._length(cursor, queue_id)
            if not (0 <= from_position < length) or not (0 <= to_position < length):
                raise NotFound(f"reorder {from_position} -> {to_position} out of range for queue {queue_id}")

            current = self._current_sequential(cursor, queue_id)
            if from_position != to_position:
                cursor.execute(
                    "SELECT id FROM queue_tracks WHERE queue_id = ? AND position = ?",
                    (queue_id, from_position),
                )
                row_id = cursor.fetchone()[0]
                if from_position < to_position:
                    cursor.execute(
                        '''
                        UPDATE queue_tracks SET position = position - 1
                        WHERE queue_id = ? AND position > ? AND position <= ?
                        ''',
                        (queue_id, from_position, to_position),
                    )
                else:
                    cursor.execute(
                        '''
                        UPDATE queue_tracks SET position = position + 1
                        WHERE queue_id = ? AND position >= ? AND position < ?
                        ''',
                        (queue_id, to_position, from_position),
                    )
                cursor.execute("UPDATE queue_tracks SET position = ? WHERE id = ?", (to_position, row_id))

                if current == from_position:
                    current = to_position
                elif from_position < current <= to_position:
                    current -= 1
                elif to_position <= current < from_position:
                    current += 1

            new_index = self._reanchor(cursor, queue_id, current, length)
            self._rehash(cursor, queue_id)
        log_queue_operation("reorder", queue_id=queue_id, from_position=from_position, to_position=to_position)
        return new_index

    # Helpers (callers hold the transaction)

    def _exists(self, cursor: sqlite3.Cursor, queue_id: int) -> bool:
        cursor.execute("SELECT 1 FROM queues WHERE id = ?", (queue_id,))
        return cursor.fetchone() is not None

    def _require(self, cursor: sqlite3.Cursor, queue_id: int) -> None:
        if not self._exists(cursor, queue_id):
            raise NotFound(f"queue {queue_id} does not exist")

    def _length(self, cursor: sqlite3.Cursor, queue_id: int) -> int:
        cursor.execute("SELECT COUNT(*) FROM queue_tracks WHERE queue_id = ?", (queue_id,))
        return cursor.fetchone()[0]

    def _get_column(self, queue_id: int, column: str) -> int:
        row = self.fetchone(f"SELECT {column} FROM queues WHERE id = ?", (queue_id,))
        if row is None:
            raise NotFound(f"queue {queue_id} does not exist")
        return row[0]

    def _set_column(self, queue_id: int, column: str, value: int) -> None:
        with self.transaction() as cursor:
            self._require(cursor, queue_id)
            cursor.execute(
                f"UPDATE queues SET {column} = ?, date_modified = ? WHERE id = ?",
                (value, int(time.time()), queue_id),
            )

    def _current_sequential(self, cursor: sqlite3.Cursor, queue_id: int) -> int | None:
        """Sequential index of the queue's current track, or None for an empty queue."""
        length = self._length(cursor, queue_id)
        if length == 0:
            return None
        cursor.execute("SELECT current_index, shuffle_seed, shuffle_anchor FROM queues WHERE id = ?", (queue_id,))
        index, seed, anchor = cursor.fetchone()
        index = max(0, min(index, length - 1))
        if seed == SEQUENTIAL_SEED or not 0 <= anchor < length:
            return index
        return unpermute(length, seed, anchor, index)

    def _reanchor(self, cursor: sqlite3.Cursor, queue_id: int, current: int, length: int) -> int:
        """Pin the shuffle on the current track; its display index becomes its sequential index."""
        index = max(0, min(current, length - 1)) if length else 0
        cursor.execute(
            "UPDATE queues SET current_index = ?, shuffle_anchor = ?, date_modified = ? WHERE id = ?",
            (index, index, int(time.time()), queue_id),
        )
        return index

    def _insert_rows(self, cursor: sqlite3.Cursor, queue_id: int, track_ids: list[int], start: int) -> None:
        cursor.executemany(
            "INSERT INTO queue_tracks (queue_id, track_id, position) VALUES (?, ?, ?)",
            [(queue_id, track_id, start + offset) for offset, track_id in enumerate(track_ids)],
        )

    def _unique_name(self, cursor: sqlite3.Cursor, name: str) -> str:
        candidate, suffix = name, 2
        while True:
            cursor.execute("SELECT 1 FROM queues WHERE name = ?", (candidate,))
            if cursor.fetchone() is None:
                return candidate
            candidate = f"{name} ({suffix})"
            suffix += 1

    def _rehash(self, cursor: sqlite3.Cursor, queue_id: int) -> None:
        """Keep content-addressed reuse pointed at what the queue holds now."""
        cursor.execute("SELECT track_id FROM queue_tracks WHERE queue_id = ? ORDER BY position ASC", (queue_id,))
        digest = content_hash([row[0] for row in cursor.fetchall()])
        cursor.execute("UPDATE queues SET content_hash = ? WHERE id = ?", (digest, queue_id))
