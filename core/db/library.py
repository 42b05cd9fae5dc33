from core.db.base import DatabaseManager
from core.logging import log_database_operation
from core.models import Track
from typing import Any

TRACK_COLUMNS = "id, filepath, title, artist, album, duration"
QUEUED_TRACK_COLUMNS = "t.id, t.filepath, t.title, t.artist, t.album, t.duration"


def row_to_track(row: tuple | None) -> Track | None:
    """Build a Track from a row selected with TRACK_COLUMNS."""
    if row is None:
        return None
    track_id, filepath, title, artist, album, duration = row
    return Track(id=track_id, filepath=filepath, title=title, artist=artist, album=album, duration=duration)


class LibraryManager(DatabaseManager):
    """Read-mostly access to library tracks referenced by queues."""

    def add_track(self, filepath: str, metadata: dict[str, Any] | None = None) -> int:
        """Add a file to the library, returning its id (existing id if already present)."""
        metadata = metadata or {}
        log_database_operation("INSERT", "tracks", filepath=filepath, title=metadata.get('title'))

        with self.transaction() as cursor:
            cursor.execute(
                '''
                INSERT OR IGNORE INTO tracks (filepath, title, artist, album, duration)
                VALUES (?, ?, ?, ?, ?)
                ''',
                (
                    filepath,
                    metadata.get('title'),
                    metadata.get('artist'),
                    metadata.get('album'),
                    metadata.get('duration'),
                ),
            )
            cursor.execute("SELECT id FROM tracks WHERE filepath = ?", (filepath,))
            return cursor.fetchone()[0]

    def get_track(self, track_id: int) -> Track | None:
        return row_to_track(self.fetchone(f"SELECT {TRACK_COLUMNS} FROM tracks WHERE id = ?", (track_id,)))

    def get_track_by_filepath(self, filepath: str) -> Track | None:
        return row_to_track(self.fetchone(f"SELECT {TRACK_COLUMNS} FROM tracks WHERE filepath = ?", (filepath,)))
