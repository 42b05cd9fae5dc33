from config import DEFAULT_REPEAT_MODE, DEFAULT_VOLUME
from core.db.base import DatabaseManager
from core.models import RepeatMode


class PreferencesManager(DatabaseManager):
    """Manages persisted player preferences."""

    def get_repeat_mode(self) -> RepeatMode:
        """Get repeat mode from settings."""
        value = self.get_preference('repeat_mode', DEFAULT_REPEAT_MODE)
        try:
            return RepeatMode(value)
        except ValueError:
            return RepeatMode.OFF

    def set_repeat_mode(self, mode: RepeatMode):
        """Set repeat mode in settings."""
        self.set_preference('repeat_mode', RepeatMode(mode).value)

    def get_volume(self) -> int:
        """Get volume from settings."""
        result = self.get_preference('volume')
        return int(result) if result else DEFAULT_VOLUME

    def set_volume(self, volume: int):
        """Set volume in settings."""
        if 0 <= volume <= 100:
            self.set_preference('volume', str(volume))

    def get_preference(self, key: str, default: str = '') -> str:
        """Get a preference value from settings."""
        result = self.fetchone("SELECT value FROM settings WHERE key = ?", (key,))
        return result[0] if result else default

    def set_preference(self, key: str, value: str):
        """Set a preference value."""
        with self.transaction() as cursor:
            cursor.execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value))
