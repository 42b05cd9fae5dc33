"""libVLC playback device used by the navigator and polled by the playback bridge."""

import os
import threading
import vlc
from config import DEFAULT_VOLUME
from core.errors import PlaybackFailure
from core.logging import log_player_action, player_logger
from core.models import PlayerState
from eliot import log_message, start_action


class VLCPlaybackDevice:
    """Thin adapter over a python-vlc media player.

    End of track is reported by VLC on its own event thread; the device
    latches it so ``get_state().track_ended`` stays true until the next
    ``play``.
    """

    def __init__(self, instance=None, volume: int = DEFAULT_VOLUME):
        self.instance = instance or vlc.Instance()
        self.media_player = self.instance.media_player_new()
        self.current_file = None
        self.volume = max(0, min(100, int(volume)))
        self._paused = False
        self._ended = False
        self._lock = threading.RLock()

        # Set up end of track event handler
        self.media_player.event_manager().event_attach(vlc.EventType.MediaPlayerEndReached, self._on_end_reached)

    def play(self, filepath: str) -> None:
        """Load ``filepath`` and start playing it from the beginning."""
        with self._lock, start_action(player_logger, "play_file", filepath=filepath):
            if not os.path.exists(filepath):
                log_message(message_type="file_not_found", filepath=filepath)
                raise PlaybackFailure(f"file not found: {filepath}")

            media = self.instance.media_new(filepath)
            if media is None:
                raise PlaybackFailure(f"libVLC could not open {filepath}")
            self.media_player.set_media(media)
            if self.media_player.play() == -1:
                raise PlaybackFailure(f"libVLC refused to play {filepath}")

            self.current_file = filepath
            self._paused = False
            self._ended = False

            # Restore volume after media change (including 0% for muted state)
            self.media_player.audio_set_volume(self.volume)

            log_player_action(
                "playback_started",
                trigger_source="device",
                filepath=filepath,
                description=f"Started playing: {os.path.basename(filepath)}",
            )

    def pause(self) -> None:
        with self._lock:
            if self.current_file is None or self._paused:
                return
            self.media_player.pause()
            self._paused = True
            log_player_action("pause", filepath=self.current_file)

    def resume(self) -> None:
        with self._lock:
            if self.current_file is None or not self._paused:
                return
            if self.media_player.play() == -1:
                raise PlaybackFailure(f"libVLC refused to resume {self.current_file}")
            self._paused = False
            log_player_action("resume", filepath=self.current_file)

    def stop(self) -> None:
        """Stop playback and unload the current media."""
        with self._lock:
            was_loaded = self.current_file is not None
            self.media_player.stop()
            # Clear media from VLC to ensure clean state
            self.media_player.set_media(None)
            self.current_file = None
            self._paused = False
            self._ended = False
            if was_loaded:
                log_player_action("stop_playback", description="Playback stopped")

    def seek(self, position_ms: int) -> None:
        """Jump to ``position_ms`` in the current track (clamped to its length)."""
        with self._lock:
            duration = self.media_player.get_length()
            if self.current_file is None or duration <= 0:
                raise PlaybackFailure("cannot seek: no media loaded")

            old_position = self.media_player.get_time()
            new_position = max(0, min(int(position_ms), duration))
            self.media_player.set_time(new_position)
            log_player_action(
                "seek_operation",
                old_position=old_position,
                new_position=new_position,
                duration=duration,
            )

    def set_volume(self, volume: int) -> int:
        """Set volume (0-100). Returns VLC's result code."""
        with self._lock:
            self.volume = max(0, min(100, int(volume)))
            result = self.media_player.audio_set_volume(self.volume)
            if result == -1:
                log_message(message_type="volume_set_error", attempted_volume=self.volume)
            return result

    def get_state(self) -> PlayerState:
        """Snapshot of the transport state for the polling bridge."""
        with self._lock:
            loaded = self.current_file is not None
            return PlayerState(
                playing=loaded and bool(self.media_player.is_playing()),
                paused=self._paused,
                position_ms=max(0, self.media_player.get_time() or 0) if loaded else 0,
                duration_ms=max(0, self.media_player.get_length() or 0) if loaded else 0,
                track_ended=self._ended,
                current_file=self.current_file,
            )

    def release(self) -> None:
        """Release VLC media player and instance resources."""
        with self._lock:
            self.stop()
            self.media_player.release()
            self.instance.release()
            log_player_action("vlc_cleanup", description="VLC resources released")

    def _on_end_reached(self, event=None):
        # Called from VLC's event thread, which stop() may be waiting on; no lock here
        self._ended = True
        self._paused = False
        log_message(message_type="track_end_reached", filepath=self.current_file)
