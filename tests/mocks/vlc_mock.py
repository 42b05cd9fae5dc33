"""Stand-ins for the parts of python-vlc used by VLCPlaybackDevice."""

TRACK_LENGTH_MS = 180000


class MockEventType:
    """The one vlc.EventType member the device attaches to."""

    MediaPlayerEndReached = 265


class MockEventManager:
    def __init__(self):
        self.attached = {}

    def event_attach(self, event_type, callback):
        self.attached.setdefault(event_type, []).append(callback)

    def fire(self, event_type):
        for callback in self.attached.get(event_type, []):
            callback(None)


class MockMedia:
    def __init__(self, filepath):
        self.filepath = filepath


class MockMediaPlayer:
    """Deterministic media player: no audio, time only moves when told to."""

    def __init__(self):
        self._media = None
        self._is_playing = False
        self._time = 0  # milliseconds
        self._length = TRACK_LENGTH_MS
        self._volume = 100
        self._event_manager = MockEventManager()
        self.play_result = 0  # VLC returns -1 on failure
        self.released = False

    def event_manager(self):
        return self._event_manager

    def get_media(self):
        return self._media

    def set_media(self, media):
        self._media = media
        self._time = 0
        self._is_playing = False

    def play(self):
        if self.play_result == 0:
            self._is_playing = True
        return self.play_result

    def pause(self):
        self._is_playing = False

    def stop(self):
        self._is_playing = False
        self._time = 0

    def get_time(self):
        return self._time if self._media is not None else -1

    def set_time(self, time_ms):
        self._time = max(0, min(time_ms, self._length))

    def get_length(self):
        return self._length if self._media is not None else 0

    def audio_get_volume(self):
        return self._volume

    def audio_set_volume(self, volume):
        self._volume = max(0, min(100, volume))
        return 0

    def is_playing(self):
        return int(self._is_playing)

    def release(self):
        self.released = True

    # Test helpers (not part of the VLC API)

    def _simulate_playback(self, duration_ms):
        """Advance time; reaching the end fires MediaPlayerEndReached."""
        if self._is_playing and self._media is not None:
            self._time = min(self._time + duration_ms, self._length)
            if self._time >= self._length:
                self._is_playing = False
                self._event_manager.fire(MockEventType.MediaPlayerEndReached)


class MockInstance:
    def __init__(self, *args, **kwargs):
        self._media_player = None
        self.released = False

    def media_player_new(self):
        self._media_player = MockMediaPlayer()
        return self._media_player

    def media_new(self, filepath):
        return MockMedia(filepath)

    def release(self):
        self.released = True
