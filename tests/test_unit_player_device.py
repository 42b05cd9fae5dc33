"""Unit tests for VLCPlaybackDevice using mocked VLC.

These tests use mocked VLC to avoid timing issues and external dependencies.
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock, patch

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.errors import PlaybackFailure
from tests.mocks import MockEventType, MockInstance


@pytest.fixture
def mock_vlc():
    """Mock the VLC module at import time."""
    mock_vlc_module = Mock()
    mock_vlc_module.Instance = MockInstance
    mock_vlc_module.EventType = MockEventType
    return mock_vlc_module


@pytest.fixture
def device(mock_vlc):
    """VLCPlaybackDevice built against the mocked VLC module."""
    with patch.dict(sys.modules, {'vlc': mock_vlc}):
        sys.modules.pop('core.player', None)
        from core.player import VLCPlaybackDevice

        yield VLCPlaybackDevice(volume=80)


@pytest.fixture
def audio_files(tmp_path):
    paths = []
    for name in ("one.mp3", "two.mp3"):
        path = tmp_path / name
        path.write_bytes(b"\x00" * 16)
        paths.append(str(path))
    return paths


class TestPlay:
    def test_play_file(self, device, audio_files):
        device.play(audio_files[0])

        state = device.get_state()
        assert state.playing is True
        assert state.paused is False
        assert state.track_ended is False
        assert state.current_file == audio_files[0]
        assert state.duration_ms == 180000
        assert device.media_player.get_media().filepath == audio_files[0]
        assert device.media_player.audio_get_volume() == 80

    def test_missing_file(self, device, tmp_path):
        with pytest.raises(PlaybackFailure):
            device.play(str(tmp_path / "missing.mp3"))
        assert device.get_state().current_file is None

    def test_vlc_refuses(self, device, audio_files):
        device.media_player.play_result = -1
        with pytest.raises(PlaybackFailure):
            device.play(audio_files[0])
        assert device.current_file is None

    def test_idle_state(self, device):
        state = device.get_state()
        assert state.playing is False
        assert state.position_ms == 0
        assert state.duration_ms == 0
        assert state.current_file is None


class TestEndOfTrack:
    def test_end_reached_is_latched(self, device, audio_files):
        device.play(audio_files[0])
        device.media_player._simulate_playback(180000)

        for _ in range(3):
            state = device.get_state()
            assert state.track_ended is True
            assert state.playing is False

    def test_play_clears_latch(self, device, audio_files):
        device.play(audio_files[0])
        device.media_player._simulate_playback(180000)
        device.play(audio_files[1])
        assert device.get_state().track_ended is False

    def test_partial_playback(self, device, audio_files):
        device.play(audio_files[0])
        device.media_player._simulate_playback(60000)
        state = device.get_state()
        assert state.position_ms == 60000
        assert state.track_ended is False


class TestTransport:
    def test_pause_and_resume(self, device, audio_files):
        device.play(audio_files[0])
        device.pause()
        assert device.get_state().paused is True
        assert device.get_state().playing is False

        device.resume()
        state = device.get_state()
        assert state.paused is False
        assert state.playing is True

    def test_pause_without_media(self, device):
        device.pause()
        assert device.get_state().paused is False

    def test_stop(self, device, audio_files):
        device.play(audio_files[0])
        device.stop()
        state = device.get_state()
        assert state.current_file is None
        assert state.playing is False
        assert device.media_player.get_media() is None

    def test_seek_clamps(self, device, audio_files):
        device.play(audio_files[0])
        device.seek(30000)
        assert device.get_state().position_ms == 30000
        device.seek(10**9)
        assert device.get_state().position_ms == 180000
        device.seek(-5)
        assert device.get_state().position_ms == 0

    def test_seek_without_media(self, device):
        with pytest.raises(PlaybackFailure):
            device.seek(1000)

    def test_volume(self, device):
        assert device.set_volume(150) == 0
        assert device.volume == 100
        device.set_volume(-3)
        assert device.media_player.audio_get_volume() == 0

    def test_release(self, device, audio_files):
        device.play(audio_files[0])
        device.release()
        assert device.media_player.released
        assert device.instance.released
        assert device.current_file is None
