"""Unit tests for PlaybackBridge: edge-triggered track end and seek gestures."""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.bridge import PlaybackBridge
from core.errors import PlaybackFailure
from core.models import PlayerState
from tests.helpers.queues import wait_until


def state(position=1000, ended=False, current_file="/music/A.mp3", playing=True):
    return PlayerState(
        playing=playing and not ended,
        position_ms=position,
        duration_ms=180000,
        track_ended=ended,
        current_file=current_file,
    )


@pytest.fixture
def navigator():
    return Mock()


@pytest.fixture
def bridge(mock_device, navigator):
    bridge = PlaybackBridge(mock_device, navigator, interval_ms=5)
    yield bridge
    bridge.stop(timeout=1.0)


class TestTrackEnded:
    def test_fires_once_per_rising_edge(self, bridge, mock_device, navigator):
        mock_device.get_state.side_effect = [
            state(),
            state(ended=True),
            state(ended=True),
            state(ended=True),
        ]
        for _ in range(4):
            bridge.poll_once()
        navigator.on_track_ended.assert_called_once_with("/music/A.mp3")

    def test_fires_again_after_flag_falls(self, bridge, mock_device, navigator):
        mock_device.get_state.side_effect = [
            state(ended=True),
            state(ended=False, current_file="/music/B.mp3"),
            state(ended=True, current_file="/music/B.mp3"),
        ]
        for _ in range(3):
            bridge.poll_once()
        assert navigator.on_track_ended.call_count == 2

    def test_new_file_ending_between_polls(self, bridge, mock_device, navigator):
        """A short track that starts and ends between two polls still counts."""
        mock_device.get_state.side_effect = [
            state(ended=True, current_file="/music/A.mp3"),
            state(ended=True, current_file="/music/B.mp3"),
        ]
        bridge.poll_once()
        bridge.poll_once()
        assert navigator.on_track_ended.call_count == 2

    def test_not_ended(self, bridge, mock_device, navigator):
        mock_device.get_state.return_value = state()
        for _ in range(3):
            bridge.poll_once()
        navigator.on_track_ended.assert_not_called()


class TestPositionUpdates:
    def test_listeners_get_device_position(self, bridge, mock_device):
        mock_device.get_state.return_value = state(position=4200)
        received = []
        bridge.subscribe_position(received.append)

        bridge.poll_once()

        assert [s.position_ms for s in received] == [4200]
        assert bridge.get_position() == 4200

    def test_unsubscribe(self, bridge, mock_device):
        mock_device.get_state.return_value = state()
        received = []
        unsubscribe = bridge.subscribe_position(received.append)
        unsubscribe()
        bridge.poll_once()
        assert received == []

    def test_failing_listener_does_not_stop_others(self, bridge, mock_device):
        mock_device.get_state.return_value = state()
        received = []
        bridge.subscribe_position(Mock(side_effect=RuntimeError("widget destroyed")))
        bridge.subscribe_position(received.append)
        bridge.poll_once()
        assert len(received) == 1


class TestSeekGesture:
    def test_seek_value_shown_while_dragging(self, bridge, mock_device):
        mock_device.get_state.return_value = state(position=1000)
        received = []
        bridge.subscribe_position(received.append)
        bridge.poll_once()

        bridge.begin_seek()
        bridge.update_seek(90000)
        bridge.poll_once()

        assert [s.position_ms for s in received] == [1000, 90000]
        assert bridge.get_position() == 90000
        # Device polling continues during the gesture
        assert mock_device.get_state.call_count == 2
        mock_device.seek.assert_not_called()

    def test_commit_sends_final_value(self, bridge, mock_device):
        bridge.begin_seek()
        for position in (1000, 2000, 3000):
            bridge.update_seek(position)

        assert bridge.commit_seek() == 3000
        mock_device.seek.assert_called_once_with(3000)
        assert not bridge.seeking

    def test_update_starts_gesture(self, bridge, mock_device):
        bridge.update_seek(500)
        assert bridge.seeking
        assert bridge.commit_seek() == 500

    def test_begin_starts_from_last_polled_position(self, bridge, mock_device):
        mock_device.get_state.return_value = state(position=7000)
        bridge.poll_once()
        bridge.begin_seek()
        assert bridge.get_position() == 7000

    def test_commit_without_gesture(self, bridge, mock_device):
        assert bridge.commit_seek() is None
        mock_device.seek.assert_not_called()

    def test_cancel(self, bridge, mock_device):
        mock_device.get_state.return_value = state(position=1000)
        bridge.update_seek(50000)
        bridge.cancel_seek()
        bridge.poll_once()
        assert bridge.get_position() == 1000
        assert bridge.commit_seek() is None

    def test_commit_failure_ends_gesture(self, bridge, mock_device):
        mock_device.seek.side_effect = PlaybackFailure("no media")
        bridge.update_seek(1000)
        with pytest.raises(PlaybackFailure):
            bridge.commit_seek()
        assert not bridge.seeking


@pytest.mark.slow
class TestPollingThread:
    def test_thread_detects_track_end(self, bridge, mock_device, navigator):
        mock_device.get_state.return_value = state(ended=True)
        bridge.start()
        assert wait_until(lambda: navigator.on_track_ended.called)
        bridge.stop(timeout=1.0)
        navigator.on_track_ended.assert_called_once()

    def test_start_and_stop_are_idempotent(self, bridge, mock_device):
        bridge.start()
        thread = bridge._thread
        bridge.start()
        assert bridge._thread is thread
        bridge.stop(timeout=1.0)
        bridge.stop(timeout=1.0)
        assert not bridge.running
        assert not thread.is_alive()

    def test_poll_errors_do_not_kill_loop(self, bridge, mock_device):
        calls = []

        def flaky_state():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("libvlc hiccup")
            return state()

        mock_device.get_state.side_effect = flaky_state
        bridge.start()
        assert wait_until(lambda: len(calls) >= 3)
        assert bridge.running

    def test_navigator_failure_does_not_kill_loop(self, bridge, mock_device, navigator):
        navigator.on_track_ended.side_effect = PlaybackFailure("missing file")
        mock_device.get_state.return_value = state(ended=True)
        bridge.start()
        assert wait_until(lambda: mock_device.get_state.call_count >= 3)
        assert bridge.running
        navigator.on_track_ended.assert_called_once()
