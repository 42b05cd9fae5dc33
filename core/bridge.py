"""Playback bridge: polls the device and feeds end-of-track into the navigator."""

import threading
from collections.abc import Callable
from config import POLL_INTERVAL_MS
from core.errors import PlaybackFailure
from core.logging import bridge_logger, log_error, log_player_action
from core.models import PlayerState
from eliot import log_message, start_action

PositionListener = Callable[[PlayerState], None]


class PlaybackBridge:
    """Fixed-interval poller of a playback device.

    Track completion is edge-triggered: ``navigator.on_track_ended()`` runs
    once when the device's ended flag rises, not on every poll that sees it.
    During a seek gesture listeners get the gesture's position instead of
    the device's, while polling itself carries on.
    """

    def __init__(self, device, navigator, interval_ms: int = POLL_INTERVAL_MS):
        self.device = device
        self.navigator = navigator
        self.interval = max(1, interval_ms) / 1000
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread = None
        self._listeners: list[PositionListener] = []
        self._ended_file = None
        self._last_state = PlayerState()
        self._seeking = False
        self._seek_position = 0

    # Lifecycle

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="playback-bridge", daemon=True)
            self._thread.start()
        log_message(message_type="bridge_started", interval_ms=int(self.interval * 1000))

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            thread, self._thread = self._thread, None
            self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            log_message(message_type="bridge_stopped")

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.poll_once()
            except Exception as e:
                log_error(bridge_logger, e, context="bridge_poll")

    # Polling

    def poll_once(self) -> PlayerState:
        """Read the device once, publish its position and detect track completion."""
        state = self.device.get_state()
        with self._lock:
            self._last_state = state
            ended_edge = state.track_ended and self._ended_file != (state.current_file or "")
            self._ended_file = (state.current_file or "") if state.track_ended else None
            shown = state.model_copy(update={"position_ms": self._seek_position}) if self._seeking else state
            listeners = list(self._listeners)

        for callback in listeners:
            try:
                callback(shown)
            except Exception as e:
                log_error(bridge_logger, e, context="position_listener")

        if ended_edge:
            with start_action(bridge_logger, "track_ended", filepath=state.current_file):
                log_player_action("track_ended", trigger_source="automatic", filepath=state.current_file)
                self.navigator.on_track_ended(state.current_file)
        return shown

    def subscribe_position(self, callback: PositionListener) -> Callable[[], None]:
        """Call ``callback(state)`` on every poll. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def get_position(self) -> int:
        """Position the UI should show, in milliseconds."""
        with self._lock:
            return self._seek_position if self._seeking else self._last_state.position_ms

    # Seek gesture

    @property
    def seeking(self) -> bool:
        return self._seeking

    def begin_seek(self) -> None:
        with self._lock:
            if not self._seeking:
                self._seeking = True
                self._seek_position = self._last_state.position_ms

    def update_seek(self, position_ms: int) -> None:
        """Move the in-progress seek; supersedes any earlier value."""
        with self._lock:
            self.begin_seek()
            self._seek_position = max(0, int(position_ms))

    def cancel_seek(self) -> None:
        with self._lock:
            self._seeking = False

    def commit_seek(self) -> int | None:
        """Send the final seek position to the device. Returns it, or None without a gesture."""
        with self._lock:
            if not self._seeking:
                return None
            position = self._seek_position
            self._seeking = False
        with start_action(bridge_logger, "commit_seek", position_ms=position):
            try:
                self.device.seek(position)
            except PlaybackFailure as e:
                log_error(bridge_logger, e, context="commit_seek", position_ms=position)
                raise
        return position
