"""Error taxonomy shared by the queue store, navigator and playback device."""


class PlayheadError(Exception):
    """Base class for engine errors surfaced to the UI."""


class NotFound(PlayheadError):
    """A queue, track or queue position does not exist."""


class PersistenceFailure(PlayheadError):
    """A queue store call failed."""


class PlaybackFailure(PlayheadError):
    """The playback device rejected a play or seek call."""
