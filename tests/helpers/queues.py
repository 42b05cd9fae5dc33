import time
from config import TEST_TIMEOUT


def add_tracks(db, names: list[str]) -> list[int]:
    """Add one library track per name, returning their ids in order."""
    return [
        db.add_track(f"/music/{name}.mp3", {'title': name, 'artist': 'Test Artist', 'album': 'Test Album'})
        for name in names
    ]


def titles(tracks) -> list[str]:
    return [track.title for track in tracks]


def wait_until(predicate, timeout: float = 5.0, retry_interval: float | None = None) -> bool:
    """Poll ``predicate`` until it returns truthy or ``timeout`` elapses.

    Args:
        predicate: Zero-argument callable
        timeout: Maximum time to wait (seconds)
        retry_interval: Time between checks (seconds). If None, uses a tenth of TEST_TIMEOUT.

    Returns:
        True if the predicate became truthy, False otherwise
    """
    if retry_interval is None:
        retry_interval = TEST_TIMEOUT / 10
    start_time = time.time()

    while time.time() - start_time < timeout:
        if predicate():
            return True
        time.sleep(retry_interval)

    return predicate()
