from decouple import config
from pathlib import Path

# Database Configuration
DB_NAME = config('DB_NAME', default='playhead.db')

# Logging Configuration
LOG_LEVEL = config('PLAYHEAD_LOG_LEVEL', default='INFO')
LOG_FILE = config('PLAYHEAD_LOG_FILE', default='')

# Audio Configuration
AUDIO_EXTENSIONS = {
    '.aac',
    '.aif',
    '.aiff',
    '.ape',
    '.flac',
    '.m4a',
    '.mp3',
    '.ogg',
    '.opus',
    '.wav',
    '.wma',
    '.wv',
}

MAX_SCAN_DEPTH = config('PLAYHEAD_MAX_SCAN_DEPTH', default=5, cast=int)

ARTWORK_FILENAMES = [
    'cover.jpg',
    'cover.jpeg',
    'cover.png',
    'folder.jpg',
    'folder.jpeg',
    'folder.png',
    'front.jpg',
    'front.png',
]


def get_version():
    """Get version from pyproject.toml"""
    import tomllib

    pyproject_path = Path(__file__).parent / "pyproject.toml"
    if pyproject_path.exists():
        with open(pyproject_path, 'rb') as f:
            data = tomllib.load(f)
            return data.get("project", {}).get("version", "unknown")
    return "unknown"


__version__ = get_version()

# App Configuration
APP_NAME = config('PLAYHEAD_APP_NAME', default="playhead")

# Player Configuration
POLL_INTERVAL_MS = config('PLAYHEAD_POLL_INTERVAL_MS', default=50, cast=int)  # milliseconds
DEFAULT_VOLUME = config('PLAYHEAD_DEFAULT_VOLUME', default=100, cast=int)
DEFAULT_REPEAT_MODE = config('PLAYHEAD_DEFAULT_REPEAT', default='off')

# Queue Configuration
QUEUE_BATCH_SIZE = config('PLAYHEAD_QUEUE_BATCH_SIZE', default=500, cast=int)
SEQUENTIAL_SEED = 1  # shuffle seed meaning "no shuffle"

# Test Configuration
TEST_TIMEOUT = config('TEST_TIMEOUT', default=0.5, cast=float)
