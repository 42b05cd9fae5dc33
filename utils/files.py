import mutagen
import mutagen.id3
import mutagen.mp4
import os
import sys
from config import AUDIO_EXTENSIONS, MAX_SCAN_DEPTH
from eliot import log_message
from pathlib import Path
from typing import Any

# (ID3 frame, MP4 atom, Vorbis comment) per field
TAG_KEYS = {
    'title': ('TIT2', '\xa9nam', 'title'),
    'artist': ('TPE1', '\xa9ART', 'artist'),
    'album': ('TALB', '\xa9alb', 'album'),
}


def normalize_path(path_str):
    if isinstance(path_str, Path):
        return path_str

    path_str = path_str.strip('{}').strip('"')

    if sys.platform == 'darwin' and '/Volumes/' in path_str:
        try:
            real_path = os.path.realpath(os.path.abspath(path_str))
            if os.path.exists(real_path):
                return Path(real_path)
        except (OSError, ValueError):
            pass

    return Path(path_str)


def find_audio_files(directory, max_depth=MAX_SCAN_DEPTH):
    found_files = []
    base_path = normalize_path(directory)

    def scan_directory(path, current_depth):
        if current_depth > max_depth:
            return

        try:
            for item in sorted(path.iterdir()):
                try:
                    if item.is_file() and item.suffix.lower() in AUDIO_EXTENSIONS:
                        found_files.append(str(item))
                    elif item.is_dir() and not item.is_symlink():
                        scan_directory(item, current_depth + 1)
                except OSError:
                    continue
        except (PermissionError, OSError):
            pass

    scan_directory(base_path, 1)
    return found_files


def collect_audio_files(paths) -> list[str]:
    """Expand files and directories into audio file paths, keeping the given order."""
    found = []
    for raw in paths:
        path = normalize_path(raw)
        if path.is_dir():
            found.extend(find_audio_files(path))
        elif path.is_file() and path.suffix.lower() in AUDIO_EXTENSIONS:
            found.append(str(path.resolve()))
        else:
            log_message(message_type="file_skipped", path=str(path))
    return found


def read_track_metadata(filepath: str) -> dict[str, Any]:
    """Title, artist, album and duration (ms) of an audio file.

    Unreadable files still get a title (the file name without extension).
    """
    metadata = {'title': None, 'artist': None, 'album': None, 'duration': None}
    try:
        audio = mutagen.File(filepath)
    except (mutagen.MutagenError, OSError) as e:
        log_message(message_type="metadata_read_error", filepath=filepath, error=str(e))
        audio = None

    if audio is not None:
        if getattr(audio, 'info', None) is not None and getattr(audio.info, 'length', None):
            metadata['duration'] = int(audio.info.length * 1000)

        tags = audio.tags
        if tags:
            if isinstance(tags, mutagen.id3.ID3):
                slot = 0
            elif isinstance(tags, mutagen.mp4.MP4Tags):
                slot = 1
            else:
                slot = 2
            for field, keys in TAG_KEYS.items():
                key = keys[slot]
                if key in tags:
                    metadata[field] = str(tags[key][0])

    if not metadata['title']:
        metadata['title'] = Path(filepath).stem
    return metadata
