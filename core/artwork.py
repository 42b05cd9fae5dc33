"""Album artwork for the current track.

Artwork is read from tags embedded in the audio file, falling back to an
image file next to it. The cache holds the artwork of one track at a time;
refreshing it for a new track drops the previous entry.
"""

import base64
import mutagen
import mutagen.flac
import mutagen.id3
import mutagen.mp4
import mutagen.oggvorbis
import threading
from config import ARTWORK_FILENAMES
from core.models import Track
from eliot import log_message
from pathlib import Path
from pydantic import BaseModel


class Artwork(BaseModel):
    data: bytes
    mime_type: str
    source: str
    filename: str | None = None


def get_embedded_artwork(filepath: str) -> Artwork | None:
    """Extract embedded artwork from an audio file.

    Args:
        filepath: Path to the audio file

    Returns:
        Artwork with source 'embedded', or None
    """
    try:
        audio = mutagen.File(filepath)
    except (mutagen.MutagenError, OSError) as e:
        log_message(message_type="artwork_read_error", filepath=filepath, error=str(e))
        return None
    if audio is None:
        return None

    # MP3 (ID3) - APIC frame
    if isinstance(audio.tags, mutagen.id3.ID3):
        for key in audio.tags:
            if key.startswith("APIC"):
                apic = audio.tags[key]
                return Artwork(data=apic.data, mime_type=apic.mime, source="embedded")

    # MP4/M4A - covr atom
    if isinstance(audio.tags, mutagen.mp4.MP4Tags) and "covr" in audio.tags:
        cover = audio.tags["covr"][0]
        mime_type = "image/jpeg" if cover.imageformat == mutagen.mp4.MP4Cover.FORMAT_JPEG else "image/png"
        return Artwork(data=bytes(cover), mime_type=mime_type, source="embedded")

    # FLAC - pictures
    if isinstance(audio, mutagen.flac.FLAC) and audio.pictures:
        pic = audio.pictures[0]
        return Artwork(data=pic.data, mime_type=pic.mime, source="embedded")

    # OGG Vorbis - metadata_block_picture
    if isinstance(audio, mutagen.oggvorbis.OggVorbis) and "metadata_block_picture" in audio:
        pic = mutagen.flac.Picture(base64.b64decode(audio["metadata_block_picture"][0]))
        return Artwork(data=pic.data, mime_type=pic.mime, source="embedded")

    return None


def get_folder_artwork(filepath: str) -> Artwork | None:
    """Find an artwork image in the same folder as the audio file (case-insensitive)."""
    folder = Path(filepath).parent
    try:
        folder_files = {f.name.lower(): f for f in folder.iterdir() if f.is_file()}
    except OSError:
        return None

    for filename in ARTWORK_FILENAMES:
        artwork_path = folder_files.get(filename.lower())
        if artwork_path is None:
            continue
        try:
            data = artwork_path.read_bytes()
        except OSError as e:
            log_message(message_type="artwork_read_error", filepath=str(artwork_path), error=str(e))
            continue
        mime_type = "image/jpeg" if artwork_path.suffix.lower() in (".jpg", ".jpeg") else "image/png"
        return Artwork(data=data, mime_type=mime_type, source="folder", filename=artwork_path.name)

    return None


def get_artwork(filepath: str) -> Artwork | None:
    """Get artwork for an audio file, trying embedded first then folder-based."""
    return get_embedded_artwork(filepath) or get_folder_artwork(filepath)


class ArtworkCache:
    """Artwork of the current track only."""

    def __init__(self, loader=get_artwork):
        self._loader = loader
        self._lock = threading.Lock()
        self._track_id = None
        self._artwork = None

    @property
    def track_id(self) -> int | None:
        return self._track_id

    def refresh(self, track: Track | None) -> Artwork | None:
        """Load artwork for ``track``, replacing whatever was cached before."""
        if track is None:
            self.clear()
            return None
        with self._lock:
            if track.id == self._track_id:
                return self._artwork
        artwork = self._loader(track.filepath)
        with self._lock:
            self._track_id = track.id
            self._artwork = artwork
        log_message(
            message_type="artwork_refreshed",
            track_id=track.id,
            source=artwork.source if artwork else None,
        )
        return artwork

    def get(self) -> Artwork | None:
        with self._lock:
            return self._artwork

    def clear(self) -> None:
        with self._lock:
            self._track_id = None
            self._artwork = None
