"""
Local media catalog.

Scans the configured library directories and reads tags and durations with
Mutagen. A scan is one synchronous read: it may return nothing, and it never
raises past this module.
"""

import hashlib
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from tunemux.core.config import LibraryConfig

from .models import LocalMedia

UNKNOWN = "Unknown"

_ID_MASK = (1 << 63) - 1


def stable_local_id(path: Path) -> int:
    """Derive a device-scoped 63-bit id from an absolute file path."""
    digest = hashlib.blake2b(str(path).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") & _ID_MASK


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
        if value:
            if isinstance(value, list):
                return str(value[0])
            return str(value)
    return None


def _split_filename(path: Path) -> tuple[str, Optional[str]]:
    """Parse "Artist - Title" filenames as a fallback for untagged files."""
    title = path.stem
    if " - " in title:
        artist, _, rest = title.partition(" - ")
        return rest.strip(), artist.strip() or None
    return title, None


def read_local_media(path: Path) -> LocalMedia:
    """Read one audio file into a catalog row, falling back to the filename."""
    title, artist = _split_filename(path)
    duration_ms = 0

    try:
        audio_file = MutagenFile(path)
    except (MutagenError, OSError) as e:
        logger.debug(f"Mutagen could not read {path}: {e}")
        audio_file = None

    if audio_file is not None:
        title = get_tag_value(audio_file, ["TIT2", "\xa9nam", "TITLE", "title"]) or title
        artist = (
            get_tag_value(audio_file, ["TPE1", "\xa9ART", "ARTIST", "artist"]) or artist
        )
        info = getattr(audio_file, "info", None)
        length = getattr(info, "length", None)
        if length:
            duration_ms = int(length * 1000)

    return LocalMedia(
        id=stable_local_id(path),
        title=title.strip() or UNKNOWN,
        artist=(artist or UNKNOWN).strip() or UNKNOWN,
        duration_ms=duration_ms,
        uri=str(path),
    )


class LocalCatalog:
    """Enumerates audio files under the configured library paths."""

    def __init__(self, config: LibraryConfig):
        self._config = config

    def _iter_files(self, directory: Path) -> list[Path]:
        files: list[Path] = []
        for ext in self._config.supported_formats:
            pattern = f"*{ext}"
            found = (
                directory.rglob(pattern)
                if self._config.scan_recursive
                else directory.glob(pattern)
            )
            files.extend(p for p in found if p.is_file())
        return files

    def enumerate(self) -> list[LocalMedia]:
        """Scan every library path.

        Returns:
            Catalog rows sorted by path; empty if nothing could be read
        """
        seen: set[Path] = set()
        media: list[LocalMedia] = []

        for library_path in self._config.library_paths:
            directory = Path(library_path).expanduser()
            if not directory.is_dir():
                logger.info(f"Library path not found, skipping: {directory}")
                continue

            try:
                files = self._iter_files(directory)
            except OSError as e:
                logger.warning(f"Error scanning directory {directory}: {e}")
                continue

            for path in sorted(files):
                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                try:
                    media.append(read_local_media(resolved))
                except OSError as e:
                    logger.warning(f"Error processing {resolved}: {e}")

        media.sort(key=lambda m: m.uri)
        logger.info(f"Local scan found {len(media)} tracks")
        return media
