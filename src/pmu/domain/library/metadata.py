"""
Song metadata resolution.

Metadata is looked up through a chain of probes, first match wins:

1. osu! beatmap (`*.osu` next to the audio file)
2. StepMania simfile (`*.sm` next to the audio file)
3. Embedded tags read with Mutagen
4. The file's base name as title
"""

import re
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from .models import Metadata, Origin

Probe = Callable[[Path], Optional[Metadata]]


def find_extension(extension: str, directory: Path) -> Optional[Path]:
    """Find the first file in ``directory`` with the given extension."""
    try:
        for path in sorted(directory.iterdir()):
            if path.suffix == f".{extension}" and path.is_file():
                return path
    except OSError:
        return None
    return None


def read_file_string(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def find_regex_match(pattern: str, text: str) -> Optional[str]:
    """Return the first capture group of ``pattern`` in ``text``, stripped.

    Empty captures count as no match.
    """
    match = re.search(pattern, text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def osu(path: Path) -> Optional[Metadata]:
    """https://osu.ppy.sh/home"""
    directory = path.parent
    beatmap = find_extension("osu", directory)
    if beatmap is None:
        return None
    text = read_file_string(beatmap)
    if text is None:
        return None

    # Beatmap set directories are conventionally named "<id> <artist> - <title>"
    set_id = find_regex_match(r"BeatmapSetID:([^\n]+)", text) or find_regex_match(
        r"(\d+)", directory.name
    )
    origin = None
    if set_id:
        origin = Origin(
            name="osu! Beatmap",
            link=f"https://osu.ppy.sh/beatmapsets/{set_id}",
        )

    return Metadata(
        artist=find_regex_match(r"Artist:([^\n]+)", text),
        title=find_regex_match(r"Title:([^\n]+)", text),
        origin=origin,
    )


def stepmania(path: Path) -> Optional[Metadata]:
    """https://www.stepmania.com"""
    simfile = find_extension("sm", path.parent)
    if simfile is None:
        return None
    text = read_file_string(simfile)
    if text is None:
        return None

    return Metadata(
        artist=find_regex_match(r"#ARTIST:([^;]+);", text),
        title=find_regex_match(r"#TITLE:([^;]+);", text),
    )


def get_tag_value(audio_file, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
            if value:
                if isinstance(value, list):
                    value = value[0]
                value = str(value).strip()
                if value:
                    return value
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
    return None


def tags(path: Path) -> Optional[Metadata]:
    """Embedded ID3 / MP4 / Vorbis tags.

    Only counts as a match when at least the title is tagged.
    """
    try:
        audio_file = MutagenFile(path)
    except (MutagenError, OSError) as e:
        logger.debug(f"Could not read tags from {path}: {e}")
        return None
    if audio_file is None or audio_file.tags is None:
        return None

    title = get_tag_value(audio_file, ["TIT2", "\xa9nam", "TITLE", "title"])
    if not title:
        return None

    return Metadata(
        artist=get_tag_value(audio_file, ["TPE1", "\xa9ART", "ARTIST", "artist"]),
        title=title,
        album=get_tag_value(audio_file, ["TALB", "\xa9alb", "ALBUM", "album"]),
    )


PROBES: list[Probe] = [osu, stepmania, tags]


def find_metadata(path: Path, probes: Optional[list[Probe]] = None) -> Metadata:
    """Resolve metadata for an audio file, falling back to its base name as title."""
    path = Path(path)
    for probe in PROBES if probes is None else probes:
        metadata = probe(path)
        if metadata is not None:
            logger.debug(f"Metadata for {path.name} from {probe.__name__}: {metadata}")
            return metadata

    return Metadata(title=path.stem)
