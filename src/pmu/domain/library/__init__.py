"""Library domain - metadata for audio files."""

from .metadata import find_metadata
from .models import Metadata, Origin

__all__ = ["find_metadata", "Metadata", "Origin"]
