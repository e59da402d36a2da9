# Batch Agents
# Genre, artist and cover correction for folders of audio files

from .base import BaseAgent, find_audio_files
from .genre import GenreAgent
from .artist import ArtistAgent
from .cover import CoverAgent

__all__ = [
    'BaseAgent',
    'find_audio_files',
    'GenreAgent',
    'ArtistAgent',
    'CoverAgent'
]
