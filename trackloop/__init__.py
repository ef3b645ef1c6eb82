"""trackloop - a personal music-track library with tempo, key, structure and loop analysis."""

__version__ = "1.0.0"
