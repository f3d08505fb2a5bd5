"""Video/script to soundtrack: prompt analysis and music-generation polling client."""

__version__ = "0.1.0"
