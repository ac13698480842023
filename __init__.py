"""Playlist Stats: playlist-level totals for public YouTube playlists."""

__version__ = "1.0.0"
