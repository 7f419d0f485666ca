"""spotbridge - Spotify Web API metadata backend for media-player extensions."""

__version__ = "0.1.0"
