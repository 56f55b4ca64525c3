"""optimarr - direct-play compatibility ratings for video libraries."""

__version__ = "0.1.0"
