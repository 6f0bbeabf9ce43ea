"""mbbrowse - browse MusicBrainz search results with cover art."""

from mbbrowse.__version__ import __version__

__all__ = ["__version__"]
