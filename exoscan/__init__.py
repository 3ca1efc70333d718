"""ExoScan: transit period search for uploaded light curve files."""

__version__ = "0.1.0"
