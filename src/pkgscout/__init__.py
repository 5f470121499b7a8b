"""pkgscout: locate the package managers installed on a developer machine."""

__version__ = "0.1.0"
