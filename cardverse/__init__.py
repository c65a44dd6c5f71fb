"""CardVerse - deck importer and card inventory manager."""

__version__ = "0.3.0"
