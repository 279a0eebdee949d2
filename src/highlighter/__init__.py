"""Map Highlighter — organize geographic entities into layers and a group tree."""

__version__ = "0.1.0"
