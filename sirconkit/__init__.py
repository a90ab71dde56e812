"""Context-aware autocompletion engine for an interactive R console."""

__version__ = "0.1.0"