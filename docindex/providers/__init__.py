"""Concrete adapters for the interfaces in ``docindex.interfaces``."""
