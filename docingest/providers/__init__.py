"""Concrete adapters for the interfaces in ``docingest.interfaces``."""
