"""Concrete adapters for the interfaces in ``embedstore.interfaces``."""
