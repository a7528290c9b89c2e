"""Concrete adapters for the interfaces in ``ragdesk/interfaces/``."""
