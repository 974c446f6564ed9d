"""Hideout: content screening core for anonymous chat rooms."""

__version__ = "0.1.0"
