from __future__ import annotations


class PfpError(Exception):
    """Base class for errors raised by pfpshop."""


class UnknownShapeError(PfpError, ValueError):
    """A background shape outside RECT / CIRCLE / ROUNDEDRECT reached the renderer."""

    def __init__(self, shape: object):
        super().__init__(f"unknown background shape {shape!r}")
        self.shape = shape


class BackgroundImageError(PfpError):
    """The background image could not be decoded."""


class SettingsError(PfpError, ValueError):
    """Raw settings could not be turned into GenerationSettings."""
