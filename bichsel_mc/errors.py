"""Exceptions raised by the :mod:`bichsel_mc` package."""


class BichselError(Exception):
    """Base exception for straggling simulation errors."""


class ConfigurationError(BichselError, ValueError):
    """Invalid simulation parameters, raised before any event is run."""


class TableNotFoundError(ConfigurationError, FileNotFoundError):
    """A cross-section table could not be found or opened."""


class TableFormatError(ConfigurationError):
    """A cross-section table has an unreadable header or data row."""


__all__ = [
    "BichselError",
    "ConfigurationError",
    "TableNotFoundError",
    "TableFormatError",
]
