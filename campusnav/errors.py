"""Error types raised by the routing core."""


class NavigationError(Exception):
    """Base class for recoverable navigation errors"""


class InputValidationError(NavigationError, ValueError):
    """A graph edit or request referenced missing or malformed data"""


class NoPathFoundError(NavigationError):
    """No chain of paths connects the resolved start and end"""


class UnmappedLocationError(NavigationError, ValueError):
    """A coordinate cannot be placed on the floor plan"""


class ImportFormatError(NavigationError, ValueError):
    """A navigation dataset failed validation"""


class LocationUnavailableError(NavigationError):
    """No position provider produced a fix and none is remembered"""
