"""Domain errors raised below the route layer.

Each carries the HTTP status it maps to; ``app.api.error_handlers`` turns
them into ``{"detail": ...}`` responses.
"""


class PocketUniverseError(Exception):
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CategorizationError(PocketUniverseError):
    """The model call failed or returned something unusable."""

    http_status = 502


class InvalidImageError(PocketUniverseError):
    http_status = 400


class UnsupportedImageTypeError(PocketUniverseError):
    http_status = 415


class ImageTooLargeError(PocketUniverseError):
    http_status = 413


class StorageError(PocketUniverseError):
    http_status = 500


class StorageNotConfiguredError(StorageError):
    def __init__(self, message: str = "Server misconfiguration: storage credentials are missing"):
        super().__init__(message)


class InvalidGalaxyNameError(PocketUniverseError):
    http_status = 400


class ReservedGalaxyNameError(InvalidGalaxyNameError):
    """The virtual orphan folder name cannot be used for a real galaxy."""


class GalaxyNameConflictError(PocketUniverseError):
    http_status = 409
