"""Pipeline error taxonomy.

Per-file problems (``InvalidImage``) are counted and skipped by batch
ingestion; container problems (``ArchiveFormatError``) abort the whole batch.
An image without a confident part number, or one that duplicates an existing
part number, is a normal outcome and has no exception.
"""


class ImageHubError(Exception):
    """Base exception. ``status_code`` is used by the HTTP error handler."""

    status_code = 400

    def __init__(self, message, **details):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidImage(ImageHubError, ValueError):
    """Unreadable or corrupt raster."""

    status_code = 422


class ArchiveFormatError(ImageHubError, ValueError):
    """Unreadable archive container."""


class PermanentDeleteConfirmationRequired(ImageHubError):
    status_code = 409


class InvalidWatermarkSettings(ImageHubError, ValueError):
    pass


class InvalidActor(ImageHubError, ValueError):
    pass


class WriterLockTimeout(ImageHubError):
    """Another writer held the lock for longer than we were willing to wait."""

    status_code = 503
