"""
Error kinds raised by the Qt-free core.

Library code raises these; the Qt layer catches them at its boundary and
shows them to the user.  None of them is fatal to the application.
"""


class PrintSizeError(Exception):
    """Base class for all application errors."""


class ValidationError(PrintSizeError):
    """The uploaded file was rejected before any processing began."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DecodeError(PrintSizeError):
    """The source image could not be decoded or drawn."""


class MetadataEmbedError(PrintSizeError):
    """Resolution metadata could not be written into an encoded image."""


class ArchiveError(PrintSizeError):
    """Saving a batch of results (ZIP archive) failed."""
