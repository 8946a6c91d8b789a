class ReaderError(Exception):
    """Base class for darkfeed errors."""


class FetchError(ReaderError):
    """Raised when a feed cannot be fetched or its payload is malformed."""


class DuplicateFeedError(ReaderError):
    """Raised when subscribing to a URL that is already subscribed."""


class ImportFormatError(ReaderError, ValueError):
    """Raised when an import document does not match the export format."""
