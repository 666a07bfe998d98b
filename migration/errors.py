class MigrationError(Exception):
    """Base class for errors raised by the migration itself (not by AWS)."""


class MalformedExistenceResponse(MigrationError):
    """BatchGetItem came back without a Responses container for the table.

    Guessing here could silently drop records, so the batch fails instead.
    """


class MalformedScanResponse(MigrationError):
    """Scan came back without an Items container."""


class InvalidBatchMessage(MigrationError):
    """An SQS message body did not match a known batch message schema."""
