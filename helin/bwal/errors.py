"""Exceptions raised by the write-ahead log."""


class WalError(Exception):
    """Base class for write-ahead log errors."""

    default_message = "write-ahead log error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class UninitializedSegmentFileError(WalError):
    default_message = "segment file is not initialized"


class OutOfBoundsError(WalError):
    default_message = "tried to seek out of file bounds"


class NoSegmentFileError(WalError):
    default_message = "there is no segment files"


class AtLastError(WalError):
    default_message = "tail of wal is reached"


class AtFirstError(WalError):
    default_message = "head of wal is reached"


class PartialLogError(WalError):
    default_message = "partial log record found"


class WriterClosedError(WalError):
    default_message = "writer is closed"