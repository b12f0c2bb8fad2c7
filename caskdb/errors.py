"""Exceptions raised by the storage engine and the data structures built on it."""


class BitcaskError(Exception):
    """Base class for every error the engine raises."""

    default_message = "bitcask error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class KeyIsEmptyError(BitcaskError):
    default_message = "the key is empty"


class IndexUpdateFailedError(BitcaskError):
    default_message = "failed to update index"


class KeyNotFoundError(BitcaskError):
    default_message = "the key is not found"


class DataFileNotFoundError(BitcaskError):
    default_message = "data file not found"


class DataDirectoryCorruptedError(BitcaskError):
    default_message = "data directory corrupted"


class BatchNumExceededError(BitcaskError):
    default_message = "batch num exceeded"


class MergeIsProcessingError(BitcaskError):
    default_message = "merge is processing,try again later"


class DatabaseIsUsingError(BitcaskError):
    default_message = "database is using"


class MergeRatioUnreachedError(BitcaskError):
    default_message = "merge ratio unreached"


class DiskSpaceNotEnoughError(BitcaskError):
    default_message = "disk space not enough to merge"


class InvalidCRCError(BitcaskError):
    default_message = "invalid crc"


class WrongTypeOperationError(BitcaskError):
    default_message = "WRONGTYPE Operation against a key holding the wrong kind of value"