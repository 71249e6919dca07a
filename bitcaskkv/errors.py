"""Exceptions raised by the storage engine."""


class BitcaskError(Exception):
    """Base class for every error raised by the engine."""

    default_message = "bitcask error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class KeyIsEmptyError(BitcaskError):
    default_message = "key is empty"


class IndexUpdateFailedError(BitcaskError):
    default_message = "failed to update index"


class KeyNotFoundError(BitcaskError):
    default_message = "key not found in database"


class DataFileNotFoundError(BitcaskError):
    default_message = "data file is not found"


class DataDirectoryCorruptedError(BitcaskError):
    default_message = "the database directory maybe corrupted"


class ExceedMaxBatchNumError(BitcaskError):
    default_message = "exceed the max batch number"


class MergeInProgressError(BitcaskError):
    default_message = "merge is in progress, please try again later"


class DatabaseIsUsingError(BitcaskError):
    default_message = "the database directory is used by another process"


class MergeRatioUnreachedError(BitcaskError):
    default_message = "the merge ratio is unreachable"


class NoEnoughSpaceForMergeError(BitcaskError):
    default_message = "no enough space for merge"