"""
Custom exceptions for the sparse extent disk library.
"""


class VMDKError(Exception):
    """Base exception for all sparse extent errors."""
    pass


class DiskError(VMDKError):
    """Error reading/writing an extent file."""
    pass


class FormatError(VMDKError):
    """File is not a valid or supported sparse extent."""
    pass


class BadMagicError(FormatError):
    """Header magic number does not identify a sparse extent."""
    pass


class TruncatedHeaderError(FormatError):
    """Fewer than 512 header bytes are available."""
    pass


class UnsupportedVersionError(FormatError):
    """Header version is not one this library understands."""
    pass


class UnsupportedFormatError(FormatError):
    """Extent variant (compressed, footer directory) is not handled."""
    pass


class InvalidGeometryError(FormatError):
    """Grain size or grain table size is unusable."""
    pass


class CorruptedHeaderError(FormatError):
    """Header fields fail an integrity check."""
    pass


class CapacityMismatchError(FormatError):
    """Extent capacities do not match the disk descriptor."""
    pass


class StorageError(VMDKError):
    """Error in the grain directory/table index."""
    pass


class DirectoryMismatchError(StorageError):
    """Primary and redundant grain directories disagree."""

    def __init__(self, message: str, sector: int | None = None, locations=None):
        super().__init__(message)
        self.sector = sector
        self.locations = locations or []


class AllocationFailedError(StorageError):
    """Growing the extent file for a new grain or grain table failed."""
    pass


class CorruptedIndexError(StorageError):
    """A grain table or grain pointer lands inside extent metadata."""
    pass


class SectorOutOfRangeError(StorageError):
    """Sector number is beyond the extent or disk capacity."""
    pass
