"""
Sparse Extent Virtual Disk Library

Reads and writes hosted sparse extent (VMDK) files sector by sector,
translating logical sectors through the grain directory and grain tables
and cross-checking the redundant copy on every access.
"""

from .constants import (
    DEFAULT_GRAIN_SIZE,
    DEFAULT_NUM_GTES_PER_GT,
    FLAG_COMPRESSED,
    FLAG_MAGIC_GTE,
    FLAG_USE_REDUNDANT,
    FLAG_VALID_NEWLINE_DETECTOR,
    HEADER_SIZE,
    SECTOR_SIZE,
    SPARSE_MAGICNUMBER,
)
from .exceptions import (
    AllocationFailedError,
    BadMagicError,
    CapacityMismatchError,
    CorruptedHeaderError,
    CorruptedIndexError,
    DirectoryMismatchError,
    DiskError,
    FormatError,
    InvalidGeometryError,
    SectorOutOfRangeError,
    StorageError,
    TruncatedHeaderError,
    UnsupportedFormatError,
    UnsupportedVersionError,
    VMDKError,
)
from .models import ExtentHeader, GrainLocation, parse_header, serialize_header
from .grain_index import GrainIndex
from .extent import SparseExtent
from .disk import DiskDescriptor, ExtentDescriptor, SparseDisk
from .creator import create_sparse_extent
from .verify import VerificationResult, verify_disk, verify_extent
from .info import get_disk_info, get_extent_info

__version__ = "1.0.0"

__all__ = [
    # Main classes
    "SparseDisk",
    "SparseExtent",
    "GrainIndex",
    # Data models
    "ExtentHeader",
    "GrainLocation",
    "DiskDescriptor",
    "ExtentDescriptor",
    "VerificationResult",
    # Header codec
    "parse_header",
    "serialize_header",
    # Exceptions
    "VMDKError",
    "DiskError",
    "FormatError",
    "BadMagicError",
    "TruncatedHeaderError",
    "UnsupportedVersionError",
    "UnsupportedFormatError",
    "InvalidGeometryError",
    "CorruptedHeaderError",
    "CapacityMismatchError",
    "StorageError",
    "DirectoryMismatchError",
    "CorruptedIndexError",
    "AllocationFailedError",
    "SectorOutOfRangeError",
    # Utilities
    "create_sparse_extent",
    "verify_extent",
    "verify_disk",
    "get_extent_info",
    "get_disk_info",
    # Constants
    "SECTOR_SIZE",
    "HEADER_SIZE",
    "SPARSE_MAGICNUMBER",
    "DEFAULT_GRAIN_SIZE",
    "DEFAULT_NUM_GTES_PER_GT",
    "FLAG_VALID_NEWLINE_DETECTOR",
    "FLAG_USE_REDUNDANT",
    "FLAG_MAGIC_GTE",
    "FLAG_COMPRESSED",
]
