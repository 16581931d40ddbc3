"""
Data model classes for the sparse extent disk format.
"""

import struct
from dataclasses import dataclass, field, replace

from .constants import (
    DEFAULT_FLAGS,
    DEFAULT_GRAIN_SIZE,
    DEFAULT_NUM_GTES_PER_GT,
    DEFAULT_VERSION,
    ENTRIES_PER_SECTOR,
    FLAG_COMPRESSED,
    FLAG_MAGIC_GTE,
    FLAG_USE_REDUNDANT,
    FLAG_VALID_NEWLINE_DETECTOR,
    GD_AT_END,
    HDR_PAD_SIZE,
    HEADER_SIZE,
    NEWLINE_DETECTOR,
    SECTOR_SIZE,
    SPARSE_MAGICNUMBER,
    SPARSE_MAX_VERSION,
    SPARSE_MIN_VERSION,
    COMPRESS_NONE,
)
from .exceptions import (
    BadMagicError,
    InvalidGeometryError,
    TruncatedHeaderError,
    UnsupportedVersionError,
)

# magic, version, flags, capacity, grain_size, descriptor_offset,
# descriptor_size, num_gtes_per_gt, rgd_offset, gd_offset, overhead,
# unclean_shutdown, newline detector, compress_algorithm, pad
HEADER_FORMAT = struct.Struct(f'<IIIQQQQIQQQB4sH{HDR_PAD_SIZE}s')


def _sectors_for_bytes(num_bytes: int) -> int:
    return (num_bytes + SECTOR_SIZE - 1) // SECTOR_SIZE


@dataclass
class ExtentHeader:
    """Represents the 512-byte sparse extent header at file offset 0."""
    magic_number: int
    version: int
    flags: int
    capacity: int           # Logical sectors in this extent
    grain_size: int         # Sectors per grain
    descriptor_offset: int  # Embedded descriptor (sectors), never grain data
    descriptor_size: int
    num_gtes_per_gt: int    # Entries per grain table
    rgd_offset: int         # Redundant grain directory (sector)
    gd_offset: int          # Primary grain directory (sector)
    overhead: int           # Metadata sectors before grain data

    # 0 for clean, non-zero while opened for writing
    unclean_shutdown: int = 0
    newline_detector: bytes = NEWLINE_DETECTOR
    compress_algorithm: int = COMPRESS_NONE
    pad: bytes = field(default=bytes(HDR_PAD_SIZE), repr=False)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ExtentHeader':
        """
        Parse a sparse extent header.

        Only the magic number and version are checked here. Geometry is
        checked by validate_geometry() before the header is used.
        """
        if len(data) < HEADER_SIZE:
            raise TruncatedHeaderError(
                f"Header needs {HEADER_SIZE} bytes, got {len(data)}"
            )

        fields = HEADER_FORMAT.unpack_from(data, 0)
        header = cls(*fields)

        if header.magic_number != SPARSE_MAGICNUMBER:
            raise BadMagicError(
                f"Invalid sparse extent magic: 0x{header.magic_number:08X}"
            )
        if not SPARSE_MIN_VERSION <= header.version <= SPARSE_MAX_VERSION:
            raise UnsupportedVersionError(
                f"Unsupported sparse extent version: {header.version}"
            )
        return header

    def to_bytes(self) -> bytes:
        """Serialize to the 512-byte on-disk header."""
        return HEADER_FORMAT.pack(
            self.magic_number,
            self.version,
            self.flags,
            self.capacity,
            self.grain_size,
            self.descriptor_offset,
            self.descriptor_size,
            self.num_gtes_per_gt,
            self.rgd_offset,
            self.gd_offset,
            self.overhead,
            self.unclean_shutdown,
            self.newline_detector,
            self.compress_algorithm,
            self.pad,
        )

    @classmethod
    def new(
        cls,
        capacity: int,
        grain_size: int = DEFAULT_GRAIN_SIZE,
        num_gtes_per_gt: int = DEFAULT_NUM_GTES_PER_GT,
        redundant: bool = True,
    ) -> 'ExtentHeader':
        """
        Build a header for a fresh extent.

        Layout: header sector, redundant directory, primary directory.
        Grain tables and grains are appended after that on demand.
        """
        flags = DEFAULT_FLAGS if redundant else FLAG_VALID_NEWLINE_DETECTOR
        header = cls(
            magic_number=SPARSE_MAGICNUMBER,
            version=DEFAULT_VERSION,
            flags=flags,
            capacity=capacity,
            grain_size=grain_size,
            descriptor_offset=0,
            descriptor_size=0,
            num_gtes_per_gt=num_gtes_per_gt,
            rgd_offset=0,
            gd_offset=0,
            overhead=0,
        )
        header.validate_geometry()

        gd_sectors = header.grain_directory_sectors
        next_sector = 1
        if redundant:
            header.rgd_offset = next_sector
            next_sector += gd_sectors
        header.gd_offset = next_sector
        next_sector += gd_sectors
        header.overhead = next_sector
        return header

    def copy(self, **changes) -> 'ExtentHeader':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def validate_geometry(self) -> None:
        """Check grain and table geometry before any address translation."""
        if self.grain_size <= 0:
            raise InvalidGeometryError("Grain size must be greater than zero")
        if self.grain_size & (self.grain_size - 1):
            raise InvalidGeometryError(
                f"Grain size {self.grain_size} is not a power of two"
            )
        if self.num_gtes_per_gt <= 0:
            raise InvalidGeometryError("Grain table entry count must be greater than zero")
        if self.num_gtes_per_gt % ENTRIES_PER_SECTOR:
            raise InvalidGeometryError(
                f"Grain table entry count {self.num_gtes_per_gt} "
                f"is not a multiple of {ENTRIES_PER_SECTOR}"
            )

    @property
    def grain_table_coverage(self) -> int:
        """Logical sectors covered by one grain table."""
        return self.num_gtes_per_gt * self.grain_size

    @property
    def num_grain_directory_entries(self) -> int:
        coverage = self.grain_table_coverage
        return (self.capacity + coverage - 1) // coverage

    @property
    def grain_directory_sectors(self) -> int:
        return _sectors_for_bytes(self.num_grain_directory_entries * 4)

    @property
    def grain_table_sectors(self) -> int:
        return _sectors_for_bytes(self.num_gtes_per_gt * 4)

    @property
    def has_redundant_directory(self) -> bool:
        return bool(self.flags & FLAG_USE_REDUNDANT) and self.rgd_offset != 0

    @property
    def has_magic_gte(self) -> bool:
        return bool(self.flags & FLAG_MAGIC_GTE)

    @property
    def has_valid_newline_detector(self) -> bool:
        return bool(self.flags & FLAG_VALID_NEWLINE_DETECTOR)

    @property
    def is_compressed(self) -> bool:
        return bool(self.flags & FLAG_COMPRESSED) or self.compress_algorithm != COMPRESS_NONE

    @property
    def has_footer_directory(self) -> bool:
        """True for streamOptimized extents whose directory is at the end."""
        return self.gd_offset == GD_AT_END

    @property
    def directory_offsets(self) -> tuple[int, ...]:
        """Active grain directories, primary first."""
        if self.has_redundant_directory:
            return (self.gd_offset, self.rgd_offset)
        return (self.gd_offset,)


def parse_header(data: bytes) -> ExtentHeader:
    """Parse the first 512 bytes of an extent file."""
    return ExtentHeader.from_bytes(data)


def serialize_header(header: ExtentHeader) -> bytes:
    """Serialize a header to exactly 512 bytes."""
    return header.to_bytes()


@dataclass(frozen=True)
class GrainLocation:
    """
    Resolved location of a logical sector.

    kind is 'unallocated', 'zero' or 'allocated'. sector is the physical
    sector inside the extent file and is only set when allocated.
    """
    kind: str
    sector: int | None = None

    UNALLOCATED = 'unallocated'
    ZERO = 'zero'
    ALLOCATED = 'allocated'

    @classmethod
    def unallocated(cls) -> 'GrainLocation':
        return cls(cls.UNALLOCATED)

    @classmethod
    def zero(cls) -> 'GrainLocation':
        return cls(cls.ZERO)

    @classmethod
    def at(cls, sector: int) -> 'GrainLocation':
        return cls(cls.ALLOCATED, sector)

    @property
    def is_allocated(self) -> bool:
        return self.kind == self.ALLOCATED

    @property
    def reads_as_zero(self) -> bool:
        """Unallocated and zero grains both read back as zeros."""
        return self.kind != self.ALLOCATED

    def __str__(self) -> str:
        if self.is_allocated:
            return f"sector {self.sector}"
        return self.kind
