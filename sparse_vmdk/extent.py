"""
Sparse extent file with sector-granular read/write.
"""

from typing import BinaryIO

from .constants import HDR_UNCLEAN_SHUTDOWN, HEADER_SIZE, NEWLINE_DETECTOR, SECTOR_SIZE
from .exceptions import (
    CorruptedHeaderError,
    DiskError,
    SectorOutOfRangeError,
    UnsupportedFormatError,
)
from .grain_index import GrainIndex
from .logging_config import get_logger
from .models import ExtentHeader, GrainLocation

log = get_logger('extent')


class SparseExtent:
    """
    One sparse extent file.

    The extent owns its file handle. The header is read and validated when
    the extent is opened; a failure while opening closes the file again so
    that no half-open extent is ever returned.
    """

    def __init__(self, path: str, readonly: bool = False):
        self.path = str(path)
        self.readonly = readonly
        self._file: BinaryIO | None = None
        self._index: GrainIndex | None = None
        self.header: ExtentHeader | None = None

        mode = 'rb' if readonly else 'r+b'
        try:
            self._file = open(self.path, mode)
        except OSError as e:
            raise DiskError(f"Cannot open extent file: {e}") from e

        try:
            self._load_header()
            if not readonly:
                self._mark_unclean()
        except Exception:
            self._file.close()
            self._file = None
            raise

        log.debug("Opened extent %s (%d sectors, %s)",
                  self.path, self.capacity, 'read-only' if readonly else 'read-write')

    @classmethod
    def open(cls, path: str, readonly: bool = False) -> 'SparseExtent':
        return cls(path, readonly)

    def _load_header(self) -> None:
        """Parse and validate the header at offset 0."""
        self._file.seek(0)
        header = ExtentHeader.from_bytes(self._file.read(HEADER_SIZE))
        header.validate_geometry()

        if header.is_compressed:
            raise UnsupportedFormatError("Compressed sparse extents are not supported")
        if header.has_footer_directory:
            raise UnsupportedFormatError(
                "Extents with the grain directory at the end are not supported"
            )
        if header.has_valid_newline_detector and header.newline_detector != NEWLINE_DETECTOR:
            raise CorruptedHeaderError(
                "Newline detector bytes are damaged "
                f"({header.newline_detector!r}); file was probably transferred in text mode"
            )

        self.header = header
        self._index = GrainIndex(self._file, header)

    def _mark_unclean(self) -> None:
        if self.header.unclean_shutdown:
            log.warning("Extent %s was not closed cleanly", self.path)
        self._set_unclean_flag(1)

    def _set_unclean_flag(self, value: int) -> None:
        self._file.seek(HDR_UNCLEAN_SHUTDOWN)
        self._file.write(bytes([value]))
        self._file.flush()
        self.header.unclean_shutdown = value

    # =========================================================================
    # Geometry
    # =========================================================================

    @property
    def capacity(self) -> int:
        return self.header.capacity

    @property
    def grain_size(self) -> int:
        return self.header.grain_size

    @property
    def grain_table_coverage(self) -> int:
        return self._index.grain_table_coverage

    @property
    def index(self) -> GrainIndex:
        self._check_open()
        return self._index

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def _check_open(self) -> None:
        if self._file is None:
            raise DiskError("Extent file not open")

    def _check_sector(self, sector: int) -> None:
        if sector < 0 or sector >= self.capacity:
            raise SectorOutOfRangeError(
                f"Sector {sector} out of range for extent of {self.capacity} sectors"
            )

    # =========================================================================
    # Sector I/O
    # =========================================================================

    def locate(self, sector: int) -> GrainLocation:
        """Resolve a sector through both directories without reading data."""
        self._check_open()
        self._check_sector(sector)
        return self._index.resolve(sector)

    def read_sector(self, sector: int) -> bytes:
        """Read a single 512-byte sector."""
        location = self.locate(sector)
        if location.reads_as_zero:
            return bytes(SECTOR_SIZE)

        self._file.seek(location.sector * SECTOR_SIZE)
        data = self._file.read(SECTOR_SIZE)
        if len(data) < SECTOR_SIZE:
            raise DiskError(
                f"Short read at physical sector {location.sector} "
                f"(logical sector {sector})"
            )
        return data

    def write_sector(self, sector: int, data: bytes) -> None:
        """Write a single 512-byte sector, allocating its grain if needed."""
        self._check_open()
        if self.readonly:
            raise DiskError("Extent opened in read-only mode")
        if len(data) != SECTOR_SIZE:
            raise DiskError(f"Invalid sector size: {len(data)}")
        self._check_sector(sector)

        location = self._index.allocate(sector)
        self._file.seek(location.sector * SECTOR_SIZE)
        self._file.write(data)

    def read_sectors(self, start: int, count: int) -> bytes:
        """Read count consecutive sectors."""
        return b''.join(self.read_sector(start + i) for i in range(count))

    def write_sectors(self, start: int, data: bytes) -> None:
        """Write whole sectors starting at start."""
        if len(data) % SECTOR_SIZE:
            raise DiskError(f"Data length {len(data)} is not a multiple of {SECTOR_SIZE}")
        for i in range(len(data) // SECTOR_SIZE):
            self.write_sector(start + i, data[i * SECTOR_SIZE:(i + 1) * SECTOR_SIZE])

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def flush(self) -> None:
        """Flush any pending changes to disk."""
        if self._file:
            self._file.flush()

    def close(self) -> None:
        """Close the extent, marking it clean if it was writable."""
        if self._file is None:
            return
        try:
            if not self.readonly:
                self._set_unclean_flag(0)
            self._file.flush()
        finally:
            self._file.close()
            self._file = None
            log.debug("Closed extent %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = 'open' if self.is_open else 'closed'
        return f"SparseExtent({self.path!r}, {state})"
