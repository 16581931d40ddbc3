"""
Grain directory / grain table address translation.

A logical sector is found in two steps: the grain directory entry selects
a grain table, and the grain table entry selects a grain. Extents with a
redundant directory keep a second, independent set of tables that must
resolve every sector to the same grain as the primary set.
"""

import os
import struct
from typing import BinaryIO

from .constants import (
    ENTRIES_PER_SECTOR,
    ENTRY_SIZE,
    ENTRY_UNALLOCATED,
    GTE_ZERO_GRAIN,
    SECTOR_SIZE,
)
from .exceptions import (
    AllocationFailedError,
    CorruptedIndexError,
    DirectoryMismatchError,
    DiskError,
)
from .logging_config import get_logger
from .models import ExtentHeader, GrainLocation

log = get_logger('grain_index')

MAX_ENTRY_VALUE = 0xFFFFFFFF


class GrainIndex:
    """
    Two-level index over one extent file.

    Nothing is cached: every lookup re-reads the directory and table
    entries from the file so that the primary/redundant comparison always
    reflects what is on disk.
    """

    def __init__(self, file: BinaryIO, header: ExtentHeader):
        self._file = file
        self.header = header
        self.grain_size = header.grain_size
        self.grain_table_coverage = header.grain_table_coverage
        self.directories = header.directory_offsets

        # Header, directories and embedded descriptor; no grain table may start here
        self._reserved = [(0, 1)]
        for directory in self.directories:
            self._reserved.append((directory, directory + header.grain_directory_sectors))
        if header.descriptor_size:
            self._reserved.append(
                (header.descriptor_offset, header.descriptor_offset + header.descriptor_size)
            )

    # =========================================================================
    # Entry I/O
    # =========================================================================

    def _read_entry(self, byte_offset: int) -> int:
        self._file.seek(byte_offset)
        data = self._file.read(ENTRY_SIZE)
        if len(data) < ENTRY_SIZE:
            raise DiskError(f"Short read of index entry at byte {byte_offset}")
        return struct.unpack('<I', data)[0]

    def _write_entry(self, byte_offset: int, value: int) -> None:
        self._file.seek(byte_offset)
        self._file.write(struct.pack('<I', value))

    @staticmethod
    def directory_entry_offset(directory_offset: int, table_index: int) -> int:
        """Byte offset of a grain directory entry."""
        # Entries are packed 4 bytes apart, 128 per sector, like grain table entries
        return directory_offset * SECTOR_SIZE + table_index * ENTRY_SIZE

    @staticmethod
    def table_entry_offset(table_offset: int, entry_index: int) -> int:
        """Byte offset of a grain table entry."""
        return (
            (table_offset + entry_index // ENTRIES_PER_SECTOR) * SECTOR_SIZE
            + (entry_index % ENTRIES_PER_SECTOR) * ENTRY_SIZE
        )

    def directory_entry(self, directory_offset: int, table_index: int) -> int:
        return self._read_entry(self.directory_entry_offset(directory_offset, table_index))

    def set_directory_entry(self, directory_offset: int, table_index: int, value: int) -> None:
        self._write_entry(self.directory_entry_offset(directory_offset, table_index), value)

    def table_entry(self, table_offset: int, entry_index: int) -> int:
        return self._read_entry(self.table_entry_offset(table_offset, entry_index))

    def set_table_entry(self, table_offset: int, entry_index: int, value: int) -> None:
        self._write_entry(self.table_entry_offset(table_offset, entry_index), value)

    # =========================================================================
    # Read path
    # =========================================================================

    def split(self, sector: int) -> tuple[int, int]:
        """Return (grain table index, entry index within that table)."""
        table_index = sector // self.grain_table_coverage
        entry_index = (sector % self.grain_table_coverage) // self.grain_size
        return table_index, entry_index

    def _walk(self, sector: int, directory_offset: int) -> tuple[int | None, GrainLocation]:
        """Follow one directory; returns (grain table sector or None, location)."""
        table_index, entry_index = self.split(sector)

        table_offset = self.directory_entry(directory_offset, table_index)
        if table_offset == ENTRY_UNALLOCATED:
            return None, GrainLocation.unallocated()
        self._check_table_pointer(directory_offset, table_index, table_offset)

        grain = self.table_entry(table_offset, entry_index)
        if grain == ENTRY_UNALLOCATED:
            return table_offset, GrainLocation.unallocated()
        if grain == GTE_ZERO_GRAIN and self.header.has_magic_gte:
            return table_offset, GrainLocation.zero()
        if grain < self.header.overhead:
            raise CorruptedIndexError(
                f"Grain for sector {sector} points into extent metadata (sector {grain})"
            )
        return table_offset, GrainLocation.at(grain + sector % self.grain_size)

    def _check_table_pointer(self, directory_offset: int, table_index: int, table_offset: int) -> None:
        end = table_offset + self.header.grain_table_sectors
        for start, stop in self._reserved:
            if table_offset < stop and start < end:
                raise CorruptedIndexError(
                    f"Directory at sector {directory_offset}: grain table {table_index} "
                    f"overlaps extent metadata (sector {table_offset})"
                )

    def lookup(self, sector: int, directory_offset: int) -> GrainLocation:
        """Resolve a sector through a single grain directory."""
        return self._walk(sector, directory_offset)[1]

    def lookup_all(self, sector: int) -> list[GrainLocation]:
        """Resolve a sector through every active directory, primary first."""
        return [self.lookup(sector, directory) for directory in self.directories]

    def _check_agreement(self, sector: int, locations: list[GrainLocation]) -> None:
        if any(loc != locations[0] for loc in locations[1:]):
            described = ', '.join(str(loc) for loc in locations)
            log.warning("Grain directories disagree for sector %d: %s", sector, described)
            raise DirectoryMismatchError(
                f"Primary and redundant grain directories disagree for sector {sector}: "
                f"{described}",
                sector=sector,
                locations=locations,
            )

    def resolve(self, sector: int) -> GrainLocation:
        """Resolve a sector and require all directories to agree."""
        locations = self.lookup_all(sector)
        self._check_agreement(sector, locations)
        return locations[0]

    # =========================================================================
    # Write path
    # =========================================================================

    def _append_zeroed(self, num_sectors: int) -> int:
        """Append zero-filled sectors past end of file and return the first."""
        self._file.seek(0, os.SEEK_END)
        end = self._file.tell()
        start = max((end + SECTOR_SIZE - 1) // SECTOR_SIZE, self.header.overhead)
        if start + num_sectors > MAX_ENTRY_VALUE:
            raise AllocationFailedError(
                f"Extent is full: sector {start} does not fit a 32-bit entry"
            )
        self._file.seek(start * SECTOR_SIZE)
        self._file.write(bytes(num_sectors * SECTOR_SIZE))
        self._file.flush()
        return start

    def allocate(self, sector: int) -> GrainLocation:
        """
        Resolve a sector for writing, allocating its grain if needed.

        The same change is applied to every directory. New tables and the
        new grain are zero-filled before anything points at them, grain
        table entries are written before new tables are linked into their
        directories, and the primary copy is always updated first.
        """
        walks = [self._walk(sector, directory) for directory in self.directories]
        locations = [location for _, location in walks]
        self._check_agreement(sector, locations)
        if locations[0].is_allocated:
            return locations[0]

        table_index, entry_index = self.split(sector)

        try:
            new_tables: dict[int, int] = {}
            for i, (table_offset, _) in enumerate(walks):
                if table_offset is None:
                    new_tables[i] = self._append_zeroed(self.header.grain_table_sectors)
            grain_sector = self._append_zeroed(self.grain_size)
        except OSError as e:
            raise AllocationFailedError(f"Cannot grow extent file: {e}") from e

        log.debug(
            "Allocated grain at sector %d for sector %d (%d new grain table(s))",
            grain_sector, sector, len(new_tables),
        )

        for i, (table_offset, _) in enumerate(walks):
            if table_offset is None:
                table_offset = new_tables[i]
            self.set_table_entry(table_offset, entry_index, grain_sector)

        for i, directory in enumerate(self.directories):
            if i in new_tables:
                self.set_directory_entry(directory, table_index, new_tables[i])

        return GrainLocation.at(grain_sector + sector % self.grain_size)

    # =========================================================================
    # Scanning
    # =========================================================================

    def iter_tables(self, directory_offset: int):
        """Yield (table index, grain table sector) for allocated tables."""
        for table_index in range(self.header.num_grain_directory_entries):
            table_offset = self.directory_entry(directory_offset, table_index)
            if table_offset != ENTRY_UNALLOCATED:
                yield table_index, table_offset

    def read_table(self, table_offset: int) -> list[int]:
        """Read every entry of one grain table."""
        size = self.header.num_gtes_per_gt * ENTRY_SIZE
        self._file.seek(table_offset * SECTOR_SIZE)
        data = self._file.read(size)
        if len(data) < size:
            raise DiskError(f"Short read of grain table at sector {table_offset}")
        return list(struct.unpack(f'<{self.header.num_gtes_per_gt}I', data))
