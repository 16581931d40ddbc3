"""
Creation of blank sparse extent files.

A new extent holds the header, the redundant and primary grain directories
and, optionally, one zeroed grain table per directory entry. Grains are
never preallocated.
"""

from .constants import DEFAULT_GRAIN_SIZE, DEFAULT_NUM_GTES_PER_GT, SECTOR_SIZE
from .exceptions import DiskError, InvalidGeometryError
from .grain_index import GrainIndex
from .logging_config import get_logger
from .models import ExtentHeader

log = get_logger('creator')


def create_sparse_extent(
    path: str,
    capacity: int,
    grain_size: int = DEFAULT_GRAIN_SIZE,
    num_gtes_per_gt: int = DEFAULT_NUM_GTES_PER_GT,
    redundant: bool = True,
    preallocate_tables: bool = False
) -> ExtentHeader:
    """
    Create a blank sparse extent file.

    Args:
        path: Path for the new extent file (overwritten if present)
        capacity: Logical size in sectors
        grain_size: Sectors per grain (power of two)
        num_gtes_per_gt: Entries per grain table (multiple of 128)
        redundant: Write a redundant grain directory
        preallocate_tables: Allocate all grain tables up front, the way
            hosted products lay out monolithic sparse files

    Returns:
        The header written to the file

    Raises:
        InvalidGeometryError: If the geometry is unusable
        DiskError: If the file cannot be written
    """
    if capacity < 0:
        raise InvalidGeometryError(f"Invalid capacity: {capacity}")

    header = ExtentHeader.new(capacity, grain_size, num_gtes_per_gt, redundant)
    directories = header.directory_offsets

    # Grain tables follow both directories; the redundant copy's tables
    # come first, matching the order of the directories themselves.
    tables: dict[int, list[int]] = {d: [] for d in directories}
    if preallocate_tables:
        next_sector = header.overhead
        for directory in sorted(directories):
            for _ in range(header.num_grain_directory_entries):
                tables[directory].append(next_sector)
                next_sector += header.grain_table_sectors
        header.overhead = next_sector

    # Round overhead up to a grain boundary so grain data stays aligned
    header.overhead = -(-header.overhead // grain_size) * grain_size

    try:
        with open(path, 'wb') as f:
            f.write(header.to_bytes())
            f.truncate(header.overhead * SECTOR_SIZE)

            index = GrainIndex(f, header)
            for directory, table_sectors in tables.items():
                for table_index, table_sector in enumerate(table_sectors):
                    index.set_directory_entry(directory, table_index, table_sector)
    except OSError as e:
        raise DiskError(f"Failed to create extent file: {e}") from e

    log.debug("Created extent %s: %d sectors, overhead %d", path, capacity, header.overhead)
    return header
