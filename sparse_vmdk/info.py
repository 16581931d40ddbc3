"""
Extent and disk information for sparse extent images.

Provides functions to report header fields, geometry and allocation usage.
"""

import os
from typing import Any

from .constants import ENTRY_UNALLOCATED, GTE_ZERO_GRAIN, SECTOR_SIZE
from .disk import SparseDisk
from .extent import SparseExtent


def get_extent_info(extent: SparseExtent) -> dict[str, Any]:
    """
    Get header and allocation information for one extent.

    Allocation counts come from the primary directory only.
    """
    extent.flush()
    header = extent.header
    index = extent.index

    tables_allocated = 0
    grains_allocated = 0
    for _, table_sector in index.iter_tables(header.gd_offset):
        tables_allocated += 1
        for grain in index.read_table(table_sector):
            if grain == ENTRY_UNALLOCATED:
                continue
            if grain == GTE_ZERO_GRAIN and header.has_magic_gte:
                continue
            grains_allocated += 1

    total_grains = -(-header.capacity // header.grain_size)

    return {
        'path': extent.path,
        'version': header.version,
        'flags': header.flags,
        'capacity': header.capacity,
        'capacity_bytes': header.capacity * SECTOR_SIZE,
        'grain_size': header.grain_size,
        'grain_size_bytes': header.grain_size * SECTOR_SIZE,
        'num_gtes_per_gt': header.num_gtes_per_gt,
        'grain_table_coverage': header.grain_table_coverage,
        'gd_offset': header.gd_offset,
        'rgd_offset': header.rgd_offset,
        'redundant_directory': header.has_redundant_directory,
        'overhead': header.overhead,
        'unclean_shutdown': bool(header.unclean_shutdown),
        'compress_algorithm': header.compress_algorithm,
        'grain_directory_entries': header.num_grain_directory_entries,
        'grain_tables_allocated': tables_allocated,
        'total_grains': total_grains,
        'grains_allocated': grains_allocated,
        'allocated_bytes': grains_allocated * header.grain_size * SECTOR_SIZE,
        'file_size': os.path.getsize(extent.path),
        'readonly': extent.readonly,
    }


def get_disk_info(disk: SparseDisk) -> dict[str, Any]:
    """Get information about a disk and each of its extents."""
    extents = []
    for i, extent in enumerate(disk.extents):
        extent_info = get_extent_info(extent)
        extent_info['start_sector'] = disk.extent_start(i)
        extents.append(extent_info)

    return {
        'total_sectors': disk.total_sectors,
        'size': disk.size,
        'extent_count': len(extents),
        'allocated_bytes': sum(e['allocated_bytes'] for e in extents),
        'extents': extents,
    }
