"""
Consistency checking for sparse extents.

Compares the primary and redundant grain directories and tables entry by
entry and checks that every pointer lands inside the file. Nothing is
repaired: when the copies disagree there is no way to tell which one is
right from the file alone.
"""

import os
from dataclasses import dataclass, field

from .constants import ENTRY_UNALLOCATED, GTE_ZERO_GRAIN, SECTOR_SIZE
from .disk import SparseDisk
from .extent import SparseExtent


@dataclass
class VerificationResult:
    """Results from extent verification."""
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    info: list[str] = field(default_factory=list)

    # Statistics
    tables_checked: int = 0
    grains_in_use: int = 0
    mismatched_entries: int = 0
    cross_linked_grains: list[int] = field(default_factory=list)

    def add_error(self, message: str):
        """Add an error (extent is invalid)."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        """Add a warning (extent usable but has issues)."""
        self.warnings.append(message)

    def add_info(self, message: str):
        """Add informational message."""
        self.info.append(message)

    def merge(self, other: 'VerificationResult', prefix: str = '') -> None:
        """Fold another result into this one."""
        self.errors.extend(prefix + m for m in other.errors)
        self.warnings.extend(prefix + m for m in other.warnings)
        self.info.extend(prefix + m for m in other.info)
        self.is_valid = self.is_valid and other.is_valid
        self.tables_checked += other.tables_checked
        self.grains_in_use += other.grains_in_use
        self.mismatched_entries += other.mismatched_entries
        self.cross_linked_grains.extend(other.cross_linked_grains)


def verify_extent(extent: SparseExtent, verbose: bool = False) -> VerificationResult:
    """
    Verify one extent.

    Args:
        extent: An open SparseExtent
        verbose: Whether to include detailed information

    Returns:
        VerificationResult with findings
    """
    extent.flush()
    result = VerificationResult()
    header = extent.header
    index = extent.index
    file_sectors = os.path.getsize(extent.path) // SECTOR_SIZE

    if not header.has_redundant_directory:
        result.add_warning("Extent has no redundant grain directory")

    result.add_info("Checking grain directories...")
    directories = header.directory_offsets
    tables_by_dir = []
    for directory in directories:
        tables = {}
        for table_index in range(header.num_grain_directory_entries):
            table_sector = index.directory_entry(directory, table_index)
            if table_sector == ENTRY_UNALLOCATED:
                continue
            if table_sector + header.grain_table_sectors > file_sectors:
                result.add_error(
                    f"Directory at sector {directory}: grain table {table_index} "
                    f"points past end of file (sector {table_sector})"
                )
                continue
            tables[table_index] = index.read_table(table_sector)
            result.tables_checked += 1
        tables_by_dir.append(tables)

    result.add_info("Checking grain tables...")
    grain_usage: dict[int, list[int]] = {}
    empty_table = [ENTRY_UNALLOCATED] * header.num_gtes_per_gt
    for table_index in range(header.num_grain_directory_entries):
        copies = [tables.get(table_index, empty_table) for tables in tables_by_dir]
        primary = copies[0]
        for entry_index, grain in enumerate(primary):
            sector = table_index * header.grain_table_coverage + entry_index * header.grain_size
            if any(copy[entry_index] != grain for copy in copies[1:]):
                result.mismatched_entries += 1
                result.add_error(
                    f"Primary and redundant tables disagree for sector {sector}: "
                    + ', '.join(str(copy[entry_index]) for copy in copies)
                )
                continue
            if grain == ENTRY_UNALLOCATED:
                continue
            if grain == GTE_ZERO_GRAIN and header.has_magic_gte:
                continue
            if grain < header.overhead:
                result.add_error(f"Grain for sector {sector} lies inside metadata (sector {grain})")
            elif grain + header.grain_size > file_sectors:
                result.add_error(f"Grain for sector {sector} points past end of file (sector {grain})")
            grain_usage.setdefault(grain, []).append(sector)

    for grain, sectors in grain_usage.items():
        if len(sectors) > 1:
            result.add_error(
                f"Cross-linked grain at sector {grain}: used by sectors "
                + ', '.join(str(s) for s in sectors)
            )
            result.cross_linked_grains.append(grain)

    result.grains_in_use = len(grain_usage)

    if header.unclean_shutdown and extent.readonly:
        result.add_warning("Extent was not closed cleanly")

    if verbose:
        result.add_info(f"Grain tables checked: {result.tables_checked}")
        result.add_info(f"Grains in use: {result.grains_in_use}")

    return result


def verify_disk(disk: SparseDisk, verbose: bool = False) -> VerificationResult:
    """Verify every extent of a disk."""
    result = VerificationResult()
    for i, extent in enumerate(disk.extents):
        result.merge(verify_extent(extent, verbose), prefix=f"Extent {i}: ")
    return result
