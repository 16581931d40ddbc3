"""
Virtual disk made of one or more sparse extents.

The extent list comes from an already-parsed descriptor. Extents are laid
out back to back in logical sector space in descriptor order.
"""

import bisect
from dataclasses import dataclass, field
from pathlib import Path

from .constants import SECTOR_SIZE
from .exceptions import CapacityMismatchError, DiskError, SectorOutOfRangeError
from .extent import SparseExtent
from .logging_config import get_logger

log = get_logger('disk')


@dataclass
class ExtentDescriptor:
    """One extent line of a disk descriptor."""
    path: str
    capacity: int  # Sectors


@dataclass
class DiskDescriptor:
    """Extent layout of a virtual disk."""
    extents: list[ExtentDescriptor] = field(default_factory=list)
    total_sectors: int | None = None  # Declared disk size, checked if given
    base_dir: str | None = None       # Relative extent paths resolve here

    @classmethod
    def from_pairs(
        cls,
        pairs: list[tuple[str, int]],
        total_sectors: int | None = None,
        base_dir: str | None = None
    ) -> 'DiskDescriptor':
        """Build from (extent path, capacity) pairs."""
        return cls(
            extents=[ExtentDescriptor(path, capacity) for path, capacity in pairs],
            total_sectors=total_sectors,
            base_dir=base_dir,
        )

    def resolve_path(self, path: str) -> str:
        p = Path(path)
        if self.base_dir is not None and not p.is_absolute():
            p = Path(self.base_dir) / p
        return str(p)

    @property
    def declared_sectors(self) -> int:
        return sum(e.capacity for e in self.extents)


class SparseDisk:
    """
    Ordered, immutable sequence of extents covering one logical disk.

    Sector requests are routed to the extent owning that sector.
    """

    def __init__(self, extents: list[SparseExtent]):
        self._extents = tuple(extents)
        self._starts: list[int] = []
        start = 0
        for extent in self._extents:
            self._starts.append(start)
            start += extent.capacity
        self._total_sectors = start

    @classmethod
    def open(cls, descriptor: DiskDescriptor, readonly: bool = False) -> 'SparseDisk':
        """
        Open every extent listed in the descriptor.

        Raises CapacityMismatchError if an extent header disagrees with its
        descriptor entry or the entries do not add up to the declared size.
        """
        if not descriptor.extents:
            raise DiskError("Disk descriptor lists no extents")
        if (descriptor.total_sectors is not None
                and descriptor.declared_sectors != descriptor.total_sectors):
            raise CapacityMismatchError(
                f"Extent capacities sum to {descriptor.declared_sectors} sectors, "
                f"disk declares {descriptor.total_sectors}"
            )

        extents: list[SparseExtent] = []
        try:
            for entry in descriptor.extents:
                extent = SparseExtent(descriptor.resolve_path(entry.path), readonly)
                extents.append(extent)
                if extent.capacity != entry.capacity:
                    raise CapacityMismatchError(
                        f"Extent {extent.path} holds {extent.capacity} sectors, "
                        f"descriptor lists {entry.capacity}"
                    )
        except Exception:
            for extent in extents:
                extent.close()
            raise

        log.debug("Opened disk with %d extent(s)", len(extents))
        return cls(extents)

    # =========================================================================
    # Addressing
    # =========================================================================

    @property
    def extents(self) -> tuple[SparseExtent, ...]:
        return self._extents

    @property
    def total_sectors(self) -> int:
        return self._total_sectors

    @property
    def size(self) -> int:
        """Disk size in bytes."""
        return self._total_sectors * SECTOR_SIZE

    def extent_start(self, index: int) -> int:
        """First logical sector of an extent."""
        return self._starts[index]

    def locate(self, sector: int) -> tuple[SparseExtent, int]:
        """Map a disk sector to (extent, sector within extent)."""
        if sector < 0 or sector >= self._total_sectors:
            raise SectorOutOfRangeError(
                f"Sector {sector} out of range for disk of {self._total_sectors} sectors"
            )
        index = bisect.bisect_right(self._starts, sector) - 1
        return self._extents[index], sector - self._starts[index]

    # =========================================================================
    # Sector I/O
    # =========================================================================

    def read_sector(self, sector: int) -> bytes:
        """Read a single sector from the disk."""
        extent, local = self.locate(sector)
        return extent.read_sector(local)

    def write_sector(self, sector: int, data: bytes) -> None:
        """Write a single sector to the disk."""
        extent, local = self.locate(sector)
        extent.write_sector(local, data)

    def read_sectors(self, start: int, count: int) -> bytes:
        """Read consecutive sectors, crossing extent boundaries as needed."""
        return b''.join(self.read_sector(start + i) for i in range(count))

    def write_sectors(self, start: int, data: bytes) -> None:
        """Write whole sectors, crossing extent boundaries as needed."""
        if len(data) % SECTOR_SIZE:
            raise DiskError(f"Data length {len(data)} is not a multiple of {SECTOR_SIZE}")
        for i in range(len(data) // SECTOR_SIZE):
            self.write_sector(start + i, data[i * SECTOR_SIZE:(i + 1) * SECTOR_SIZE])

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def flush(self) -> None:
        """Flush any pending changes to disk."""
        for extent in self._extents:
            extent.flush()

    def close(self) -> None:
        """Close every extent."""
        for extent in self._extents:
            extent.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
