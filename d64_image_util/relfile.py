"""
Relative (REL) file storage.

A REL file is indexed by up to six side sectors. Every side sector lists
the locations of all side sectors of the file and up to 120 data sector
links. Each data sector holds one record of ``record_length`` bytes after
its two link bytes, so record N lives in the N-th indexed data sector.

The directory entry points both its start and its side-sector link at the
first side sector.
"""

from typing import Iterator

from .constants import (
    FILE_REL,
    FLAG_CLOSED,
    LINK_SIZE,
    MAX_RECORD_SIZE,
    MAX_REL_RECORDS,
    MAX_SIDE_SECTORS,
    PAYLOAD_SIZE,
    SECTOR_SIZE,
    SIDE_SECTOR_CHAIN_SIZE,
)
from .exceptions import (
    CorruptedDiskError,
    DiskFullError,
    InvalidRelStructureError,
    NotRelFileError,
)
from .logging_config import get_logger
from .models import DirectoryEntry, SideSector, TrackSector, encode_name

logger = get_logger('relfile')

END_OF_DATA = TrackSector(0, 0xFF)


def split_records(data: bytes, record_size: int) -> list[bytes]:
    """Cut data into records; empty data still yields one (empty) record."""
    records = [data[i:i + record_size] for i in range(0, len(data), record_size)]
    return records or [b'']


class RelFileStore:
    """Reads and writes REL files through their side-sector index."""

    def __init__(self, disk):
        self._disk = disk

    # =========================================================================
    # Reading
    # =========================================================================

    def iter_side_sectors(self, start: TrackSector) -> Iterator[tuple[TrackSector, SideSector]]:
        """
        Yield (location, side sector) pairs along the side-sector chain.

        Raises:
            CorruptedDiskError: On links outside the disk, loops, or more
                than six side sectors
        """
        geometry = self._disk.geometry
        seen = set()
        location = start

        while not location.is_end:
            if not geometry.is_valid(*location):
                raise CorruptedDiskError(f"Side sector link {location} is outside the disk")
            if location in seen:
                raise CorruptedDiskError(f"Circular side sector chain at {location}")
            if len(seen) == MAX_SIDE_SECTORS:
                raise CorruptedDiskError(f"More than {MAX_SIDE_SECTORS} side sectors")
            seen.add(location)

            side = SideSector.from_bytes(
                self._disk.read_bytes(location.track, location.sector, 0, SECTOR_SIZE))
            logger.debug(f"Side sector {side.block} at {location}: {len(side.chain)} data sectors")
            yield location, side
            location = side.next

    def record_map(self, entry: DirectoryEntry) -> list[TrackSector]:
        """
        Ordered list of data sectors, one per record.

        Raises:
            CorruptedDiskError: If a side sector points outside the disk
        """
        geometry = self._disk.geometry
        result = []
        for _, side in self.iter_side_sectors(self._side_start(entry)):
            for link in side.chain:
                if not geometry.is_valid(*link):
                    raise CorruptedDiskError(f"Data sector link {link} is outside the disk")
                result.append(link)
        return result

    def iter_sectors(self, entry: DirectoryEntry) -> Iterator[TrackSector]:
        """Yield every sector the file owns: side sectors and indexed data sectors."""
        geometry = self._disk.geometry
        for location, side in self.iter_side_sectors(self._side_start(entry)):
            yield location
            for link in side.chain:
                if not geometry.is_valid(*link):
                    raise CorruptedDiskError(f"Data sector link {link} is outside the disk")
                yield link

    def read(self, entry: DirectoryEntry) -> bytes:
        """
        Concatenate ``record_length`` bytes from every indexed data sector.

        Raises:
            NotRelFileError: If the entry is not a REL file
            InvalidRelStructureError: If the record length is zero
        """
        if not entry.is_rel:
            raise NotRelFileError(f"{entry.name} is a {entry.type_name} file, not REL")
        if entry.record_length == 0:
            raise InvalidRelStructureError(f"{entry.name} has a record length of 0")

        length = min(entry.record_length, PAYLOAD_SIZE)
        result = bytearray()
        for location in self.record_map(entry):
            result.extend(self._disk.read_bytes(location.track, location.sector, LINK_SIZE, length))
        return bytes(result)

    @staticmethod
    def _side_start(entry: DirectoryEntry) -> TrackSector:
        return entry.start if entry.side.is_end else entry.side

    # =========================================================================
    # Writing
    # =========================================================================

    @staticmethod
    def _records(name: str, record_size: int, data: bytes) -> list[bytes]:
        if not 1 <= record_size <= MAX_RECORD_SIZE:
            raise InvalidRelStructureError(
                f"Record size must be 1-{MAX_RECORD_SIZE}, got {record_size}")

        records = split_records(data, record_size)
        if len(records) > MAX_REL_RECORDS:
            raise InvalidRelStructureError(
                f"{name} needs {len(records)} records; REL files hold at most {MAX_REL_RECORDS}")
        return records

    def blocks_needed(self, name: str, record_size: int, data: bytes) -> int:
        """
        Check the record layout and return the sectors the file will occupy.

        Raises:
            InvalidRelStructureError: Same conditions as write()
        """
        count = len(self._records(name, record_size, data))
        return count + -(-count // SIDE_SECTOR_CHAIN_SIZE)

    def write(self, name: str, record_size: int, data: bytes) -> DirectoryEntry:
        """
        Store a REL file with one record per data sector.

        The directory slot is claimed first and stays unclosed while the
        file is built. On a full disk all sectors taken by this call are
        released and the slot is cleared before DiskFullError propagates.

        Raises:
            InvalidRelStructureError: For a record size outside 1-254 or
                more records than six side sectors can index
            DiskFullError: If the disk runs out of sectors
        """
        records = self._records(name, record_size, data)

        directory = self._disk.directory
        handle = directory.find_empty_slot()
        pending = DirectoryEntry.new(name, FILE_REL, TrackSector(0, 0))
        pending.type_byte &= ~FLAG_CLOSED & 0xFF
        pending.replace = TrackSector(0, 0)
        directory.write_entry(handle, pending)

        allocated: list[TrackSector] = []
        sides: list[tuple[TrackSector, SideSector]] = []
        data_sectors: list[TrackSector] = []
        try:
            for block, first in enumerate(range(0, len(records), SIDE_SECTOR_CHAIN_SIZE)):
                location = self._allocate(name, allocated)
                side = SideSector(block=block, record_size=record_size)
                sides.append((location, side))
                for _ in records[first:first + SIDE_SECTOR_CHAIN_SIZE]:
                    link = self._allocate(name, allocated)
                    side.chain.append(link)
                    data_sectors.append(link)
        except DiskFullError:
            self._disk.allocator.release(allocated)
            directory.clear_entry(handle)
            raise

        table = [location for location, _ in sides]
        for i, (location, side) in enumerate(sides):
            side.side_sectors = list(table)
            if i + 1 < len(sides):
                side.next = table[i + 1]
            else:
                side.next = TrackSector(0, side.last_used_byte)
            self._disk.write_bytes(location.track, location.sector, 0, side.to_bytes())

        for i, (location, record) in enumerate(zip(data_sectors, records)):
            link = data_sectors[i + 1] if i + 1 < len(data_sectors) else END_OF_DATA
            sector = bytes(link) + record + bytes(PAYLOAD_SIZE - len(record))
            self._disk.write_bytes(location.track, location.sector, 0, sector)

        entry = DirectoryEntry(
            type_byte=FLAG_CLOSED | FILE_REL,
            start=table[0],
            raw_name=encode_name(name),
            side=table[0],
            record_length=record_size,
            block_count=len(allocated),
        )
        directory.write_entry(handle, entry)

        logger.debug(f"Wrote REL file {name}: {len(records)} records of {record_size} bytes, "
                     f"{len(sides)} side sectors")
        return entry

    def _allocate(self, name: str, allocated: list[TrackSector]) -> TrackSector:
        location = self._disk.allocator.allocate_any()
        if location is None:
            logger.warning(f"Disk full writing REL file {name} after {len(allocated)} blocks")
            raise DiskFullError(f"Disk full: not enough room for REL file {name}")
        allocated.append(location)
        return location
