"""
Directory management for D64 disk images.

The directory is a chain of sectors starting at track 18 sector 1. Each
sector holds eight 32-byte slots; the first two bytes of the sector are the
link to the next directory sector and each slot's 30-byte entry follows its
two leading bytes. A slot is in use when the closed flag of its type byte is
set.

Entries are addressed with EntryHandle (directory sector plus slot index);
decoded DirectoryEntry values are copies and are written back explicitly.
"""

from functools import cmp_to_key
from operator import attrgetter
from typing import Callable, Iterator

from .constants import (
    DIR_ENTRY_SIZE,
    DIR_SLOT_SIZE,
    DIRECTORY_SECTOR,
    DIRECTORY_TRACK,
    FILES_PER_SECTOR,
    LAST_DIR_SECTOR,
    LINK_SIZE,
    SECTOR_SIZE,
)
from .exceptions import CorruptedDiskError, DirectoryFullError, FileNotFoundError
from .logging_config import get_logger
from .models import DirectoryEntry, EntryHandle, TrackSector

logger = get_logger('directory')

DIRECTORY_START = TrackSector(DIRECTORY_TRACK, DIRECTORY_SECTOR)
END_OF_DIRECTORY = TrackSector(0, LAST_DIR_SECTOR)


def _slot_offset(index: int) -> int:
    return index * DIR_SLOT_SIZE + LINK_SIZE


class Directory:
    """Directory sector chain of one disk image."""

    def __init__(self, disk):
        self._disk = disk

    # =========================================================================
    # Chain and slot access
    # =========================================================================

    def iter_sectors(self) -> Iterator[TrackSector]:
        """
        Yield directory sectors in chain order.

        Raises:
            CorruptedDiskError: If a link leaves the disk or the chain loops
        """
        geometry = self._disk.geometry
        seen = set()
        location = DIRECTORY_START

        while True:
            if not geometry.is_valid(*location):
                raise CorruptedDiskError(f"Directory link {location} is outside the disk")
            if location in seen:
                raise CorruptedDiskError(f"Circular directory chain at {location}")
            seen.add(location)
            yield location

            link = self._disk.link_of(location)
            if link.is_end:
                return
            location = link

    def sectors(self) -> list[TrackSector]:
        return list(self.iter_sectors())

    def slots(self) -> Iterator[tuple[EntryHandle, DirectoryEntry]]:
        """Yield every slot, used or not, in directory order."""
        for location in self.iter_sectors():
            data = self._disk.read_bytes(location.track, location.sector, 0, SECTOR_SIZE)
            for index in range(FILES_PER_SECTOR):
                offset = _slot_offset(index)
                entry = DirectoryEntry.from_bytes(data[offset:offset + DIR_ENTRY_SIZE])
                yield EntryHandle(location.track, location.sector, index), entry

    def entries(self) -> list[tuple[EntryHandle, DirectoryEntry]]:
        """All allocated entries with their handles."""
        return [(handle, entry) for handle, entry in self.slots() if entry.is_closed]

    def list_entries(self) -> list[DirectoryEntry]:
        """All allocated entries in directory order."""
        return [entry for _, entry in self.entries()]

    def read_entry(self, handle: EntryHandle) -> DirectoryEntry:
        data = self._disk.read_bytes(handle.track, handle.sector,
                                     _slot_offset(handle.index), DIR_ENTRY_SIZE)
        return DirectoryEntry.from_bytes(data)

    def write_entry(self, handle: EntryHandle, entry: DirectoryEntry) -> None:
        self._disk.write_bytes(handle.track, handle.sector,
                               _slot_offset(handle.index), entry.to_bytes())

    def clear_entry(self, handle: EntryHandle) -> None:
        self._disk.write_bytes(handle.track, handle.sector,
                               _slot_offset(handle.index), bytes(DIR_ENTRY_SIZE))

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(self, name: str) -> tuple[EntryHandle, DirectoryEntry] | None:
        """First allocated entry with this name, or None."""
        for handle, entry in self.slots():
            if entry.is_closed and entry.name == name:
                return handle, entry
        return None

    def find(self, name: str) -> EntryHandle | None:
        found = self.lookup(name)
        return found[0] if found else None

    def _require(self, name: str) -> tuple[EntryHandle, DirectoryEntry]:
        found = self.lookup(name)
        if found is None:
            raise FileNotFoundError(f"File not found: {name}")
        return found

    # =========================================================================
    # Slot allocation
    # =========================================================================

    def find_empty_slot(self) -> EntryHandle:
        """
        Return the first free slot, growing the directory if every slot is used.

        Raises:
            DirectoryFullError: If no sector is left to extend the directory
        """
        tail = None
        for handle, entry in self.slots():
            if not entry.is_closed:
                return handle
            tail = TrackSector(handle.track, handle.sector)

        return self._grow(tail)

    def _grow(self, tail: TrackSector) -> EntryHandle:
        location = self._disk.allocator.allocate_any()
        if location is None:
            raise DirectoryFullError("Directory is full and the disk has no free sector")

        data = bytearray(SECTOR_SIZE)
        END_OF_DIRECTORY.pack_into(data, 0)
        self._disk.write_bytes(location.track, location.sector, 0, bytes(data))
        self._set_link(tail, location)

        logger.debug(f"Directory extended with sector {location}")
        return EntryHandle(location.track, location.sector, 0)

    def _set_link(self, location: TrackSector, link: TrackSector) -> None:
        self._disk.write_bytes(location.track, location.sector, 0, bytes(link))

    # =========================================================================
    # Entry operations
    # =========================================================================

    def add(self, entry: DirectoryEntry) -> EntryHandle:
        handle = self.find_empty_slot()
        self.write_entry(handle, entry)
        return handle

    def remove(self, name: str) -> DirectoryEntry:
        """
        Free every sector of a file and clear its directory entry.

        Sectors that are already free, or a chain that turns out to be
        broken, are logged and skipped; the verifier reconciles the BAM.

        Raises:
            FileNotFoundError: If no entry has this name
        """
        handle, entry = self._require(name)
        bam = self._disk.bam

        try:
            for location in self._disk.iter_file_sectors(entry):
                if not bam.mark_free(location.track, location.sector):
                    logger.warning(f"Sector {location} of {name} was already free")
        except CorruptedDiskError as e:
            logger.warning(f"Stopped freeing {name}: {e}")

        self.clear_entry(handle)
        return entry

    def rename(self, old_name: str, new_name: str) -> DirectoryEntry:
        handle, entry = self._require(old_name)
        entry.name = new_name
        self.write_entry(handle, entry)
        return entry

    def lock(self, name: str, locked: bool = True) -> DirectoryEntry:
        handle, entry = self._require(name)
        entry.set_locked(locked)
        self.write_entry(handle, entry)
        return entry

    # =========================================================================
    # Reordering
    # =========================================================================

    def reorder(self, names: list[str]) -> bool:
        """
        Place entries in the given name order.

        Names that match nothing are ignored; entries not named keep their
        relative order after the named ones.

        Returns:
            True if the directory was rewritten
        """
        remaining = self.list_entries()
        current = list(remaining)
        ordered = []
        for name in names:
            for i, entry in enumerate(remaining):
                if entry.name == name:
                    ordered.append(remaining.pop(i))
                    break
        return self._apply_order(current, ordered + remaining)

    def sort(
        self,
        key: Callable[[DirectoryEntry], object] | None = None,
        compare: Callable[[DirectoryEntry, DirectoryEntry], int] | None = None,
        reverse: bool = False
    ) -> bool:
        """
        Sort entries by a key function or a three-way compare function.

        Sorts by name when neither is given. Equal entries keep their order.
        """
        if compare is not None:
            key = cmp_to_key(compare)
        elif key is None:
            key = attrgetter('name')

        current = self.list_entries()
        if not current:
            return False
        return self._apply_order(current, sorted(current, key=key, reverse=reverse))

    def move_first(self, name: str) -> bool:
        """Swap the named entry with the first one; False if missing or already first."""
        current = self.list_entries()
        index = next((i for i, e in enumerate(current) if e.name == name), None)
        if not index:
            return False

        ordered = list(current)
        ordered[0], ordered[index] = ordered[index], ordered[0]
        return self._apply_order(current, ordered)

    def compact(self) -> bool:
        """
        Pack entries into the fewest directory sectors.

        Trailing sectors that are no longer needed are unlinked and freed;
        the first directory sector always stays.

        Returns:
            True if the directory was rewritten
        """
        sectors = self.sectors()
        all_slots = [entry for _, entry in self.slots()]
        current = [entry for entry in all_slots if entry.is_closed]
        needed = max(1, -(-len(current) // FILES_PER_SECTOR))

        dense = all(entry.is_closed for entry in all_slots[:len(current)])
        if dense and len(sectors) == needed:
            return False

        kept = sectors[:needed]
        self._rewrite(current, kept)
        self._set_link(kept[-1], END_OF_DIRECTORY)

        for location in sectors[needed:]:
            if self._disk.bam.mark_free(location.track, location.sector):
                logger.info(f"Freed directory sector {location}")
            else:
                logger.warning(f"Directory sector {location} was already free")
        return True

    def _apply_order(self, current: list[DirectoryEntry],
                     ordered: list[DirectoryEntry]) -> bool:
        if ordered == current:
            return False
        self._rewrite(ordered, self.sectors())
        return True

    def _rewrite(self, entries: list[DirectoryEntry], sectors: list[TrackSector]) -> None:
        """Write entries densely over the given sectors, keeping their links."""
        for i, location in enumerate(sectors):
            data = bytearray(self._disk.read_bytes(location.track, location.sector, 0, SECTOR_SIZE))
            data[LINK_SIZE:] = bytes(SECTOR_SIZE - LINK_SIZE)
            for index, entry in enumerate(entries[i * FILES_PER_SECTOR:(i + 1) * FILES_PER_SECTOR]):
                offset = _slot_offset(index)
                data[offset:offset + DIR_ENTRY_SIZE] = entry.to_bytes()
            self._disk.write_bytes(location.track, location.sector, 0, bytes(data))
