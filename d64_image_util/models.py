"""
Data model classes for D64 disk structures.

Each model is a decoded view of a fixed byte layout. Views are built with
``from_bytes`` and written back with ``to_bytes``; they never alias the
image buffer.
"""

from dataclasses import dataclass, field
from typing import NamedTuple

from .constants import (
    DIR_ENTRY_SIZE,
    ENTRY_NAME,
    ENTRY_RECORD_LENGTH,
    ENTRY_REPLACE,
    ENTRY_SIDE,
    ENTRY_SIZE,
    ENTRY_START,
    ENTRY_TYPE,
    ENTRY_UNUSED,
    FILE_NAME_SIZE,
    FILE_REL,
    FILE_TYPE_NAMES,
    FLAG_CLOSED,
    FLAG_LOCKED,
    MAX_SIDE_SECTORS,
    PAD_BYTE,
    SECTOR_SIZE,
    SIDE_BLOCK,
    SIDE_CHAIN,
    SIDE_NEXT,
    SIDE_RECORD_SIZE,
    SIDE_SECTOR_CHAIN_SIZE,
    SIDE_TABLE,
    TYPE_MASK,
)
from .exceptions import DiskError


class TrackSector(NamedTuple):
    """A (track, sector) link. Track 0 terminates a chain."""
    track: int
    sector: int

    @property
    def is_end(self) -> bool:
        return self.track == 0

    @classmethod
    def unpack_from(cls, data: bytes, offset: int) -> 'TrackSector':
        return cls(data[offset], data[offset + 1])

    def pack_into(self, data: bytearray, offset: int) -> None:
        data[offset] = self.track & 0xFF
        data[offset + 1] = self.sector & 0xFF

    def __str__(self) -> str:
        return f"{self.track}/{self.sector}"


NO_LINK = TrackSector(0, 0)


@dataclass(frozen=True)
class EntryHandle:
    """Location of a directory slot: directory sector plus slot index 0-7."""
    track: int
    sector: int
    index: int


def encode_name(name: str, size: int = FILE_NAME_SIZE) -> bytes:
    """Encode a name as latin-1, truncated and padded with 0xA0."""
    raw = name.encode('latin-1')[:size]
    return raw + bytes([PAD_BYTE]) * (size - len(raw))


def decode_name(raw: bytes) -> str:
    """Decode a padded name, dropping trailing pad bytes."""
    return raw.rstrip(bytes([PAD_BYTE])).decode('latin-1')


@dataclass
class DirectoryEntry:
    """Represents the 30 data bytes of a directory slot."""
    type_byte: int              # type nibble plus closed/locked/replace flags
    start: TrackSector          # first data sector (first side sector for REL)
    raw_name: bytes             # 16 bytes, padded with 0xA0
    side: TrackSector = NO_LINK
    record_length: int = 0
    unused: bytes = b'\x00\x00\x00\x00'
    replace: TrackSector = NO_LINK
    block_count: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> 'DirectoryEntry':
        """Parse a 30-byte directory entry."""
        if len(data) != DIR_ENTRY_SIZE:
            raise DiskError(f"Invalid directory entry size: {len(data)}")

        return cls(
            type_byte=data[ENTRY_TYPE],
            start=TrackSector.unpack_from(data, ENTRY_START),
            raw_name=bytes(data[ENTRY_NAME:ENTRY_NAME + FILE_NAME_SIZE]),
            side=TrackSector.unpack_from(data, ENTRY_SIDE),
            record_length=data[ENTRY_RECORD_LENGTH],
            unused=bytes(data[ENTRY_UNUSED:ENTRY_UNUSED + 4]),
            replace=TrackSector.unpack_from(data, ENTRY_REPLACE),
            block_count=data[ENTRY_SIZE] | (data[ENTRY_SIZE + 1] << 8),
        )

    @classmethod
    def new(cls, name: str, file_type: int, start: TrackSector) -> 'DirectoryEntry':
        """Create a closed entry whose replace link mirrors its start."""
        return cls(
            type_byte=FLAG_CLOSED | (file_type & TYPE_MASK),
            start=start,
            raw_name=encode_name(name),
            replace=start,
        )

    def to_bytes(self) -> bytes:
        """Serialize to 30 bytes."""
        data = bytearray(DIR_ENTRY_SIZE)
        data[ENTRY_TYPE] = self.type_byte & 0xFF
        self.start.pack_into(data, ENTRY_START)
        data[ENTRY_NAME:ENTRY_NAME + FILE_NAME_SIZE] = self.raw_name[:FILE_NAME_SIZE].ljust(
            FILE_NAME_SIZE, bytes([PAD_BYTE]))
        self.side.pack_into(data, ENTRY_SIDE)
        data[ENTRY_RECORD_LENGTH] = self.record_length & 0xFF
        data[ENTRY_UNUSED:ENTRY_UNUSED + 4] = self.unused[:4].ljust(4, b'\x00')
        self.replace.pack_into(data, ENTRY_REPLACE)
        data[ENTRY_SIZE] = self.block_count & 0xFF
        data[ENTRY_SIZE + 1] = (self.block_count >> 8) & 0xFF
        return bytes(data)

    @property
    def name(self) -> str:
        return decode_name(self.raw_name)

    @name.setter
    def name(self, value: str) -> None:
        self.raw_name = encode_name(value)

    @property
    def file_type(self) -> int:
        return self.type_byte & TYPE_MASK

    @property
    def type_name(self) -> str:
        return FILE_TYPE_NAMES.get(self.file_type, '???')

    @property
    def is_closed(self) -> bool:
        """Allocated entry; a clear flag marks a free slot."""
        return bool(self.type_byte & FLAG_CLOSED)

    @property
    def is_locked(self) -> bool:
        return bool(self.type_byte & FLAG_LOCKED)

    @property
    def is_rel(self) -> bool:
        return self.file_type == FILE_REL

    def set_locked(self, locked: bool) -> None:
        if locked:
            self.type_byte |= FLAG_LOCKED
        else:
            self.type_byte &= ~FLAG_LOCKED & 0xFF

    def flag_string(self) -> str:
        """Return '<' for a locked file, like a CBM directory listing."""
        return '<' if self.is_locked else ''


@dataclass
class SideSector:
    """Index sector of a REL file."""
    next: TrackSector = NO_LINK
    block: int = 0
    record_size: int = 0
    side_sectors: list[TrackSector] = field(default_factory=list)
    chain: list[TrackSector] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'SideSector':
        """Parse a 256-byte side sector. Empty table/chain slots are dropped."""
        if len(data) != SECTOR_SIZE:
            raise DiskError(f"Invalid side sector size: {len(data)}")

        side_sectors = []
        for i in range(MAX_SIDE_SECTORS):
            link = TrackSector.unpack_from(data, SIDE_TABLE + i * 2)
            if link.is_end:
                break
            side_sectors.append(link)

        chain = []
        for i in range(SIDE_SECTOR_CHAIN_SIZE):
            link = TrackSector.unpack_from(data, SIDE_CHAIN + i * 2)
            if link.is_end:
                break
            chain.append(link)

        return cls(
            next=TrackSector.unpack_from(data, SIDE_NEXT),
            block=data[SIDE_BLOCK],
            record_size=data[SIDE_RECORD_SIZE],
            side_sectors=side_sectors,
            chain=chain,
        )

    def to_bytes(self) -> bytes:
        """Serialize to a full sector; unused slots are zero."""
        if len(self.side_sectors) > MAX_SIDE_SECTORS:
            raise DiskError(f"Too many side sectors: {len(self.side_sectors)}")
        if len(self.chain) > SIDE_SECTOR_CHAIN_SIZE:
            raise DiskError(f"Side sector chain too long: {len(self.chain)}")

        data = bytearray(SECTOR_SIZE)
        self.next.pack_into(data, SIDE_NEXT)
        data[SIDE_BLOCK] = self.block & 0xFF
        data[SIDE_RECORD_SIZE] = self.record_size & 0xFF
        for i, link in enumerate(self.side_sectors):
            link.pack_into(data, SIDE_TABLE + i * 2)
        for i, link in enumerate(self.chain):
            link.pack_into(data, SIDE_CHAIN + i * 2)
        return bytes(data)

    @property
    def last_used_byte(self) -> int:
        """Index of the last chain byte in use, stored in a final side sector's link."""
        return SIDE_CHAIN + len(self.chain) * 2 - 1
