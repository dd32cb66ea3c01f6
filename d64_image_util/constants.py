"""
Constants for the Commodore D64 disk image utility.
"""

# Sector layout
SECTOR_SIZE = 256
LINK_SIZE = 2                              # next track/sector pointer
PAYLOAD_SIZE = SECTOR_SIZE - LINK_SIZE     # 254 data bytes per chained sector

# Disk geometry
TRACKS_35 = 35
TRACKS_40 = 40
D64_DISK35_SZ = 174848
D64_DISK40_SZ = 196608

# Sectors per track, indexed by track - 1 (tracks 36-40 only on 40-track images)
SECTORS_PER_TRACK = (
    [21] * 17 +     # tracks 1-17
    [19] * 7 +      # tracks 18-24
    [18] * 6 +      # tracks 25-30
    [17] * 10       # tracks 31-40
)
MAX_SECTORS_PER_TRACK = 21

# Directory track
DIRECTORY_TRACK = 18
BAM_SECTOR = 0
DIRECTORY_SECTOR = 1

# Allocation
INTERLEAVE = 10             # sector skip within a track

# Fill values
PAD_BYTE = 0xA0             # shifted space, pads names
FORMAT_FILL = 0x01          # every byte of a freshly formatted image
LAST_DIR_SECTOR = 0xFF      # sector byte of the final directory link

# BAM sector offsets
BAM_DIR_START = 0x00
BAM_DOS_VERSION = 0x02
BAM_UNUSED = 0x03
BAM_TRACKS = 0x04           # 4 bytes per track, tracks 1-35
BAM_TRACK_ENTRY_SIZE = 4
BAM_DISK_NAME = 0x90
BAM_PAD1 = 0xA0             # 2 bytes of 0xA0
BAM_DISK_ID = 0xA2
BAM_PAD2 = 0xA4
BAM_DOS_TYPE = 0xA5
BAM_UNUSED3 = 0xA7          # 5 bytes
BAM_EXTENDED_TRACKS = 0xAC  # DolphinDOS: tracks 36-40

DOS_VERSION = ord('A')
DOS_TYPE = b'2A'
DISK_NAME_SIZE = 16
DISK_ID_SIZE = 2
DEFAULT_DISK_NAME = "NEW DISK"

# Directory sector layout
DIR_SLOT_SIZE = 32          # slot stride inside a directory sector
DIR_ENTRY_SIZE = 30         # entry bytes following the 2 link/unused bytes
FILES_PER_SECTOR = 8
FILE_NAME_SIZE = 16

# Directory entry offsets (relative to the 30-byte entry)
ENTRY_TYPE = 0x00
ENTRY_START = 0x01
ENTRY_NAME = 0x03
ENTRY_SIDE = 0x13
ENTRY_RECORD_LENGTH = 0x15
ENTRY_UNUSED = 0x16         # 4 bytes
ENTRY_REPLACE = 0x1A
ENTRY_SIZE = 0x1C           # little-endian block count

# File types (low nibble of the type byte)
FILE_DEL = 0
FILE_SEQ = 1
FILE_PRG = 2
FILE_USR = 3
FILE_REL = 4

FILE_TYPE_NAMES = {
    FILE_DEL: 'DEL',
    FILE_SEQ: 'SEQ',
    FILE_PRG: 'PRG',
    FILE_USR: 'USR',
    FILE_REL: 'REL',
}

# Extraction extensions; DEL has no mapping on purpose
FILE_TYPE_EXTENSIONS = {
    FILE_PRG: '.prg',
    FILE_SEQ: '.seq',
    FILE_USR: '.usr',
    FILE_REL: '.rel',
}

# Type byte flags
TYPE_MASK = 0x0F
FLAG_UNUSED = 0x10
FLAG_REPLACE = 0x20
FLAG_LOCKED = 0x40
FLAG_CLOSED = 0x80

# Side sectors (REL files)
SIDE_NEXT = 0x00
SIDE_BLOCK = 0x02
SIDE_RECORD_SIZE = 0x03
SIDE_TABLE = 0x04           # 6 track/sector pairs
SIDE_CHAIN = 0x10           # 120 track/sector pairs
MAX_SIDE_SECTORS = 6
SIDE_SECTOR_CHAIN_SIZE = (SECTOR_SIZE - SIDE_CHAIN) // 2    # 120
MAX_RECORD_SIZE = PAYLOAD_SIZE
MAX_REL_RECORDS = MAX_SIDE_SECTORS * SIDE_SECTOR_CHAIN_SIZE

# Characters CBM DOS refuses in file names
INVALID_FILENAME_CHARS = set(',:*?="\r')
