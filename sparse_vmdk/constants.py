"""
Constants for the hosted sparse extent (VMDK) disk format.
"""

# Sector size is fixed for the whole format
SECTOR_SIZE = 512
HEADER_SIZE = 512
ENTRY_SIZE = 4  # Directory and table entries are 32-bit sector offsets
ENTRIES_PER_SECTOR = SECTOR_SIZE // ENTRY_SIZE  # 128

# Header identity
SPARSE_MAGICNUMBER = 0x564D444B  # 'KDMV' little-endian
SPARSE_MAGIC_BYTES = b'KDMV'
SPARSE_MIN_VERSION = 1
SPARSE_MAX_VERSION = 3

# Header flags
FLAG_VALID_NEWLINE_DETECTOR = 0x00000001
FLAG_USE_REDUNDANT = 0x00000002
FLAG_MAGIC_GTE = 0x00000004
FLAG_COMPRESSED = 0x00010000
FLAG_EMBEDDED_LBA = 0x00020000

# Compression algorithms
COMPRESS_NONE = 0x0000
COMPRESS_DEFLATE = 0x0001

# Special pointer values
GD_AT_END = 0xFFFFFFFFFFFFFFFF  # streamOptimized: directory lives in the footer
ENTRY_UNALLOCATED = 0x00000000
GTE_ZERO_GRAIN = 0x00000001     # Only meaningful with FLAG_MAGIC_GTE

# Newline detector bytes
SINGLE_END_LINE_CHAR = b'\n'
NON_END_LINE_CHAR = b' '
DOUBLE_END_LINE_CHAR1 = b'\r'
DOUBLE_END_LINE_CHAR2 = b'\n'
NEWLINE_DETECTOR = (
    SINGLE_END_LINE_CHAR + NON_END_LINE_CHAR
    + DOUBLE_END_LINE_CHAR1 + DOUBLE_END_LINE_CHAR2
)

# Header field offsets
HDR_MAGIC = 0
HDR_VERSION = 4
HDR_FLAGS = 8
HDR_CAPACITY = 12
HDR_GRAIN_SIZE = 20
HDR_DESCRIPTOR_OFFSET = 28
HDR_DESCRIPTOR_SIZE = 36
HDR_NUM_GTES_PER_GT = 44
HDR_RGD_OFFSET = 48
HDR_GD_OFFSET = 56
HDR_OVERHEAD = 64
HDR_UNCLEAN_SHUTDOWN = 72
HDR_NEWLINE_DETECTOR = 73
HDR_COMPRESS_ALGORITHM = 77
HDR_PAD = 79
HDR_PAD_SIZE = HEADER_SIZE - HDR_PAD  # 433 bytes reserved

# Defaults for newly created extents
DEFAULT_VERSION = 1
DEFAULT_FLAGS = FLAG_VALID_NEWLINE_DETECTOR | FLAG_USE_REDUNDANT
DEFAULT_GRAIN_SIZE = 128         # 64KB grains
DEFAULT_NUM_GTES_PER_GT = 512    # 32MB covered per grain table
