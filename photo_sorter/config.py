"""
Configuration constants for the photo sorter.
"""

# --- File Type Definitions ---
# Sidecars are never processed as media; they are consumed with their picture.
SIDECAR_EXTS = {'.json'}
VIDEO_EXTS = {'.mp4', '.mov', '.m4v', '.avi', '.mts', '.m2ts', '.3gp', '.mpg', '.mpeg', '.tod'}

# Live photos: IMG_7299.MP4 may carry its metadata in IMG_7299.HEIC.json
LIVE_PHOTO_SIDECAR_EXTS = ['.HEIC', '.heic']

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# Priority: Original -> Encoded -> Tagged
VIDEO_DATE_FIELDS = [
    "recorded_date",
    "encoded_date",
    "tagged_date",
]
EXIFTOOL_DATE_FIELDS = ["DateTimeOriginal", "CreateDate", "CreationDate", "MediaCreateDate"]

# --- Hashing ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading

# --- Deduplication ---
DEDUPE_LAZY = "lazy"    # index each destination directory right before it is used
DEDUPE_EAGER = "eager"  # index the whole library before the walk
DEDUPE_MODES = (DEDUPE_LAZY, DEDUPE_EAGER)

# --- Quarantine ---
DUPLICATES_SUBDIR = "duplicates"
TRASHED_SUBDIR = "trashed"
UNSUPPORTED_SUBDIR = "unsupported"

# --- Relocation ---
MAX_DECOLLISION_ATTEMPTS = 10
RSYNC_MOVE_CMD = ["rsync", "-a", "--remove-source-files"]
RSYNC_UNDO_CMD = "rsync -avh --progress --remove-source-files"
MV_UNDO_CMD = "mv -n"
PARTIAL_SUFFIX = ".partial"

# --- Undo Script ---
DEFAULT_UNDO_FILE = "undo.sh"
UNDO_TEMP_SUFFIX = ".temp"
UNDO_SHEBANG = "#!/bin/sh"
UNDO_FILE_MODE = 0o744

# --- Organization ---
YEAR_FORMAT = "%Y"
DATE_DIR_FORMAT = "%Y-%m-%d"
FILE_PREFIX_FORMAT = "%Y-%m-%d_%H-%M-%S_"
