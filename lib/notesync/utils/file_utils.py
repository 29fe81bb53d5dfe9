"""
File Utilities
==============
Path normalization, allow-list checks, content hashing and atomic writes.
"""

import hashlib
import os
import posixpath
import tempfile
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from ..config.constants import (
    SYNC_FILE_EXTENSIONS,
    SYNC_DIRECTORY_NAMES,
    HASH_READ_SIZE,
    DROPBOX_HASH_BLOCK_SIZE,
    CONFLICT_COPY_INFIX,
    CONFLICT_TIMESTAMP_FORMAT,
)


def normalize_remote_path(path: str) -> str:
    """
    Normalize a remote path to absolute POSIX form.

    - Converts backslashes to forward slashes
    - Ensures leading slash
    - Collapses duplicate slashes
    - Removes trailing slash (unless root)

    Args:
        path: Raw path string

    Returns:
        Normalized path string ("/" for empty input)
    """
    if not path:
        return "/"

    normalized = path.replace('\\', '/')

    if not normalized.startswith('/'):
        normalized = '/' + normalized

    while '//' in normalized:
        normalized = normalized.replace('//', '/')

    if len(normalized) > 1 and normalized.endswith('/'):
        normalized = normalized[:-1]

    return normalized


def normalize_dropbox_path(path: str) -> str:
    """
    Normalize path to the Dropbox API format.

    Dropbox paths start with "/" and never end with "/". Case is kept:
    Dropbox is case-insensitive but preserves the display case on upload.
    """
    return normalize_remote_path(path)


def dropbox_api_path(path: str) -> str:
    """Dropbox addresses the root folder as the empty string."""
    normalized = normalize_dropbox_path(path)
    return "" if normalized == "/" else normalized


def join_remote_path(parent: str, name: str) -> str:
    """Join a remote directory and an entry name."""
    return normalize_remote_path(posixpath.join(normalize_remote_path(parent), name))


def split_remote_path(path: str) -> List[str]:
    """Split a remote path into its non-empty segments."""
    return [part for part in normalize_remote_path(path).split('/') if part]


def remote_parent_and_name(path: str):
    """Return (parent directory, base name) of a remote path."""
    normalized = normalize_remote_path(path)
    return posixpath.dirname(normalized) or "/", posixpath.basename(normalized)


def get_file_extension(filename: str) -> str:
    """
    Get lowercase file extension from filename.

    Args:
        filename: Filename or path

    Returns:
        Lowercase extension including dot (e.g., '.md')
    """
    if not filename:
        return ''

    _, ext = os.path.splitext(filename)
    return ext.lower()


def is_synced_file(filename: str) -> bool:
    """Only note files take part in a sync pass."""
    return get_file_extension(filename) in SYNC_FILE_EXTENSIONS


def is_synced_directory(dirname: str) -> bool:
    """Only attachment folders are descended into."""
    return dirname in SYNC_DIRECTORY_NAMES


def compute_md5(local_path: str) -> str:
    """MD5 hex digest of a local file, read in chunks."""
    digest = hashlib.md5()
    with open(local_path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_READ_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def compute_dropbox_content_hash(local_path: str) -> str:
    """
    Dropbox content_hash of a local file.

    SHA-256 of each 4MB block, concatenated, then SHA-256 of the
    concatenation. An empty file hashes to SHA-256 of the empty string.
    """
    block_hashes = b''
    with open(local_path, 'rb') as f:
        for block in iter(lambda: f.read(DROPBOX_HASH_BLOCK_SIZE), b''):
            block_hashes += hashlib.sha256(block).digest()
    return hashlib.sha256(block_hashes).hexdigest()


@contextmanager
def atomic_write_path(local_path: str) -> Iterator[str]:
    """
    Yield a temporary path next to ``local_path`` and move it into place
    only if the block completes.

    Parent directories are created as needed. On error the temporary file
    is removed and the destination is left untouched.
    """
    parent = os.path.dirname(os.path.abspath(local_path))
    os.makedirs(parent, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        prefix=f".{os.path.basename(local_path)}.", suffix=".part", dir=parent
    )
    os.close(fd)

    try:
        yield temp_path
        os.replace(temp_path, local_path)
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)


def conflict_copy_path(local_path: str, now: Optional[datetime] = None) -> str:
    """
    Path used to preserve a local file that conflicts with the remote copy.

    ``notes/todo.md`` -> ``notes/todo.conflict-20240101-120000.md``. The
    extension is kept so the copy is synced as a normal note later.
    """
    stamp = (now or datetime.now()).strftime(CONFLICT_TIMESTAMP_FORMAT)
    stem, ext = os.path.splitext(local_path)
    candidate = f"{stem}{CONFLICT_COPY_INFIX}{stamp}{ext}"

    counter = 1
    while os.path.exists(candidate):
        candidate = f"{stem}{CONFLICT_COPY_INFIX}{stamp}-{counter}{ext}"
        counter += 1

    return candidate
