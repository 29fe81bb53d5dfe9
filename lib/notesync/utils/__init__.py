"""
Utilities module - Path handling, hashing, logging and retry helpers.
"""

from .file_utils import (
    normalize_remote_path,
    normalize_dropbox_path,
    dropbox_api_path,
    join_remote_path,
    split_remote_path,
    remote_parent_and_name,
    get_file_extension,
    is_synced_file,
    is_synced_directory,
    compute_md5,
    compute_dropbox_content_hash,
    atomic_write_path,
    conflict_copy_path,
)

from .log_utils import setup_logger
from .retry import call_with_retries
from .time_utils import datetime_to_epoch_ms, iso_to_epoch_ms, http_date_to_epoch_ms

__all__ = [
    # File utilities
    "normalize_remote_path",
    "normalize_dropbox_path",
    "dropbox_api_path",
    "join_remote_path",
    "split_remote_path",
    "remote_parent_and_name",
    "get_file_extension",
    "is_synced_file",
    "is_synced_directory",
    "compute_md5",
    "compute_dropbox_content_hash",
    "atomic_write_path",
    "conflict_copy_path",
    # Logging
    "setup_logger",
    # Retry
    "call_with_retries",
    # Timestamps
    "datetime_to_epoch_ms",
    "iso_to_epoch_ms",
    "http_date_to_epoch_ms",
]
