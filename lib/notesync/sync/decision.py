"""
Transfer Decision
=================
Pure skip/transfer rule shared by both sync directions.

A file is skipped only when the other side exists, the sizes agree and,
if the remote side exposes a hash, the local hash matches it. The local
hash is requested only after the sizes agree.
"""

import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..models import RemoteFileInfo


@dataclass
class FileDigest:
    """
    Size plus a (possibly lazy) content hash for one side of a comparison.

    ``hasher`` is called at most once, and only if the hash is needed.
    """
    size: int
    content_hash: Optional[str] = None
    hasher: Optional[Callable[[], str]] = None
    _computed: bool = field(default=False, repr=False)

    @classmethod
    def for_local(cls, local_path: str, hash_func: Callable[[str], str]) -> "FileDigest":
        return cls(
            size=os.path.getsize(local_path),
            hasher=lambda: hash_func(local_path),
        )

    @classmethod
    def for_remote(cls, info: Optional[RemoteFileInfo]) -> Optional["FileDigest"]:
        if info is None or info.is_directory:
            return None
        return cls(size=info.size, content_hash=info.content_hash)

    def get_hash(self) -> Optional[str]:
        if self.content_hash is None and self.hasher is not None and not self._computed:
            self.content_hash = self.hasher()
            self._computed = True
        return self.content_hash


def needs_transfer(local: Optional[FileDigest], remote: Optional[FileDigest]) -> bool:
    """
    Decide whether a file must be transferred.

    Works for both directions: the caller passes None for whichever side
    is missing, and a missing side always means transfer.

    Args:
        local: Local file digest (lazy hash)
        remote: Remote file digest

    Returns:
        True to upload/download, False to skip as identical
    """
    if local is None or remote is None:
        return True

    if local.size != remote.size:
        return True

    remote_hash = remote.get_hash()
    if not remote_hash:
        # Sizes match and the provider gives nothing stronger
        return False

    local_hash = local.get_hash()
    return (local_hash or '').lower() != remote_hash.lower()
