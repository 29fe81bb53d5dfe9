"""
Unit Tests: Transfer Decision
=============================
Tests for the size-then-hash skip rule.
"""

import pytest


def _lazy(size, digest, calls):
    from notesync.sync import FileDigest

    def hasher():
        calls.append(1)
        return digest

    return FileDigest(size=size, hasher=hasher)


class TestNeedsTransfer:

    @pytest.mark.unit
    def test_missing_side_transfers(self):
        from notesync.sync import FileDigest, needs_transfer

        assert needs_transfer(None, FileDigest(size=1, content_hash='a'))
        assert needs_transfer(FileDigest(size=1), None)

    @pytest.mark.unit
    def test_size_mismatch_transfers_without_hashing(self):
        from notesync.sync import FileDigest, needs_transfer

        calls = []
        local = _lazy(10, 'abc', calls)

        assert needs_transfer(local, FileDigest(size=11, content_hash='abc'))
        assert calls == []

    @pytest.mark.unit
    def test_equal_size_without_remote_hash_skips(self):
        from notesync.sync import FileDigest, needs_transfer

        calls = []
        local = _lazy(10, 'abc', calls)

        assert not needs_transfer(local, FileDigest(size=10))
        assert calls == []

    @pytest.mark.unit
    def test_equal_size_and_hash_skips(self):
        from notesync.sync import FileDigest, needs_transfer

        calls = []
        local = _lazy(10, 'ABC', calls)

        assert not needs_transfer(local, FileDigest(size=10, content_hash='abc'))
        assert calls == [1]

    @pytest.mark.unit
    def test_equal_size_different_hash_transfers(self):
        from notesync.sync import FileDigest, needs_transfer

        calls = []
        local = _lazy(10, 'abc', calls)

        assert needs_transfer(local, FileDigest(size=10, content_hash='def'))

    @pytest.mark.unit
    def test_hash_computed_once(self):
        from notesync.sync import FileDigest

        calls = []
        local = _lazy(10, 'abc', calls)

        local.get_hash()
        local.get_hash()

        assert calls == [1]

    @pytest.mark.unit
    def test_remote_directory_counts_as_missing(self):
        from notesync.models import RemoteFileInfo
        from notesync.sync import FileDigest

        info = RemoteFileInfo(id='d', name='a.md', path='/a.md', is_directory=True)

        assert FileDigest.for_remote(info) is None
