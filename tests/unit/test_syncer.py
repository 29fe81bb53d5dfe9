"""
Unit Tests: Directory Syncer
============================
Sync passes against the in-memory provider: allow-lists, skip rules,
failure accounting, cancellation and conflict copies.
No external API calls - runs fast.
"""

import os

import pytest


def _sync(provider, local_dir, direction, state=None, token=None, counters=None):
    from notesync.sync import DirectorySyncer

    syncer = DirectorySyncer(provider, token=token, state=state)
    return syncer.sync_directory(str(local_dir), "/Notes", direction, counters)


def _state(local_dir):
    from notesync.sync import SyncStateStore

    return SyncStateStore(str(local_dir)).load()


class TestUploadPass:

    @pytest.mark.unit
    def test_uploads_only_allow_listed_entries(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "todo.md", "# Todo")
        make_note(notes_dir, "readme.txt", "not a note")
        make_note(notes_dir, ".assets/diagram.md", "attachment note")
        make_note(notes_dir, ".assets/photo.png", "binary")
        make_note(notes_dir, "archive/old.md", "outside the allow-list")

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.uploaded == 2
        assert counters.failed == 0
        assert set(remote_store.files) == {"/Notes/todo.md", "/Notes/.assets/diagram.md"}

    @pytest.mark.unit
    def test_second_pass_is_idempotent(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "alpha")
        make_note(notes_dir, ".assets/b.md", "beta")

        _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)
        remote_store.uploads.clear()
        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.uploaded == 0
        assert counters.skipped == 2
        assert remote_store.uploads == []

    @pytest.mark.unit
    def test_hashes_only_when_sizes_match(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "same.md", "same content")
        make_note(notes_dir, "grown.md", "short")
        remote_store.put("/Notes/same.md", b"same content")
        remote_store.put("/Notes/grown.md", b"much longer remote content")

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.skipped == 1
        assert counters.uploaded == 1
        assert remote_store.hash_calls == 1

    @pytest.mark.unit
    def test_same_size_different_content_is_uploaded(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "aaaa")
        remote_store.put("/Notes/a.md", b"bbbb")

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.uploaded == 1
        assert remote_store.get("/Notes/a.md") == b"aaaa"

    @pytest.mark.unit
    def test_without_remote_hash_equal_size_is_skipped(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        remote_store.expose_hash = False
        make_note(notes_dir, "a.md", "aaaa")
        remote_store.put("/Notes/a.md", b"bbbb")

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.skipped == 1
        assert remote_store.hash_calls == 0

    @pytest.mark.unit
    def test_partial_failures_are_counted(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        for i in range(10):
            make_note(notes_dir, f"note{i}.md", f"content {i}")
        remote_store.fail_uploads = {"note2.md", "note5.md", "note8.md"}

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.uploaded == 7
        assert counters.failed == 3
        assert len(remote_store.files) == 7

    @pytest.mark.unit
    def test_metadata_error_uploads_instead_of_skipping(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "same")
        remote_store.put("/Notes/a.md", b"same")
        remote_store.fail_metadata = {"/Notes/a.md"}

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE)

        assert counters.uploaded == 1
        assert counters.skipped == 0

    @pytest.mark.unit
    def test_missing_local_root_counts_one_failure(self, memory_provider, tmp_path):
        from notesync.models import SyncDirection

        counters = _sync(memory_provider, tmp_path / "does-not-exist", SyncDirection.LOCAL_TO_REMOTE)

        assert counters.failed == 1
        assert counters.uploaded == 0


class TestDownloadPass:

    @pytest.mark.unit
    def test_downloads_only_allow_listed_entries(self, memory_provider, remote_store, notes_dir):
        from notesync.models import SyncDirection

        remote_store.put("/Notes/todo.md", b"# Todo")
        remote_store.put("/Notes/.assets/ref.md", b"ref")
        remote_store.put("/Notes/other/skip.md", b"not synced")
        remote_store.put("/Notes/picture.png", b"png")

        counters = _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL)

        assert counters.downloaded == 2
        assert (notes_dir / "todo.md").read_bytes() == b"# Todo"
        assert (notes_dir / ".assets" / "ref.md").read_bytes() == b"ref"
        assert not (notes_dir / "other").exists()
        assert not (notes_dir / "picture.png").exists()

    @pytest.mark.unit
    def test_identical_local_file_is_skipped(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "same")
        remote_store.put("/Notes/a.md", b"same")

        counters = _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL)

        assert counters.skipped == 1
        assert remote_store.downloads == []

    @pytest.mark.unit
    def test_failed_download_leaves_no_partial_file(self, memory_provider, remote_store, notes_dir):
        from notesync.models import SyncDirection

        remote_store.put("/Notes/good.md", b"good")
        remote_store.put("/Notes/bad.md", b"bad")
        remote_store.fail_downloads = {"bad.md"}

        counters = _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL)

        assert counters.downloaded == 1
        assert counters.failed == 1
        assert sorted(os.listdir(notes_dir)) == ["good.md"]

    @pytest.mark.unit
    def test_listing_error_skips_subtree(self, memory_provider, remote_store, notes_dir):
        from notesync.models import SyncDirection

        remote_store.put("/Notes/a.md", b"a")
        remote_store.put("/Notes/.assets/b.md", b"b")
        remote_store.put("/Notes/.assets/c.md", b"c")
        remote_store.fail_listing = {"/Notes/.assets"}

        counters = _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL)

        assert counters.downloaded == 1
        assert counters.failed == 1

    @pytest.mark.unit
    def test_missing_remote_root_is_empty(self, memory_provider, notes_dir):
        from notesync.models import SyncDirection

        counters = _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL)

        assert counters.downloaded == 0
        assert counters.failed == 0


class TestBidirectionalPass:

    @pytest.mark.unit
    def test_each_side_receives_the_other(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "local.md", "from disk")
        remote_store.put("/Notes/remote.md", b"from cloud")

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL)

        assert counters.uploaded == 1
        assert counters.downloaded == 1
        assert remote_store.get("/Notes/local.md") == b"from disk"
        assert (notes_dir / "remote.md").read_bytes() == b"from cloud"

    @pytest.mark.unit
    def test_records_state_but_never_syncs_it(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.config.constants import SYNC_STATE_FILENAME
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "alpha")

        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert (notes_dir / SYNC_STATE_FILENAME).exists()
        assert set(remote_store.files) == {"/Notes/a.md"}
        assert _state(notes_dir).get(str(notes_dir / "a.md"))["remoteVersion"]


class TestConflicts:

    @pytest.mark.unit
    def test_both_sides_changed_creates_conflict_copy(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        make_note(notes_dir, "a.md", "local edit")
        remote_store.put("/Notes/a.md", b"remote edit!!")

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.conflicts == 1
        assert counters.downloaded == 1
        assert counters.uploaded == 0
        assert (notes_dir / "a.md").read_bytes() == b"remote edit!!"
        assert remote_store.get("/Notes/a.md") == b"remote edit!!"

        copies = [name for name in os.listdir(notes_dir) if ".conflict-" in name]
        assert len(copies) == 1
        assert copies[0].endswith(".md")
        assert (notes_dir / copies[0]).read_text() == "local edit"

    @pytest.mark.unit
    def test_conflict_copy_is_uploaded_next_pass(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))
        make_note(notes_dir, "a.md", "local edit")
        remote_store.put("/Notes/a.md", b"remote edit!!")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.uploaded == 1
        assert counters.conflicts == 0
        assert any(".conflict-" in path for path in remote_store.files)

    @pytest.mark.unit
    def test_local_only_change_is_uploaded(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))
        make_note(notes_dir, "a.md", "local edit")

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.conflicts == 0
        assert counters.uploaded == 1
        assert remote_store.get("/Notes/a.md") == b"local edit"

    @pytest.mark.unit
    def test_no_conflict_without_previous_record(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "local version")
        remote_store.put("/Notes/a.md", b"remote version!!")

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.conflicts == 0
        assert remote_store.get("/Notes/a.md") == b"local version"

    @pytest.mark.unit
    def test_directional_pass_never_creates_conflicts(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))
        make_note(notes_dir, "a.md", "local edit")
        remote_store.put("/Notes/a.md", b"remote edit!!")

        counters = _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE, state=_state(notes_dir))

        assert counters.conflicts == 0
        assert counters.uploaded == 1


class TestOneSidedChanges:

    @pytest.mark.unit
    def test_local_and_remote_edits_to_different_files(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        make_note(notes_dir, "b.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        make_note(notes_dir, "a.md", "a local edit")
        remote_store.put("/Notes/b.md", b"b remote edit")

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.uploaded == 1
        assert counters.downloaded == 1
        assert counters.conflicts == 0
        assert remote_store.get("/Notes/a.md") == b"a local edit"
        assert remote_store.get("/Notes/b.md") == b"b remote edit"
        assert (notes_dir / "b.md").read_bytes() == b"b remote edit"

    @pytest.mark.unit
    def test_remote_edit_is_never_uploaded_over(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))
        remote_store.put("/Notes/a.md", b"remote edit")
        remote_store.uploads.clear()

        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert remote_store.uploads == []
        assert (notes_dir / "a.md").read_bytes() == b"remote edit"

    @pytest.mark.unit
    def test_failed_upload_keeps_local_edit(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))
        make_note(notes_dir, "a.md", "v2 local edit")
        remote_store.fail_uploads = {"a.md"}

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.failed == 1
        assert counters.downloaded == 0
        assert (notes_dir / "a.md").read_text() == "v2 local edit"
        assert remote_store.get("/Notes/a.md") == b"v1"

        remote_store.fail_uploads = set()
        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.uploaded == 1
        assert remote_store.get("/Notes/a.md") == b"v2 local edit"

    @pytest.mark.unit
    def test_failed_first_upload_keeps_unrecorded_file(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "written offline")
        remote_store.put("/Notes/a.md", b"older cloud copy")
        remote_store.fail_uploads = {"a.md"}

        counters = _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))

        assert counters.failed == 1
        assert (notes_dir / "a.md").read_text() == "written offline"

    @pytest.mark.unit
    def test_download_only_pass_still_overwrites(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.models import SyncDirection

        make_note(notes_dir, "a.md", "v1")
        _sync(memory_provider, notes_dir, SyncDirection.BIDIRECTIONAL, state=_state(notes_dir))
        make_note(notes_dir, "a.md", "local edit")

        counters = _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL, state=_state(notes_dir))

        assert counters.downloaded == 1
        assert (notes_dir / "a.md").read_text() == "v1"


class TestCancellation:

    @pytest.mark.unit
    def test_stops_between_files_and_keeps_counts(self, memory_provider, remote_store, notes_dir, make_note):
        from notesync.errors import SyncCancelledError
        from notesync.models import SyncCounters, SyncDirection
        from notesync.sync import CancellationToken

        for i in range(10):
            make_note(notes_dir, f"note{i}.md", f"content {i}")

        token = CancellationToken()

        def cancel_after_fourth(path):
            if len(remote_store.uploads) == 4:
                token.cancel()

        remote_store.on_upload = cancel_after_fourth
        counters = SyncCounters()

        with pytest.raises(SyncCancelledError):
            _sync(memory_provider, notes_dir, SyncDirection.LOCAL_TO_REMOTE, token=token, counters=counters)

        assert counters.uploaded == 4
        assert len(remote_store.files) == 4

    @pytest.mark.unit
    def test_cancelled_before_start_writes_nothing(self, memory_provider, remote_store, notes_dir):
        from notesync.errors import SyncCancelledError
        from notesync.models import SyncDirection
        from notesync.sync import CancellationToken

        remote_store.put("/Notes/a.md", b"a")
        token = CancellationToken()
        token.cancel()

        with pytest.raises(SyncCancelledError):
            _sync(memory_provider, notes_dir, SyncDirection.REMOTE_TO_LOCAL, token=token)

        assert os.listdir(notes_dir) == []
