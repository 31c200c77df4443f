"""Unit tests for the S3Migrator run orchestration."""

from __future__ import annotations

import pytest

from s3_migrator.core.config import MigrationConfig
from s3_migrator.core.migrator import S3Migrator
from s3_migrator.exceptions import AllocationError, ListingError
from s3_migrator.services.storage_adapter import FilesystemStore


def _run(config, source, store):
    return S3Migrator(config, source, store, show_progress=False).run()


class TestScenarios:
    """End-to-end runs against in-memory collaborators."""

    def test_single_new_object_is_uploaded_once(self, make_source, fake_store):
        source = make_source({"b1": {"a.txt": b"0123456789"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        summary = _run(config, source, fake_store)

        assert source.opened == [("b1", "a.txt")]
        assert len(fake_store.uploads) == 1
        assert fake_store.uploads[0]["path"] == "/b1/a.txt"
        assert fake_store.uploads[0]["size"] == 10
        assert not any(e[0] == "delete" for e in fake_store.events)
        assert source.deleted == []
        assert fake_store.commits == []
        assert summary.succeeded == 1
        assert summary.failed == 0
        assert summary.bytes_transferred == 10

    def test_concurrency_limit_is_never_exceeded(self, make_source, make_store):
        source = make_source({"b1": {f"obj-{i}": b"x" * (i + 1) for i in range(5)}})
        store = make_store(upload_delay=0.05)
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",), concurrency=2)

        migrator = S3Migrator(config, source, store, show_progress=False)
        summary = migrator.run()

        assert store.peak_uploads <= 2
        assert migrator.dispatcher is not None
        assert migrator.dispatcher.state.peak <= 2
        assert len(store.uploads) == 5
        assert summary.succeeded == 5

    def test_size_mismatch_deletes_before_reupload(self, make_source, make_store):
        source = make_source({"b1": {"x": b"12345678"}})
        store = make_store({"alloc-1": {"/b1/x": b"12345"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        summary = _run(config, source, store)

        assert store.events == [("delete", "/b1/x"), ("upload", "/b1/x", 8)]
        assert store.allocations["alloc-1"]["/b1/x"] == b"12345678"
        assert summary.incomplete_retried == 1
        assert summary.succeeded == 1

    def test_listing_failure_aborts_before_any_upload(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"aaa"}, "b2": {"b": b"bbb"}})
        source.fail_listing.add("b2")
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1", "b2"))

        with pytest.raises(ListingError, match="b2"):
            _run(config, source, fake_store)

        assert fake_store.uploads == []
        assert source.opened == []


class TestResume:
    def test_second_run_over_unchanged_source_uploads_nothing(
        self, make_source, fake_store
    ):
        source = make_source({"b1": {"a": b"aaa", "dir/b": b"bbbb"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        first = _run(config, source, fake_store)
        second = _run(config, source, fake_store)

        assert first.succeeded == 2
        assert len(fake_store.uploads) == 2
        assert second.already_migrated == 2
        assert second.scheduled == 0
        assert second.succeeded == 0

    def test_zero_size_objects_are_never_transferred(self, make_source, fake_store):
        source = make_source({"b1": {"folder/": b"", "folder/file": b"data"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        summary = _run(config, source, fake_store)

        assert source.opened == [("b1", "folder/file")]
        assert [u["path"] for u in fake_store.uploads] == ["/b1/folder/file"]
        assert summary.directory_markers == 1
        assert summary.objects_listed == 2

    def test_prefix_limits_enumeration(self, make_source, fake_store):
        source = make_source({"b1": {"2023/a": b"a", "2024/b": b"b"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",), prefix="2023/")

        _run(config, source, fake_store)

        assert source.list_calls == [("b1", "2023/")]
        assert [u["path"] for u in fake_store.uploads] == ["/b1/2023/a"]

    def test_all_buckets_are_discovered_when_none_given(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a"}, "b2": {"b": b"b"}})
        config = MigrationConfig(allocation_id="alloc-1")

        summary = _run(config, source, fake_store)

        assert sorted(u["path"] for u in fake_store.uploads) == ["/b1/a", "/b2/b"]
        assert summary.succeeded == 2


class TestOptionalSteps:
    def test_source_is_kept_when_delete_source_is_off(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a", "b": b"b"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        _run(config, source, fake_store)

        assert source.deleted == []

    def test_source_is_deleted_after_upload(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a", "b": b"b"}})
        config = MigrationConfig(
            allocation_id="alloc-1", buckets=("b1",), delete_source=True
        )

        summary = _run(config, source, fake_store)

        assert sorted(source.deleted) == [("b1", "a"), ("b1", "b")]
        assert summary.source_deleted == 2

    def test_no_commit_when_commit_is_off(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        _run(config, source, fake_store)

        assert not any(e[0] == "commit" for e in fake_store.events)

    def test_commit_follows_each_upload(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",), commit=True)

        summary = _run(config, source, fake_store)

        assert fake_store.events == [("upload", "/b1/a", 1), ("commit", "/b1/a")]
        assert fake_store.commits == [("/b1/a", "Upload")]
        assert summary.committed == 1


class TestFailures:
    def test_unknown_allocation_is_fatal_before_listing(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a"}})
        config = MigrationConfig(allocation_id="missing", buckets=("b1",))

        with pytest.raises(AllocationError):
            _run(config, source, fake_store)

        assert source.list_calls == []

    def test_item_failure_does_not_stop_siblings(self, make_source, fake_store):
        source = make_source({"b1": {"a": b"a", "b": b"bb", "c": b"ccc"}})
        source.fail_open.add(("b1", "b"))
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        summary = _run(config, source, fake_store)

        assert sorted(u["path"] for u in fake_store.uploads) == ["/b1/a", "/b1/c"]
        assert summary.succeeded == 2
        assert summary.failed == 1
        assert summary.failed_transfers[0].key == "b"

    def test_dry_run_transfers_nothing(self, make_source, make_store):
        source = make_source({"b1": {"a": b"a", "x": b"12345678"}})
        store = make_store({"alloc-1": {"/b1/x": b"12345"}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",), dry_run=True)

        summary = _run(config, source, store)

        assert store.events == []
        assert source.opened == []
        assert summary.dry_run is True
        assert summary.new_objects == 1
        assert summary.incomplete_retried == 1

    def test_no_dispatch_when_nothing_to_do(self, make_source, fake_store):
        source = make_source({"b1": {}})
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        migrator = S3Migrator(config, source, fake_store, show_progress=False)
        summary = migrator.run()

        assert migrator.dispatcher is None
        assert summary.scheduled == 0


class TestFilesystemResume:
    def test_rerun_skips_keys_named_like_housekeeping_paths(self, make_source, tmp_path):
        (tmp_path / "alloc-1").mkdir()
        store = FilesystemStore(tmp_path)
        source = make_source(
            {"b1": {"photos/.DS_Store": b"ds", "repo/.git/HEAD": b"ref", "a.txt": b"abc"}}
        )
        config = MigrationConfig(allocation_id="alloc-1", buckets=("b1",))

        first = _run(config, source, store)
        second = _run(config, source, store)

        assert first.succeeded == 3
        assert second.already_migrated == 3
        assert second.scheduled == 0
        assert second.succeeded == 0
        assert len(source.opened) == 3
