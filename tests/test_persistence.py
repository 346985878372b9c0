"""
Tests for persistence — manifest store, build info, atomic writes, lock.
"""

import json
import os
from pathlib import Path

import pytest

from relayctl.core.errors import Conflict, ManifestMissing
from relayctl.core.models.build import BuildInfo
from relayctl.core.persistence.atomic import atomic_write_text
from relayctl.core.persistence.build_info import (
    load_build_info,
    remove_build_info,
    save_build_info,
)
from relayctl.core.persistence.instance_lock import instance_lock
from relayctl.core.persistence.manifest_store import ManifestStore


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    return path


class TestManifestStore:
    def test_persist_and_load(self, tmp_path: Path):
        store = ManifestStore(tmp_path / "state" / "install_manifest.json")
        store.begin()
        store.record(tmp_path / "bin" / "badvpn-udpgw", "binary")
        store.record(tmp_path / "bin" / "badvpn-udpgw", "binary")
        store.persist()

        data = json.loads(store.path.read_text())
        assert len(data["entries"]) == 1

        loaded = ManifestStore(store.path).load()
        assert loaded.paths == [str(tmp_path / "bin" / "badvpn-udpgw")]
        assert loaded.entries[0].kind == "binary"

    def test_persist_is_private(self, tmp_path: Path):
        store = ManifestStore(tmp_path / "m.json")
        store.begin()
        store.persist()
        assert (store.path.stat().st_mode & 0o777) == 0o600

    def test_persist_leaves_no_temp_files(self, tmp_path: Path):
        store = ManifestStore(tmp_path / "m.json")
        store.begin()
        store.persist()
        store.persist()
        assert [p.name for p in tmp_path.iterdir()] == ["m.json"]

    def test_begin_continues_previous_manifest(self, tmp_path: Path):
        path = tmp_path / "m.json"
        first = ManifestStore(path)
        first.begin()
        first.record("/usr/local/bin/badvpn-udpgw", "binary")
        first.persist()

        second = ManifestStore(path)
        second.begin()
        second.record("/etc/systemd/system/badvpn.service", "unit")
        assert second.manifest.paths == [
            "/usr/local/bin/badvpn-udpgw",
            "/etc/systemd/system/badvpn.service",
        ]

    def test_begin_refuses_corrupt_manifest(self, tmp_path: Path):
        path = tmp_path / "m.json"
        path.write_text("{not json")
        with pytest.raises(Conflict):
            ManifestStore(path).begin()

    def test_load_missing(self, tmp_path: Path):
        with pytest.raises(ManifestMissing):
            ManifestStore(tmp_path / "absent.json").load()

    def test_load_corrupt(self, tmp_path: Path):
        path = tmp_path / "m.json"
        path.write_text('{"entries": [{"path": "relative", "kind": "binary"}]}')
        with pytest.raises(ManifestMissing):
            ManifestStore(path).load()


class TestRemoveAll:
    def test_removes_exactly_the_recorded_paths(self, tmp_path: Path):
        recorded = [_touch(tmp_path / "bin" / "a"), _touch(tmp_path / "etc" / "b")]
        bystander = _touch(tmp_path / "bin" / "other")

        store = ManifestStore(tmp_path / "state" / "m.json")
        store.begin()
        for p in recorded:
            store.record(p, "binary")
        store.persist()

        report = store.remove_all()

        assert not any(p.exists() for p in recorded)
        assert bystander.exists()
        assert report.removed == [str(p) for p in recorded]
        assert report.manifest_removed
        assert not store.path.exists()

    def test_prunes_directories_left_empty(self, tmp_path: Path):
        prefix = tmp_path / "opt"
        binary = _touch(prefix / "badvpn" / "bin" / "badvpn-udpgw")
        shared = _touch(prefix / "shared" / "lib" / "badvpn.so")
        neighbour = _touch(prefix / "shared" / "other")

        store = ManifestStore(tmp_path / "state" / "m.json")
        store.begin()
        store.record(binary, "binary")
        store.record(shared, "binary")
        store.persist()

        report = store.remove_all(stop_at=[prefix])

        assert report.pruned == [
            str(prefix / "badvpn" / "bin"),
            str(prefix / "badvpn"),
            str(prefix / "shared" / "lib"),
        ]
        assert prefix.is_dir()
        assert neighbour.exists()

    def test_never_prunes_the_state_directory(self, tmp_path: Path):
        state = tmp_path / "state"
        entry = _touch(state / "generated.conf")
        store = ManifestStore(state / "m.json")
        store.begin()
        store.record(entry, "config")
        store.persist()

        report = store.remove_all()

        assert report.pruned == []
        assert state.is_dir()

    def test_missing_entry_is_warning(self, tmp_path: Path):
        present = _touch(tmp_path / "a")
        store = ManifestStore(tmp_path / "m.json")
        store.begin()
        store.record(present, "binary")
        store.record(tmp_path / "gone", "config")
        store.persist()

        report = store.remove_all()

        assert report.removed == [str(present)]
        assert report.missing == [str(tmp_path / "gone")]
        assert len(report.warnings) == 1
        assert "already absent" in report.warnings[0]

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_failed_entries_are_kept_for_retry(self, tmp_path: Path):
        locked_dir = tmp_path / "locked"
        stuck = _touch(locked_dir / "stuck")
        free = _touch(tmp_path / "free")

        store = ManifestStore(tmp_path / "m.json")
        store.begin()
        store.record(stuck, "binary")
        store.record(free, "binary")
        store.persist()

        os.chmod(locked_dir, 0o500)
        try:
            report = store.remove_all()
        finally:
            os.chmod(locked_dir, 0o700)

        assert str(stuck) in report.failed
        assert report.removed == [str(free)]
        assert not report.manifest_removed
        assert ManifestStore(store.path).load().paths == [str(stuck)]

    def test_refuses_without_manifest(self, tmp_path: Path):
        with pytest.raises(ManifestMissing):
            ManifestStore(tmp_path / "m.json").remove_all()


class TestBuildInfo:
    def test_save_load_remove(self, tmp_path: Path):
        path = tmp_path / "build_info.json"
        save_build_info(BuildInfo(selection="full", source_ref="master"), path)
        info = load_build_info(path)
        assert info is not None and info.source_ref == "master"
        assert remove_build_info(path) is True
        assert remove_build_info(path) is False

    def test_corrupt_is_none(self, tmp_path: Path):
        path = tmp_path / "build_info.json"
        path.write_text("[]")
        assert load_build_info(path) is None


class TestAtomicWrite:
    def test_creates_parents_and_mode(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "file"
        atomic_write_text(target, "hello\n", mode=0o640)
        assert target.read_text() == "hello\n"
        assert (target.stat().st_mode & 0o777) == 0o640

    def test_failed_replace_keeps_old_content(self, tmp_path: Path, monkeypatch):
        target = tmp_path / "file"
        target.write_text("old")

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", boom)
        with pytest.raises(OSError):
            atomic_write_text(target, "new")
        assert target.read_text() == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["file"]


class TestInstanceLock:
    def test_second_holder_conflicts(self, tmp_path: Path):
        lock = tmp_path / ".lock"
        with instance_lock(lock):
            with pytest.raises(Conflict):
                with instance_lock(lock):
                    pass
        with instance_lock(lock):
            pass
