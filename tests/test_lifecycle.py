"""
Tests for the project lifecycle — create/load/delete and the active slot.
"""

import random
import sqlite3
from pathlib import Path

import pytest

from emap.core.models.project import AssetRecord
from emap.core.persistence.errors import NO_ACTIVE_PROJECT, IOFailure, NotFound
from emap.core.persistence.layout import StorageLayout
from emap.core.services.active_slot import ActiveProjectSlot
from emap.core.services.project_lifecycle import ProjectService


def _assert_slot_consistent(svc: ProjectService) -> None:
    slot = svc.slot()
    assert (slot.project_id is None) == (slot.handle is None)
    if slot.handle is not None:
        assert not slot.handle.closed


def _exclusive_lock_free(path: Path) -> bool:
    conn = sqlite3.connect(path, timeout=0, isolation_level=None)
    try:
        conn.execute("BEGIN EXCLUSIVE")
        conn.execute("ROLLBACK")
        return True
    except sqlite3.OperationalError:
        return False
    finally:
        conn.close()


# ── Slot value ───────────────────────────────────────────────────────


class TestActiveProjectSlot:
    def test_empty(self):
        slot = ActiveProjectSlot()
        assert not slot.loaded

    def test_id_without_handle_rejected(self):
        with pytest.raises(ValueError):
            ActiveProjectSlot(project_id="abc")


# ── Create ───────────────────────────────────────────────────────────


class TestCreate:
    def test_create_activates(self, service: ProjectService):
        record = service.create("Demo")
        assert service.slot().project_id == record.id
        assert service.active() == record
        assert service.config.get_last_project() == record.id
        assert service.layout.project_db(record.id).is_file()

    def test_empty_name_rejected(self, service: ProjectService):
        with pytest.raises(ValueError):
            service.create("   ")
        assert service.list_projects() == []

    def test_new_project_is_empty(self, service: ProjectService):
        record = service.create("Demo")
        service.load(record.id)
        assert service.get_kv("scene") is None
        assert service.get_kv("anything") is None
        assert service.list_assets() == []

    def test_put_then_get(self, service: ProjectService):
        service.create("Demo")
        service.put_kv("scene", "{}")
        assert service.get_kv("scene") == "{}"

    def test_store_failure_leaves_registry_row(self, service: ProjectService, monkeypatch):
        def boom(*args, **kwargs):
            raise IOFailure("disk full")

        monkeypatch.setattr("emap.core.services.project_lifecycle.ProjectStore.open", boom)
        with pytest.raises(IOFailure):
            service.create("Broken")

        assert [r.name for r in service.list_projects()] == ["Broken"]
        assert service.slot().project_id is None
        _assert_slot_consistent(service)


# ── Load ─────────────────────────────────────────────────────────────


class TestLoad:
    def test_load_switches(self, service: ProjectService):
        a = service.create("A")
        b = service.create("B")
        assert service.slot().project_id == b.id
        service.load(a.id)
        assert service.slot().project_id == a.id
        assert service.config.get_last_project() == a.id

    def test_load_releases_previous_handle(self, service: ProjectService):
        a = service.create("A")
        service.put_kv("scene", '{"a": 1}')
        old_handle = service.slot().handle
        b = service.create("B")
        service.load(b.id)

        assert old_handle.closed
        assert _exclusive_lock_free(service.layout.project_db(a.id))

    def test_data_isolated_per_project(self, service: ProjectService):
        a = service.create("A")
        service.put_kv("scene", "A")
        service.create("B")
        service.put_kv("scene", "B")
        service.load(a.id)
        assert service.get_kv("scene") == "A"

    def test_reload_same_is_noop(self, service: ProjectService):
        a = service.create("A")
        handle = service.slot().handle
        service.load(a.id)
        assert service.slot().handle is handle
        assert not handle.closed

    def test_load_unregistered_id_self_heals(self, service: ProjectService):
        record = service.load("handmade")
        assert record.id == "handmade"
        assert service.slot().project_id == "handmade"
        assert service.layout.project_db("handmade").is_file()

    def test_load_unopenable_is_not_found(self, service: ProjectService):
        a = service.create("A")
        bad = service.layout.project_dir("corrupt")
        bad.mkdir(parents=True)
        (bad / "project.db").write_bytes(b"garbage" * 200)

        with pytest.raises(NotFound):
            service.load("corrupt")
        assert service.slot().project_id == a.id
        _assert_slot_consistent(service)

    def test_load_rejects_traversal(self, service: ProjectService):
        with pytest.raises(ValueError):
            service.load("../outside")
        assert service.slot().project_id is None


# ── Delete / unload ──────────────────────────────────────────────────


class TestDelete:
    def test_delete_active_empties_slot(self, service: ProjectService):
        a = service.create("A")
        handle = service.slot().handle
        assert service.delete(a.id) is True

        assert service.slot().project_id is None
        assert handle.closed
        assert service.config.get_last_project() is None
        assert service.list_projects() == []
        assert not service.layout.project_dir(a.id).exists()

    def test_handle_closed_before_files_removed(self, service: ProjectService, monkeypatch):
        a = service.create("A")
        handle = service.slot().handle
        seen = {}
        original = StorageLayout.remove_project

        def spy(layout, project_id):
            seen["closed"] = handle.closed
            return original(layout, project_id)

        monkeypatch.setattr(StorageLayout, "remove_project", spy)
        service.delete(a.id)
        assert seen == {"closed": True}
        assert service.slot().project_id is None

    def test_delete_other_keeps_slot(self, service: ProjectService):
        a = service.create("A")
        b = service.create("B")
        service.load(a.id)
        handle = service.slot().handle

        assert service.delete(b.id) is False
        assert service.slot().project_id == a.id
        assert service.slot().handle is handle
        assert not handle.closed
        assert service.config.get_last_project() == a.id
        assert [r.id for r in service.list_projects()] == [a.id]

    def test_delete_nonexistent_ok(self, service: ProjectService):
        assert service.delete("does-not-exist") is False

    def test_delete_removes_legacy_file(self, service: ProjectService):
        a = service.create("A")
        legacy = service.layout.legacy_project_file(a.id)
        legacy.write_text("old")
        service.delete(a.id)
        assert not legacy.exists()

    def test_unload(self, service: ProjectService):
        service.create("A")
        service.unload()
        assert service.slot().project_id is None
        assert service.config.get_last_project() is None
        assert service.get_kv("scene") is NO_ACTIVE_PROJECT


# ── Read-through with nothing loaded ─────────────────────────────────


class TestNoActiveProject:
    def test_accessors_return_sentinel(self, service: ProjectService):
        assert service.get_kv("scene") is NO_ACTIVE_PROJECT
        assert service.put_kv("scene", "{}") is NO_ACTIVE_PROJECT
        assert service.list_kv() is NO_ACTIVE_PROJECT
        assert service.list_assets() is NO_ACTIVE_PROJECT
        assert service.put_asset(AssetRecord(id="a", name="a")) is NO_ACTIVE_PROJECT
        assert service.delete_asset("a") is NO_ACTIVE_PROJECT
        assert service.active() is None

    def test_sentinel_is_falsy(self):
        assert not NO_ACTIVE_PROJECT

    def test_delete_asset_idempotent_when_loaded(self, service: ProjectService):
        service.create("A")
        assert service.delete_asset("ghost.png") is None

    def test_status_counts_active_rows(self, service: ProjectService):
        assert service.status()["active_stats"] is None
        a = service.create("A")
        service.put_kv("scene", "{}")
        status = service.status()
        assert status["active"] == a.id
        assert status["active_stats"] == {"kv_entries": 1, "assets": 0}


# ── Start / auto-load ────────────────────────────────────────────────


class TestStart:
    def test_starts_empty_by_default(self, data_dir: Path):
        svc = ProjectService.open(data_dir)
        svc.create("A")
        svc.close()

        svc = ProjectService.open(data_dir)
        try:
            svc.start()
            assert svc.slot().project_id is None
        finally:
            svc.close()

    def test_auto_load_last_project(self, data_dir: Path):
        svc = ProjectService.open(data_dir)
        a = svc.create("A")
        svc.put_kv("scene", "saved")
        svc.close()

        svc = ProjectService.open(data_dir, auto_load_last_project=True)
        try:
            svc.start()
            assert svc.slot().project_id == a.id
            assert svc.get_kv("scene") == "saved"
        finally:
            svc.close()

    def test_auto_load_bad_pointer_clears_it(self, data_dir: Path):
        svc = ProjectService.open(data_dir)
        svc.config.set_last_project("../evil")
        svc.close()

        svc = ProjectService.open(data_dir, auto_load_last_project=True)
        try:
            svc.start()
            assert svc.slot().project_id is None
            assert svc.config.get_last_project() is None
        finally:
            svc.close()

    def test_start_reconciles(self, data_dir: Path):
        svc = ProjectService.open(data_dir)
        a = svc.create("A")
        svc.unload()
        orphan = svc.layout.project_dir("orphan")
        orphan.mkdir(parents=True)
        removed = svc.start()
        try:
            assert removed == [orphan]
            assert svc.layout.project_dir(a.id).is_dir()
        finally:
            svc.close()


# ── Invariant under random sequences ─────────────────────────────────


class TestSlotInvariant:
    def test_random_operation_sequence(self, service: ProjectService):
        rng = random.Random(1234)
        ids: list[str] = []

        for _ in range(60):
            op = rng.choice(["create", "load", "delete", "unload"])
            if op == "create" or not ids:
                ids.append(service.create(f"p{len(ids)}").id)
            elif op == "load":
                service.load(rng.choice(ids))
            elif op == "delete":
                victim = rng.choice(ids)
                service.delete(victim)
                ids.remove(victim)
            else:
                service.unload()

            _assert_slot_consistent(service)
            active = service.slot().project_id
            assert active is None or active in ids
