"""Tests for SQLite state repository."""

import pytest
from stratus.domain.entities.resource_record import ResourceRecord
from stratus.infrastructure.repositories.sqlite_state_repository import SQLiteStateRepository


@pytest.fixture
def repo(tmp_path):
    """Create a fresh SQLite repository for each test."""
    db_path = str(tmp_path / "test.db")
    r = SQLiteStateRepository(db_path)
    r.connect()
    yield r
    r.close()


def _record(address="lts_group_v2.app", type="lts_group_v2", id="g-1", **attrs):
    return ResourceRecord(
        address=address,
        type=type,
        id=id,
        attributes={"id": id, **attrs},
        depends_on=["networking_port_v2.web"],
    )


class TestResources:
    def test_put_and_get(self, repo):
        repo.put(_record(group_name="app", ttl_in_days=7))
        record = repo.get("lts_group_v2.app")
        assert record.id == "g-1"
        assert record.attributes["group_name"] == "app"
        assert record.attributes["ttl_in_days"] == 7
        assert record.depends_on == ["networking_port_v2.web"]

    def test_get_missing(self, repo):
        assert repo.get("nothing.here") is None

    def test_put_replaces(self, repo):
        repo.put(_record(group_name="app"))
        repo.put(_record(id="g-2", group_name="app"))
        assert repo.get("lts_group_v2.app").id == "g-2"
        assert len(repo.list()) == 1

    def test_list_sorted_and_filtered(self, repo):
        repo.put(_record(address="lts_group_v2.b"))
        repo.put(_record(address="lts_group_v2.a"))
        repo.put(_record(address="networking_port_v2.web", type="networking_port_v2", id="p-1"))

        assert [r.address for r in repo.list()] == [
            "lts_group_v2.a", "lts_group_v2.b", "networking_port_v2.web",
        ]
        assert [r.address for r in repo.list("networking_port_v2")] == ["networking_port_v2.web"]

    def test_remove(self, repo):
        repo.put(_record())
        assert repo.remove("lts_group_v2.app") is True
        assert repo.remove("lts_group_v2.app") is False
        assert repo.get("lts_group_v2.app") is None

    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "state.db")
        with SQLiteStateRepository(path) as first:
            first.put(_record())
        with SQLiteStateRepository(path) as second:
            assert second.get("lts_group_v2.app").id == "g-1"


class TestOperations:
    def test_record_operation(self, repo):
        op_id = repo.record_operation("lts_group_v2.app", "create", "success", 1.5)
        assert op_id >= 1

    def test_history_newest_first(self, repo):
        repo.record_operation("a", "create", "success")
        repo.record_operation("a", "update", "failed", 0.2, "boom")
        history = repo.get_operations()
        assert [h["operation"] for h in history] == ["update", "create"]
        assert history[0]["error"] == "boom"

    def test_history_by_address(self, repo):
        repo.record_operation("a", "create", "success")
        repo.record_operation("b", "create", "success")
        history = repo.get_operations(address="b")
        assert len(history) == 1
        assert history[0]["address"] == "b"
