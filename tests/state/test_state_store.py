"""Tests for the file-backed state store."""

import json
import os
import stat
import threading
import pytest
from reconciler.state import ResourceState, ResourceStatus, StateStore
from reconciler.utils.errors import StateConflict, StateError


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / "state.json"


def _record(address="aws_vpc.main", **kwargs):
    return ResourceState(
        address=address,
        type=address.split(".")[0],
        inputs=kwargs.pop("inputs", {"cidr_block": "10.0.0.0/16"}),
        outputs=kwargs.pop("outputs", {"id": "vpc-123"}),
        **kwargs
    )


class TestPersistence:
    """Reading and writing records."""

    def test_missing_file_is_empty_state(self, state_path):
        store = StateStore(str(state_path))
        assert store.load() == {}
        assert store.get("aws_vpc.main") is None

    def test_save_and_reload(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            store.save(_record(dependencies=[]))
            store.save(_record("aws_subnet.public", dependencies=["aws_vpc.main"]))

        reloaded = StateStore(str(state_path))
        records = reloaded.load()
        assert list(records) == ["aws_vpc.main", "aws_subnet.public"]
        assert records["aws_subnet.public"].dependencies == ["aws_vpc.main"]
        assert records["aws_vpc.main"].outputs == {"id": "vpc-123"}

    def test_serial_increments_and_lineage_is_stable(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            store.save(_record())
            first = json.loads(state_path.read_text())
            store.save(_record(outputs={"id": "vpc-456"}))
            second = json.loads(state_path.read_text())

        assert second["serial"] == first["serial"] + 1
        assert second["lineage"] == first["lineage"]
        assert second["version"] == 1

    def test_remove(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            store.save(_record())
            removed = store.remove("aws_vpc.main")
            assert store.remove("aws_vpc.main") is None

        assert removed.address == "aws_vpc.main"
        assert StateStore(str(state_path)).load() == {}

    def test_attributes_overlay_inputs_on_outputs(self):
        record = _record(inputs={"cidr_block": "10.0.0.0/16"}, outputs={"id": "vpc-1", "cidr_block": "ignored"})
        assert record.attributes == {"id": "vpc-1", "cidr_block": "10.0.0.0/16"}

    @pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
    def test_file_mode_is_owner_only(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            store.save(_record())

        assert stat.S_IMODE(os.stat(state_path).st_mode) == 0o600

    def test_no_temporary_files_left_behind(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            for i in range(5):
                store.save(_record(outputs={"id": f"vpc-{i}"}))

        leftovers = [p.name for p in state_path.parent.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_concurrent_saves_from_threads(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            threads = [
                threading.Thread(target=store.save, args=(_record(f"aws_subnet.s{i}"),))
                for i in range(20)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert len(StateStore(str(state_path)).load()) == 20


class TestCorruption:
    """Malformed files."""

    def test_invalid_json(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json")

        with pytest.raises(StateError, match="not valid JSON"):
            StateStore(str(state_path)).load()

    def test_invalid_layout(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"resources": []}))

        with pytest.raises(StateError):
            StateStore(str(state_path)).load()

    def test_unsupported_version(self, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"version": 99, "serial": 1, "lineage": "x", "resources": {}}))

        with pytest.raises(StateError, match="Unsupported state version"):
            StateStore(str(state_path)).load()


class TestLocking:
    """Exclusive run lock."""

    def test_save_requires_lock(self, state_path):
        store = StateStore(str(state_path))
        with pytest.raises(StateError, match="must be locked"):
            store.save(_record())

    def test_second_store_conflicts(self, state_path):
        first = StateStore(str(state_path))
        second = StateStore(str(state_path), lock_timeout=0)

        with first.locked():
            with pytest.raises(StateConflict):
                second.acquire()

        with second.locked():
            assert second.is_locked

    def test_lock_is_reentrant(self, state_path):
        store = StateStore(str(state_path))
        with store.locked():
            with store.locked():
                store.save(_record())
            assert store.is_locked
            store.save(_record(status=ResourceStatus.FAILED))

        assert not store.is_locked
        assert StateStore(str(state_path)).load()["aws_vpc.main"].status == ResourceStatus.FAILED

    def test_lock_visible_to_worker_threads(self, state_path):
        store = StateStore(str(state_path))
        errors = []

        def worker():
            try:
                store.save(_record())
            except StateError as e:
                errors.append(e)

        with store.locked():
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert errors == []
