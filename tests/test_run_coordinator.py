import pytest

from crawlers.errors import RunInProgressError
from services.run_coordinator import RunCoordinator


class LockingStore:
    def __init__(self, available=True):
        self.available = available
        self.released = []

    def try_acquire_run_lock(self, key):
        return f"conn-{key}" if self.available else None

    def release_run_lock(self, conn, key):
        self.released.append((conn, key))


def test_second_acquire_is_rejected_while_first_is_active():
    coordinator = RunCoordinator()

    with coordinator.try_acquire("sync"):
        assert coordinator.busy is True
        assert coordinator.active_run == "sync"
        with pytest.raises(RunInProgressError):
            with coordinator.try_acquire("torrent-sync"):
                pass

    assert coordinator.busy is False
    assert coordinator.active_run is None


def test_slot_is_released_when_the_run_raises():
    coordinator = RunCoordinator()

    with pytest.raises(RuntimeError):
        with coordinator.try_acquire("sync"):
            raise RuntimeError("boom")

    with coordinator.try_acquire("resync"):
        assert coordinator.active_run == "resync"


def test_database_lock_is_taken_and_released():
    store = LockingStore()
    coordinator = RunCoordinator(store, lock_key=734001)

    with coordinator.try_acquire("sync"):
        pass

    assert store.released == [("conn-734001", 734001)]


def test_database_lock_held_elsewhere_rejects_run():
    store = LockingStore(available=False)
    coordinator = RunCoordinator(store, lock_key=734001)

    with pytest.raises(RunInProgressError):
        with coordinator.try_acquire("sync"):
            pass

    assert store.released == []
    assert coordinator.busy is False
