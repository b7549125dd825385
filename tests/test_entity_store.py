"""Tests for the per-screen entity store."""

import asyncio
from typing import Any

import pytest

from app.core.changefeed import ChangeEvent, ChangeType, LocalChangeFeed
from app.core.exceptions import FetchFailure
from app.core.gateway import DataGateway
from app.schemas.common import RecordStatus
from app.schemas.patients import Patient
from app.services.entity_store import EntityStore


class ControlledGateway:
    """Gateway whose fetches complete only when the test says so."""

    def __init__(self) -> None:
        self.changefeed = LocalChangeFeed()
        self.pending: list[asyncio.Future] = []

    async def fetch_all(self, table: str, order_by: str, **kwargs: Any) -> list[dict]:
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    def respond(self, index: int, rows: list[dict]) -> None:
        self.pending[index].set_result(rows)

    def fail(self, index: int) -> None:
        self.pending[index].set_exception(
            FetchFailure("Failed to fetch patients_records", table="patients_records")
        )

    async def wait_for_requests(self, count: int) -> None:
        while len(self.pending) < count:
            await asyncio.sleep(0)

    async def subscribe(self, table: str):
        return await self.changefeed.subscribe(table)

    async def unsubscribe(self, subscription) -> None:
        await self.changefeed.unsubscribe(subscription)


def patient_row(record_id: int, mrn: str, status: str = "Pending") -> dict:
    return {"id": record_id, "first_name": f"P{record_id}", "medical_record_number": mrn, "status": status}


def make_store(gateway, **kwargs) -> EntityStore[Patient]:
    return EntityStore(gateway, "patients_records", "medical_record_number", Patient, **kwargs)


@pytest.mark.asyncio
async def test_store_starts_loading_and_empty():
    """A new store has no rows and is loading."""
    store = make_store(ControlledGateway())
    assert store.items == []
    assert store.loading is True
    assert store.error is None


@pytest.mark.asyncio
async def test_refresh_replaces_items():
    """A successful fetch replaces the whole list."""
    gateway = ControlledGateway()
    store = make_store(gateway)

    task = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(1)
    gateway.respond(0, [patient_row(1, "MRN-001"), patient_row(2, "MRN-002")])

    assert await task is True
    assert [patient.id for patient in store.items] == [1, 2]
    assert store.loading is False


@pytest.mark.asyncio
async def test_last_response_wins_even_if_older():
    """Overlapping refreshes apply whichever response arrives last."""
    gateway = ControlledGateway()
    store = make_store(gateway)

    first = asyncio.create_task(store.refresh())
    second = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(2)

    # The newer request finishes first
    gateway.respond(1, [patient_row(2, "MRN-002")])
    await second
    assert [patient.id for patient in store.items] == [2]
    assert store.loading is True

    # The older response overwrites it
    gateway.respond(0, [patient_row(1, "MRN-001")])
    await first
    assert [patient.id for patient in store.items] == [1]
    assert store.loading is False


@pytest.mark.asyncio
async def test_discard_stale_keeps_newest_response():
    """With discard_stale an overtaken response is dropped."""
    gateway = ControlledGateway()
    store = make_store(gateway, discard_stale=True)

    first = asyncio.create_task(store.refresh())
    second = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(2)

    gateway.respond(1, [patient_row(2, "MRN-002")])
    assert await second is True
    gateway.respond(0, [patient_row(1, "MRN-001")])
    assert await first is False

    assert [patient.id for patient in store.items] == [2]
    assert store.loading is False


@pytest.mark.asyncio
async def test_fetch_failure_clears_items():
    """A failed fetch empties the list and reports the failure."""
    gateway = ControlledGateway()
    failures = []
    store = make_store(gateway, on_failure=failures.append)

    task = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(1)
    gateway.respond(0, [patient_row(1, "MRN-001")])
    await task

    task = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(2)
    gateway.fail(1)

    assert await task is False
    assert store.items == []
    assert store.error == "Failed to fetch patients_records"
    assert store.loading is False
    assert len(failures) == 1


@pytest.mark.asyncio
async def test_response_after_deactivate_is_discarded():
    """Fetches finishing after the screen is gone do not touch the store."""
    gateway = ControlledGateway()
    store = make_store(gateway)

    activation = asyncio.create_task(store.activate())
    await gateway.wait_for_requests(1)
    assert store.active
    assert gateway.changefeed.subscriber_count == 1

    refresh = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(2)
    gateway.respond(0, [patient_row(1, "MRN-001")])
    await activation

    await store.deactivate()
    assert gateway.changefeed.subscriber_count == 0

    gateway.respond(1, [patient_row(9, "MRN-009")])
    assert await refresh is False
    assert [patient.id for patient in store.items] == [1]


@pytest.mark.asyncio
async def test_listeners_are_notified():
    """Listeners hear about loading and loaded states."""
    gateway = ControlledGateway()
    store = make_store(gateway)
    states = []
    listener = lambda s: states.append((s.loading, len(s.items)))  # noqa: E731
    store.add_listener(listener)

    task = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(1)
    gateway.respond(0, [patient_row(1, "MRN-001")])
    await task

    assert states == [(True, 0), (False, 1)]

    store.remove_listener(listener)
    store.patch_local(1, status=RecordStatus.CONFIRMED)
    assert len(states) == 2


@pytest.mark.asyncio
async def test_patch_local_returns_previous_record():
    """Local patches rewrite the cached copy only."""
    gateway = ControlledGateway()
    store = make_store(gateway)
    task = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(1)
    gateway.respond(0, [patient_row(1, "MRN-001")])
    await task

    previous = store.patch_local(1, status=RecordStatus.CANCELLED)

    assert previous.status == RecordStatus.PENDING
    assert store.get(1).status == RecordStatus.CANCELLED
    assert store.patch_local(42, status=RecordStatus.CANCELLED) is None


@pytest.mark.asyncio
async def test_change_notification_triggers_refetch(gateway: DataGateway) -> None:
    """A write to the table refreshes an active store."""
    store = make_store(gateway)
    refreshed = asyncio.Event()

    async with store.mounted():
        assert store.items == []
        store.add_listener(lambda s: refreshed.set() if s.items else None)

        await gateway.insert("patients_records", {"first_name": "Ada", "medical_record_number": "MRN-001"})
        await asyncio.wait_for(refreshed.wait(), timeout=2)

        assert [patient.first_name for patient in store.items] == ["Ada"]

    assert not store.active
    assert gateway.changefeed.subscriber_count == 0


@pytest.mark.asyncio
async def test_should_refresh_filters_changes(gateway: DataGateway) -> None:
    """Consumers may ignore some change events."""
    fetches = 0
    original = gateway.fetch_all

    async def counting_fetch_all(*args, **kwargs):
        nonlocal fetches
        fetches += 1
        return await original(*args, **kwargs)

    gateway.fetch_all = counting_fetch_all
    store = make_store(gateway, should_refresh=lambda change: change.event == ChangeType.DELETE)

    async with store.mounted():
        stored = await gateway.insert("patients_records", {"first_name": "Ada"})
        await asyncio.sleep(0.05)
        assert fetches == 1

        await gateway.delete("patients_records", stored["id"])
        for _ in range(100):
            if fetches == 2:
                break
            await asyncio.sleep(0.01)

    assert fetches == 2


@pytest.mark.asyncio
async def test_discard_stale_settles_after_failed_old_fetch():
    """A stale failure is dropped and loading ends with the last fetch."""
    gateway = ControlledGateway()
    failures = []
    store = make_store(gateway, discard_stale=True, on_failure=failures.append)

    first = asyncio.create_task(store.refresh())
    second = asyncio.create_task(store.refresh())
    await gateway.wait_for_requests(2)

    gateway.respond(1, [patient_row(2, "MRN-002")])
    assert await second is True
    assert store.loading is True

    gateway.fail(0)
    assert await first is False

    assert [patient.id for patient in store.items] == [2]
    assert store.error is None
    assert store.loading is False
    assert failures == []


@pytest.mark.asyncio
async def test_watcher_survives_bad_refresh():
    """A refresh that raises does not stop later change handling."""
    gateway = ControlledGateway()
    store = make_store(gateway)

    activation = asyncio.create_task(store.activate())
    await gateway.wait_for_requests(1)
    gateway.respond(0, [])
    await activation

    change = ChangeEvent(table="patients_records", event=ChangeType.UPDATE, record_id=1)
    await gateway.changefeed.publish(change)
    await gateway.wait_for_requests(2)
    gateway.respond(1, [patient_row(1, "MRN-001", status="Archived")])

    await gateway.changefeed.publish(change)
    await gateway.wait_for_requests(3)
    gateway.respond(2, [patient_row(1, "MRN-001")])

    for _ in range(100):
        if store.items:
            break
        await asyncio.sleep(0.01)

    assert [patient.id for patient in store.items] == [1]
    await store.deactivate()
