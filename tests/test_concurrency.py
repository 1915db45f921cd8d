"""
Concurrency safety tests.

Demonstrates:
1. The Redis lock grants one holder at a time and releases atomically.
2. Contention on a vehicle or driver lock surfaces as a 409 and leaves the trip alone.
3. The vehicle guard re-check refuses a second booking for the same day.
4. Sagas undo completed steps in reverse order when a later step fails.
"""

from unittest.mock import AsyncMock

import pytest

from fleetops.errors import GuardViolation, ResourceBusy, SagaFailed
from fleetops.infrastructure.locks import (
    DistributedLock,
    LockNotAcquired,
    driver_lock,
    exclusive,
    vehicle_lock,
)
from fleetops.services.saga import Saga


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with("lock:test-key", lock.token, nx=True, ex=10)

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_calls_eval(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        mock_redis.eval.assert_called_once()

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass
        mock_redis.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_vehicle_lock_key(self):
        lock = vehicle_lock(AsyncMock(), 5)
        assert lock.key == "lock:vehicle:5"

    @pytest.mark.asyncio
    async def test_driver_lock_key(self):
        lock = driver_lock(AsyncMock(), 5)
        assert lock.key == "lock:driver:5"

    @pytest.mark.asyncio
    async def test_exclusive_reports_contention_as_busy(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        with pytest.raises(ResourceBusy) as info:
            async with exclusive(vehicle_lock(mock_redis, 5), "Vehicle CAB-9"):
                pass
        assert info.value.status_code == 409
        assert info.value.details == {"resource": "Vehicle CAB-9"}


class TestSaga:
    @pytest.mark.asyncio
    async def test_compensates_in_reverse_order(self):
        calls = []

        async def ok(name):
            calls.append(name)

        async def boom():
            raise RuntimeError("store unavailable")

        saga = (
            Saga("swap")
            .step("one", lambda: ok("one"), lambda: ok("undo one"))
            .step("two", lambda: ok("two"))
            .step("three", lambda: ok("three"), lambda: ok("undo three"))
            .step("four", boom, lambda: ok("undo four"))
        )
        with pytest.raises(SagaFailed) as info:
            await saga.run()

        assert calls == ["one", "two", "three", "undo three", "undo one"]
        assert info.value.details == {"saga": "swap", "step": "four"}

    @pytest.mark.asyncio
    async def test_application_errors_pass_through(self):
        undone = []

        async def refuse():
            raise GuardViolation("no")

        async def noop():
            return "done"

        async def undo():
            undone.append(True)

        saga = Saga("guarded").step("first", noop, undo).step("second", refuse)
        with pytest.raises(GuardViolation):
            await saga.run()
        assert undone == [True]

    @pytest.mark.asyncio
    async def test_failing_compensation_does_not_hide_the_error(self):
        async def noop():
            return None

        async def broken_undo():
            raise RuntimeError("undo failed too")

        async def boom():
            raise ValueError("original")

        saga = Saga("fragile").step("a", noop, broken_undo).step("b", boom)
        with pytest.raises(SagaFailed, match="original"):
            await saga.run()

    @pytest.mark.asyncio
    async def test_returns_step_results(self):
        async def one():
            return 1

        async def two():
            return 2

        assert await Saga("plain").step("a", one).step("b", two).run() == [1, 2]


class TestVehicleClaims:
    @pytest.mark.asyncio
    async def test_lock_contention_returns_409(
        self, client, mock_redis, make_user, make_driver, make_vehicle, make_trip
    ):
        requester = await make_user("Anjali Wickramasinghe")
        driver = await make_driver("Nimal Perera")
        vehicle = await make_vehicle("CAB-9")
        trip = await make_trip(requester, "TRP-001")

        mock_redis.set = AsyncMock(return_value=False)
        resp = await client.post(
            f"/api/v1/trips/{trip.id}/approve",
            json={"vehicle_id": vehicle.id, "driver_id": driver.id},
        )
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "ERR_BUSY_001"

        resp = await client.get(f"/api/v1/trips/{trip.id}")
        assert resp.json()["status"] == "pending"
        assert resp.json()["vehicle_id"] is None

    @pytest.mark.asyncio
    async def test_same_vehicle_cannot_be_booked_twice_a_day(
        self, client, mock_redis, make_user, make_driver, make_vehicle, make_trip
    ):
        anjali = await make_user("Anjali Wickramasinghe")
        ruwan = await make_user("Ruwan Jayasuriya")
        nimal = await make_driver("Nimal Perera")
        sunil = await make_driver("Sunil Silva")
        vehicle = await make_vehicle("CAB-9")
        first = await make_trip(anjali, "TRP-001")
        second = await make_trip(ruwan, "TRP-002")

        resp = await client.post(
            f"/api/v1/trips/{first.id}/approve",
            json={"vehicle_id": vehicle.id, "driver_id": nimal.id},
        )
        assert resp.status_code == 200

        resp = await client.post(
            f"/api/v1/trips/{second.id}/approve",
            json={"vehicle_id": vehicle.id, "driver_id": sunil.id},
        )
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "ERR_VALIDATION_001"
        assert resp.json()["details"]["trip_ids"] == [first.id]

        # every approval ran under the vehicle lock and released it
        keys = {call.args[0] for call in mock_redis.set.await_args_list}
        assert f"lock:vehicle:{vehicle.id}" in keys
        assert mock_redis.eval.await_count == mock_redis.set.await_count

    @pytest.mark.asyncio
    async def test_driver_lock_is_taken_after_vehicle_lock(
        self, client, mock_redis, make_user, make_driver, make_vehicle, make_trip
    ):
        requester = await make_user("Anjali Wickramasinghe")
        driver = await make_driver("Nimal Perera")
        vehicle = await make_vehicle("CAB-9")
        trip = await make_trip(requester, "TRP-001")

        resp = await client.post(
            f"/api/v1/trips/{trip.id}/approve",
            json={"vehicle_id": vehicle.id, "driver_id": driver.id},
        )
        assert resp.status_code == 200, resp.text

        keys = [call.args[0] for call in mock_redis.set.await_args_list]
        vehicle_key, driver_key = f"lock:vehicle:{vehicle.id}", f"lock:driver:{driver.id}"
        assert keys.index(vehicle_key) < keys.index(driver_key)
        released = [call.args[2] for call in mock_redis.eval.await_args_list]
        assert released.index(driver_key) < released.index(vehicle_key)

    @pytest.mark.asyncio
    async def test_busy_driver_returns_409_and_frees_vehicle(
        self, client, mock_redis, make_user, make_driver, make_vehicle, make_trip
    ):
        requester = await make_user("Anjali Wickramasinghe")
        driver = await make_driver("Nimal Perera")
        vehicle = await make_vehicle("CAB-9")
        trip = await make_trip(requester, "TRP-001")

        async def driver_held(key, *args, **kwargs):
            return not key.startswith("lock:driver:")

        mock_redis.set = AsyncMock(side_effect=driver_held)
        resp = await client.post(
            f"/api/v1/trips/{trip.id}/approve",
            json={"vehicle_id": vehicle.id, "driver_id": driver.id},
        )
        assert resp.status_code == 409
        assert resp.json()["details"] == {"resource": "Driver Nimal Perera"}
        released = [call.args[2] for call in mock_redis.eval.await_args_list]
        assert released == [f"lock:vehicle:{vehicle.id}"]
        assert (await client.get(f"/api/v1/trips/{trip.id}")).json()["status"] == "pending"
