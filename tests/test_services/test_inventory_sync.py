"""
Unit tests for InventorySynchronizer

Tests cover:
- New cameras are exposed with default filter and seeded LED state
- Known cameras are refreshed in place, keeping local state
- Stale cameras are disposed and reported once
- Idempotent passes
- Empty inventory removes every device of that controller only
- Duplicate camera ids in one pass
"""
import asyncio
import pytest
from unittest.mock import MagicMock

from protect_motion.services.device_identity import compute_device_identity
from protect_motion.services.inventory_sync import InventorySynchronizer
from tests.conftest import CONTROLLER_ADDRESS, make_camera_record, make_device

OTHER_CONTROLLER = "192.168.2.1"


@pytest.fixture
def on_removed():
    return MagicMock()


@pytest.fixture
def factory():
    def _factory(identity, controller_address, camera):
        return make_device(camera=camera, controller_address=controller_address)
    return MagicMock(side_effect=_factory)


@pytest.fixture
def sync(factory, on_removed):
    return InventorySynchronizer(factory, on_removed=on_removed)


class TestNewCameras:
    """Tests for cameras seen for the first time"""

    def test_new_cameras_added(self, sync, factory):
        cameras = [make_camera_record("cam-001"), make_camera_record("cam-002", name="Garage")]

        result = sync.reconcile(CONTROLLER_ADDRESS, cameras)

        assert [d.camera_id for d in result.added] == ["cam-001", "cam-002"]
        assert result.refreshed == []
        assert result.removed == []
        assert len(sync) == 2
        assert factory.call_count == 2

    def test_registry_keyed_by_identity(self, sync):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])

        identity = compute_device_identity(CONTROLLER_ADDRESS, "cam-001")
        assert identity in sync
        assert sync.get(identity).camera_id == "cam-001"
        assert sync.get_by_camera_id(CONTROLLER_ADDRESS, "cam-001") is sync.get(identity)

    def test_new_device_defaults(self, sync):
        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001", led_enabled=False)])

        device = result.added[0]
        assert device.motion_enabled is True
        assert device.led_enabled is False
        assert device.motion_detected is False


class TestKnownCameras:
    """Tests for cameras already in the registry"""

    def test_second_pass_is_idempotent(self, sync, factory):
        cameras = [make_camera_record("cam-001"), make_camera_record("cam-002")]
        sync.reconcile(CONTROLLER_ADDRESS, cameras)

        result = sync.reconcile(CONTROLLER_ADDRESS, cameras)

        assert result.added == []
        assert result.removed == []
        assert len(result.refreshed) == 2
        assert factory.call_count == 2

    def test_refresh_updates_descriptive_fields(self, sync):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001", name="Front Door")])

        result = sync.reconcile(
            CONTROLLER_ADDRESS,
            [make_camera_record("cam-001", name="Porch", type="UVC G5 Flex", host="192.168.1.99")],
        )

        device = result.refreshed[0]
        assert device.name == "Porch"
        assert device.camera.type == "UVC G5 Flex"
        assert device.accessory.camera.host == "192.168.1.99"

    def test_refresh_preserves_motion_filter(self, sync):
        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])
        result.added[0].set_motion_enabled(False)

        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])

        assert result.refreshed[0].motion_enabled is False

    def test_refresh_does_not_reseed_led(self, sync):
        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001", led_enabled=True)])
        device = result.added[0]
        device.pending_led_request = False

        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001", led_enabled=False)])

        assert device.led_enabled is True
        assert device.pending_led_request is False

    def test_duplicate_camera_id_processed_once(self, sync, factory):
        result = sync.reconcile(
            CONTROLLER_ADDRESS,
            [make_camera_record("cam-001"), make_camera_record("cam-001", name="Shadow")],
        )

        assert len(result.added) == 1
        assert result.added[0].name == "Front Door"
        assert result.refreshed == []
        assert factory.call_count == 1


class TestStaleCameras:
    """Tests for cameras missing from the live inventory"""

    @pytest.mark.asyncio
    async def test_missing_camera_removed_once(self, sync, on_removed):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001"), make_camera_record("cam-002")])

        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])
        again = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])

        assert [d.camera_id for d in result.removed] == ["cam-002"]
        assert again.removed == []
        on_removed.assert_called_once_with(result.removed[0])
        assert sync.get_by_camera_id(CONTROLLER_ADDRESS, "cam-002") is None

    @pytest.mark.asyncio
    async def test_removed_device_timer_canceled(self, sync):
        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])
        device = result.added[0]
        device.handle_motion_event(100)
        assert device.motion_timer_armed is True

        sync.reconcile(CONTROLLER_ADDRESS, [])
        device.accessory.reset_calls()
        await asyncio.sleep(0.3)

        assert device.is_disposed is True
        assert device.motion_timer_armed is False
        assert device.accessory.calls == []

    def test_empty_inventory_removes_all(self, sync):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001"), make_camera_record("cam-002")])

        result = sync.reconcile(CONTROLLER_ADDRESS, [])

        assert len(result.removed) == 2
        assert len(sync) == 0

    def test_removed_camera_returns_as_new_device(self, sync):
        first = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")]).added[0]
        first.set_motion_enabled(False)
        sync.reconcile(CONTROLLER_ADDRESS, [])

        result = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])

        assert len(result.added) == 1
        assert result.added[0] is not first
        assert result.added[0].motion_enabled is True


class TestMultipleControllers:
    """Reconciliation is scoped per controller"""

    def test_other_controller_untouched(self, sync):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")])
        sync.reconcile(OTHER_CONTROLLER, [make_camera_record("cam-001")])

        result = sync.reconcile(CONTROLLER_ADDRESS, [])

        assert len(result.removed) == 1
        assert len(sync.devices(OTHER_CONTROLLER)) == 1
        assert sync.get_by_camera_id(OTHER_CONTROLLER, "cam-001") is not None

    def test_same_camera_id_distinct_devices(self, sync):
        a = sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001")]).added[0]
        b = sync.reconcile(OTHER_CONTROLLER, [make_camera_record("cam-001")]).added[0]

        assert a.identity != b.identity
        assert len(sync) == 2

    def test_devices_filter(self, sync):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001"), make_camera_record("cam-002")])
        sync.reconcile(OTHER_CONTROLLER, [make_camera_record("cam-003")])

        assert len(sync.devices()) == 3
        assert {d.camera_id for d in sync.devices(CONTROLLER_ADDRESS)} == {"cam-001", "cam-002"}

    def test_remove_controller(self, sync, on_removed):
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001"), make_camera_record("cam-002")])
        sync.reconcile(OTHER_CONTROLLER, [make_camera_record("cam-003")])

        removed = sync.remove_controller(CONTROLLER_ADDRESS)

        assert len(removed) == 2
        assert all(d.is_disposed for d in removed)
        assert on_removed.call_count == 2
        assert len(sync) == 1
