"""
Unit tests for EventRouter

Tests cover:
- Shape validation and silent drops
- Payload fields validated independently
- modelKey / action filtering
- Lookup scoped to the router's controller
- Motion and LED dispatch, including explicit nulls
- Per-invocation error isolation
"""
import pytest
from unittest.mock import MagicMock

from protect_motion.schemas.protect import LedSettings, ProtectEventPacket
from protect_motion.services.device_identity import compute_device_identity
from protect_motion.services.event_router import EventRouter
from protect_motion.services.inventory_sync import InventorySynchronizer
from tests.conftest import CONTROLLER_ADDRESS, make_camera_record, make_device, make_packet


@pytest.fixture
def target():
    """A MagicMock device registered as cam-001 on the test controller."""
    device = MagicMock()
    device.name = "Front Door"
    device.camera_id = "cam-001"
    return device


@pytest.fixture
def lookup(target):
    def _lookup(controller_address, camera_id):
        if controller_address == CONTROLLER_ADDRESS and camera_id == "cam-001":
            return target
        return None
    return MagicMock(side_effect=_lookup)


@pytest.fixture
def router(lookup):
    return EventRouter(CONTROLLER_ADDRESS, lookup)


class TestShapeValidation:
    """Malformed or incomplete packets are dropped silently"""

    @pytest.mark.parametrize("packet", [
        {},
        {"action": {"action": "update", "modelKey": "camera", "id": "cam-001"}},
        {"payload": {"lastMotion": 100}},
        {"action": {"action": "update"}, "payload": {}},
        {"action": "update", "payload": {}},
        {"action": {"action": "update", "modelKey": "camera", "id": "cam-001"}, "payload": []},
        None,
        "garbage",
    ])
    def test_dropped_without_raising(self, router, lookup, target, packet):
        router.route(packet)

        lookup.assert_not_called()
        target.handle_motion_event.assert_not_called()
        target.handle_led_settings_update.assert_not_called()

    def test_accepts_validated_packet(self, router, target):
        packet = ProtectEventPacket.model_validate(make_packet(last_motion=100))

        router.route(packet)

        target.handle_motion_event.assert_called_once_with(100)

    def test_malformed_field_not_dispatched(self, router, target):
        router.route(make_packet(lastMotion="not-a-number"))

        target.handle_motion_event.assert_not_called()
        target.handle_led_settings_update.assert_not_called()

    def test_malformed_led_settings_keep_motion(self, router, target):
        router.route(make_packet(last_motion=100, ledSettings={"blinkRate": 0}))

        target.handle_motion_event.assert_called_once_with(100)
        target.handle_led_settings_update.assert_not_called()

    def test_malformed_motion_keeps_led(self, router, target):
        router.route(make_packet(lastMotion="soon", led_enabled=False))

        target.handle_motion_event.assert_not_called()
        target.handle_led_settings_update.assert_called_once_with(LedSettings(is_enabled=False))


class TestFiltering:
    """Only camera updates are dispatched"""

    def test_other_model_key_ignored(self, router, lookup, target):
        router.route(make_packet(model_key="other", last_motion=100))

        lookup.assert_not_called()
        target.handle_motion_event.assert_not_called()

    @pytest.mark.parametrize("action", ["add", "remove", "delete"])
    def test_non_update_action_ignored(self, router, target, action):
        router.route(make_packet(action=action, last_motion=100))

        target.handle_motion_event.assert_not_called()

    def test_unknown_camera_ignored(self, router, lookup, target):
        router.route(make_packet(camera_id="cam-999", last_motion=100))

        lookup.assert_called_once_with(CONTROLLER_ADDRESS, "cam-999")
        target.handle_motion_event.assert_not_called()

    def test_lookup_uses_router_controller(self, target):
        lookup = MagicMock(return_value=None)
        router = EventRouter("10.0.0.99", lookup)

        router.route(make_packet(last_motion=100))

        lookup.assert_called_once_with("10.0.0.99", "cam-001")


class TestDispatch:
    """Payload fields reach the right handlers"""

    def test_motion_dispatched(self, router, target):
        router.route(make_packet(last_motion=1700000000000))

        target.handle_motion_event.assert_called_once_with(1700000000000)
        target.handle_led_settings_update.assert_not_called()

    def test_explicit_null_motion_dispatched(self, router, target):
        router.route(make_packet(last_motion=None))

        target.handle_motion_event.assert_called_once_with(None)

    def test_absent_motion_not_dispatched(self, router, target):
        router.route(make_packet(isConnected=True))

        target.handle_motion_event.assert_not_called()
        target.handle_led_settings_update.assert_not_called()

    def test_led_dispatched(self, router, target):
        router.route(make_packet(led_enabled=False))

        target.handle_led_settings_update.assert_called_once_with(LedSettings(is_enabled=False))
        target.handle_motion_event.assert_not_called()

    def test_null_led_settings_not_dispatched(self, router, target):
        router.route(make_packet(ledSettings=None))

        target.handle_led_settings_update.assert_not_called()

    def test_motion_before_led(self, router, target):
        order = []
        target.handle_motion_event.side_effect = lambda v: order.append("motion")
        target.handle_led_settings_update.side_effect = lambda v: order.append("led")

        router.route(make_packet(last_motion=100, led_enabled=True))

        assert order == ["motion", "led"]


class TestIsolation:
    """Handler failures never escape route()"""

    def test_motion_failure_does_not_block_led(self, router, target):
        target.handle_motion_event.side_effect = RuntimeError("boom")

        router.route(make_packet(last_motion=100, led_enabled=False))

        target.handle_led_settings_update.assert_called_once()

    def test_failure_does_not_affect_later_packets(self, router, target):
        target.handle_motion_event.side_effect = [RuntimeError("boom"), None]

        router.route(make_packet(last_motion=100))
        router.route(make_packet(last_motion=200))

        assert target.handle_motion_event.call_count == 2


class TestWithRealDevices:
    """Router driving real CameraDeviceState instances"""

    @pytest.mark.asyncio
    async def test_routes_into_synchronizer_registry(self):
        def factory(identity, controller_address, camera):
            return make_device(camera=camera, controller_address=controller_address)

        sync = InventorySynchronizer(factory)
        sync.reconcile(CONTROLLER_ADDRESS, [make_camera_record("cam-001"), make_camera_record("cam-002")])
        router = EventRouter(CONTROLLER_ADDRESS, sync.get_by_camera_id)

        router.route(make_packet(camera_id="cam-002", last_motion=500))

        cam1 = sync.get(compute_device_identity(CONTROLLER_ADDRESS, "cam-001"))
        cam2 = sync.get(compute_device_identity(CONTROLLER_ADDRESS, "cam-002"))
        assert cam1.motion_detected is False
        assert cam2.motion_detected is True
        assert cam2.last_motion_timestamp == 500
