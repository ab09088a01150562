"""Unit tests for DeviceManager."""

import threading
import time
import unittest

from phidget.errors import ErrorKind, InvariantError, PhidgetError, ReturnCode
from phidget.manager import DeviceManager
from phidget.models import ChannelClass, ChannelIdentity, DeviceDescriptor

from fake_runtime import FakeRuntime


def descriptor(serial, channel=0, channel_class=ChannelClass.VOLTAGE_INPUT, name="Test Phidget"):
    return DeviceDescriptor(
        identity=ChannelIdentity(channel_class, serial_number=serial, channel=channel),
        device_name=name,
    )


class TestDeviceManager(unittest.TestCase):

    def setUp(self):
        self.runtime = FakeRuntime()
        self.manager = DeviceManager(runtime=self.runtime)

    def tearDown(self):
        self.manager.stop()

    def test_start_reports_present_devices(self):
        """Devices already present are reported on start."""
        present = descriptor(1)
        self.runtime.present.append(present)
        added = []

        self.manager.start(on_attach=added.append)

        self.assertTrue(self.manager.is_running)
        self.assertEqual(added, [present])
        self.assertEqual(self.manager.devices, [present])

    def test_add_and_remove(self):
        """Plugging and unplugging update the snapshot and notify."""
        added, removed = [], []
        self.manager.start(on_attach=added.append, on_detach=removed.append)

        d = descriptor(2, channel=3)
        self.runtime.plug(d)
        self.assertIn(d.key, self.manager.snapshot())

        self.runtime.unplug(d)
        self.assertEqual(removed, [d])
        self.assertEqual(dict(self.manager.snapshot()), {})

    def test_unknown_detach_ignored(self):
        """Detach of a device never seen is dropped."""
        removed = []
        self.manager.start(on_detach=removed.append)
        self.runtime.unplug(descriptor(9))
        self.assertEqual(removed, [])

    def test_snapshot_is_read_only_copy(self):
        """Snapshots are read-only and do not change later."""
        self.manager.start()
        self.runtime.plug(descriptor(1))
        snap = self.manager.snapshot()
        with self.assertRaises(TypeError):
            snap[("x",)] = None
        self.runtime.plug(descriptor(2))
        self.assertEqual(len(snap), 1)
        self.assertEqual(len(self.manager.snapshot()), 2)

    def test_start_twice_is_already_open(self):
        """A second start is refused."""
        self.manager.start()
        with self.assertRaises(PhidgetError) as ctx:
            self.manager.start()
        self.assertEqual(ctx.exception.kind, ErrorKind.ALREADY_OPEN)
        self.assertEqual(len(self.runtime.managers), 1)

    def test_stop_clears_and_is_idempotent(self):
        """Stop clears the snapshot and can be repeated."""
        self.manager.start()
        self.runtime.plug(descriptor(1))
        native = self.runtime.managers[-1]

        self.manager.stop()
        self.manager.stop()

        self.assertFalse(self.manager.is_running)
        self.assertEqual(self.manager.devices, [])
        self.assertTrue(native.deleted)
        self.assertEqual(self.runtime.ops().count("delete_manager"), 1)

    def test_restart_after_stop(self):
        """A stopped manager can start again with a new native manager."""
        self.manager.start()
        self.manager.stop()
        self.manager.start()
        self.assertTrue(self.manager.is_running)
        self.assertEqual(len(self.runtime.managers), 2)

    def test_failed_start_cleans_up(self):
        """A failed native open frees the manager without closing it."""
        self.runtime.fail["open_manager"] = ReturnCode.EPHIDGET_ACCESS
        with self.assertRaises(PhidgetError) as ctx:
            self.manager.start()
        self.assertEqual(ctx.exception.kind, ErrorKind.PERMISSION_DENIED)
        self.assertFalse(self.manager.is_running)
        self.assertTrue(self.runtime.managers[-1].deleted)
        self.assertNotIn("close_manager", self.runtime.ops())

    def test_no_notifications_after_stop(self):
        """Late native callbacks after stop are dropped."""
        added = []
        self.manager.start(on_attach=added.append)
        native = self.runtime.managers[-1]
        late = native.on_attach
        self.manager.stop()

        late(lambda: descriptor(5))

        self.assertEqual(added, [])
        self.assertEqual(self.manager.devices, [])

    def test_stop_waits_for_running_handler(self):
        """Stop returns only after a running handler finishes."""
        started = threading.Event()
        marks = {}

        def slow(d):
            started.set()
            time.sleep(0.05)
            marks["handler_done"] = time.monotonic()

        self.manager.start(on_attach=slow)
        thread = self.runtime.fire_async(self.runtime.plug, descriptor(1))
        self.assertTrue(started.wait(1.0))

        self.manager.stop()
        thread.join(1.0)

        self.assertGreaterEqual(self.runtime.time_of("close_manager"), marks["handler_done"])

    def test_stop_from_handler_is_invariant_violation(self):
        """Stopping from inside a manager handler is refused."""
        errors = []

        def stopper(d):
            try:
                self.manager.stop()
            except InvariantError as e:
                errors.append(e)

        self.manager.start(on_attach=stopper)
        self.runtime.plug(descriptor(1))
        self.assertEqual(len(errors), 1)
        self.assertTrue(self.manager.is_running)

    def test_unexpected_error_in_start_cleans_up(self):
        """A non-Phidget error while starting leaves the manager restartable."""
        self.runtime.fail["create_manager"] = OSError("libphidget22 not found")
        with self.assertRaises(OSError):
            self.manager.start()
        self.assertFalse(self.manager.is_running)

        del self.runtime.fail["create_manager"]
        self.manager.start()
        self.assertTrue(self.manager.is_running)

    def test_describe_failure_is_logged_and_dropped(self):
        """A device whose details cannot be read is left out of the snapshot."""
        added = []
        self.manager.start(on_attach=added.append)
        self.runtime.fail["describe"] = ReturnCode.EPHIDGET_NOTATTACHED

        with self.assertLogs("phidget.manager", level="WARNING"):
            self.runtime.plug(descriptor(3))

        self.assertEqual(added, [])
        self.assertEqual(self.manager.devices, [])

    def test_deregistration_failure_still_deletes_manager(self):
        """Stop frees the native manager even if clearing callbacks fails."""
        self.manager.start()
        native = self.runtime.managers[-1]
        self.runtime.fail["clear_manager"] = ReturnCode.EPHIDGET_CLOSED

        with self.assertLogs("phidget.manager", level="WARNING"):
            self.manager.stop()

        self.assertFalse(self.manager.is_running)
        self.assertTrue(native.deleted)

    def test_context_manager(self):
        """The with block starts and stops the manager."""
        with DeviceManager(runtime=self.runtime) as manager:
            self.assertTrue(manager.is_running)
        self.assertFalse(manager.is_running)


if __name__ == "__main__":
    unittest.main()
