from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from dash_core.errors import IncompleteSettings, OutOfRangeLevel  # noqa: E402
from dash_core.levels import Level, subsystem_keys  # noqa: E402
from dash_core.models import SettingsState  # noqa: E402
from dash_core.settings_panel import ControlContainer, SettingsController, init_settings  # noqa: E402


def _full(**overrides) -> dict:
    values = SettingsState.from_defaults().to_wire()
    values.update(overrides)
    return values


class InitSettingsTests(unittest.TestCase):
    def test_one_handle_per_subsystem(self):
        container = ControlContainer()
        handles = init_settings(container)
        self.assertEqual(list(handles), subsystem_keys())
        self.assertEqual(len(container), len(subsystem_keys()))

    def test_preset_to_defaults(self):
        handles = init_settings(ControlContainer())
        self.assertEqual(handles["server"].value, Level.FATAL)
        self.assertEqual(handles["socket"].value, Level.OFF)
        self.assertEqual(handles["miner"].control_id, "cmb_miner")
        self.assertEqual(handles["nonceSubmitter"].label, "Nonce submitter")

    def test_preset_from_state(self):
        state = SettingsState.from_defaults({"wallet": "trace"})
        handles = init_settings(ControlContainer(), state=state)
        self.assertEqual(handles["wallet"].value, Level.TRACE)

    def test_reinit_is_idempotent(self):
        container = ControlContainer()
        init_settings(container)
        handles = init_settings(container)
        self.assertEqual(len(container), len(subsystem_keys()))
        self.assertIs(container.get("miner"), handles["miner"])
        self.assertEqual([c.key for c in container], subsystem_keys())

    def test_callback_fires_once_per_change(self):
        calls = []
        handles = init_settings(ControlContainer(), lambda: calls.append(1))
        self.assertTrue(handles["miner"].select(Level.DEBUG))
        self.assertEqual(len(calls), 1)
        self.assertFalse(handles["miner"].select("debug"))
        self.assertEqual(len(calls), 1)
        handles["miner"].set_value(Level.TRACE)
        self.assertEqual(len(calls), 1)

    def test_options_cover_all_levels(self):
        handles = init_settings(ControlContainer())
        options = handles["miner"].options()
        self.assertEqual(options[0], (0, "off"))
        self.assertEqual(options[-1], (9, "all"))

    def test_step_stays_in_range(self):
        handles = init_settings(ControlContainer())
        socket = handles["socket"]
        self.assertFalse(socket.step(-1))
        self.assertEqual(socket.value, Level.OFF)
        socket.set_value(Level.ALL)
        self.assertFalse(socket.step(1))


class ControllerTests(unittest.TestCase):
    def setUp(self):
        self.sent = []
        self.controller = SettingsController(sender=self.sent.append)

    def test_user_change_sends_full_snapshot(self):
        self.controller.handles["miner"].select(Level.DEBUG)
        self.assertEqual(len(self.sent), 1)
        payload = self.sent[0]
        self.assertEqual(payload["type"], "settings_update")
        self.assertEqual(list(payload["values"]), subsystem_keys())
        self.assertEqual(payload["values"]["miner"], 7)
        self.assertEqual(payload["version"], 1)
        self.assertEqual(self.controller.state["miner"], Level.DEBUG)

    def test_bulk_edit_sends_one_update(self):
        self.controller.apply_local({"miner": "trace", "wallet": 3, "general": "off"})
        self.assertEqual(len(self.sent), 1)
        values = self.sent[0]["values"]
        self.assertEqual((values["miner"], values["wallet"], values["general"]), (8, 3, 0))

    def test_bulk_edit_without_change_sends_nothing(self):
        self.assertIsNone(self.controller.apply_local({"miner": "information"}))
        self.assertEqual(self.sent, [])
        self.assertIsNotNone(self.controller.apply_local({"miner": "information"}, force=True))
        self.assertEqual(len(self.sent), 1)

    def test_bulk_edit_validates_before_applying(self):
        with self.assertRaises(OutOfRangeLevel):
            self.controller.apply_local({"miner": "debug", "wallet": 12})
        self.assertEqual(self.controller.handles["miner"].value, Level.INFORMATION)
        with self.assertRaises(ValueError):
            self.controller.apply_local({"bogus": "debug"})
        self.assertEqual(self.sent, [])

    def test_authoritative_update_rerenders(self):
        applied = self.controller.apply_authoritative(_full(miner=7))
        self.assertTrue(applied)
        self.assertTrue(self.controller.confirmed)
        self.assertEqual(self.controller.handles["miner"].value, Level.DEBUG)
        self.assertEqual(len(self.controller.container), len(subsystem_keys()))
        self.assertEqual(self.sent, [])

    def test_partial_authoritative_update_rejected(self):
        with self.assertRaises(IncompleteSettings):
            self.controller.apply_authoritative({"miner": 7})
        self.assertEqual(self.controller.state["miner"], Level.INFORMATION)

    def test_out_of_range_authoritative_update_rejected(self):
        with self.assertRaises(OutOfRangeLevel):
            self.controller.apply_authoritative(_full(miner=10))
        self.assertEqual(self.controller.handles["miner"].value, Level.INFORMATION)

    def test_stale_confirmation_ignored(self):
        self.controller.handles["miner"].select(Level.DEBUG)
        self.controller.handles["miner"].select(Level.TRACE)
        self.assertEqual(self.controller.sent_version, 2)
        self.assertFalse(self.controller.apply_authoritative(_full(miner=7), version=1))
        self.assertEqual(self.controller.handles["miner"].value, Level.TRACE)
        self.assertTrue(self.controller.apply_authoritative(_full(miner=8), version=2))
        self.assertEqual(self.controller.state.version, 2)

    def test_cursor_editing(self):
        self.assertEqual(self.controller.focused_key, "miner")
        self.controller.move_cursor(-1)
        self.assertEqual(self.controller.focused_key, "general")
        self.controller.move_cursor(1)
        self.assertTrue(self.controller.step_focused(1))
        self.assertEqual(self.sent[-1]["values"]["miner"], 7)

    def test_read_only_controller_ignores_steps(self):
        controller = SettingsController(sender=self.sent.append, editable=False)
        self.assertFalse(controller.step_focused(1))
        self.assertEqual(self.sent, [])


if __name__ == "__main__":
    unittest.main()
