from __future__ import annotations

import json
from pathlib import Path
import tempfile
import unittest

from biocoach.errors import InvalidRangeError
from biocoach.tolerance_settings import (
    GLOBAL_PLAYER_ID,
    PlayerTolerances,
    ToleranceSettingsStore,
    export_player_tolerances,
    player_tolerances_from_dict,
)
from biocoach.tolerances.defaults import DEFAULT_TOLERANCES
from biocoach.tolerances.ranges import MetricName, ToleranceRange


class ToleranceSettingsStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.persist_path = Path(self._tmp.name) / "config" / "tolerance_settings.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_fresh_store_uses_defaults(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        self.assertEqual(dict(store.global_tolerances().ranges), dict(DEFAULT_TOLERANCES))
        self.assertIs(store.tolerances_for("unknown-player"), store.global_tolerances())
        self.assertEqual(store.list_players(), [])
        self.assertFalse(self.persist_path.exists())

    def test_registered_player_persists_roundtrip(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        store.register_player("p1", "Alex Morgan")
        store.update_range("heart_rate", 55, 175, player_id="p1")

        reloaded = ToleranceSettingsStore(persist_path=self.persist_path)
        self.assertTrue(reloaded.has_player("p1"))
        p1 = reloaded.tolerances_for("p1")
        self.assertEqual(p1.player_name, "Alex Morgan")
        self.assertEqual(p1.range_for(MetricName.HEART_RATE), ToleranceRange(55, 175))
        self.assertEqual(p1.range_for(MetricName.HYDRATION), ToleranceRange(80, 100))
        self.assertEqual(reloaded.global_tolerances().range_for("heart_rate"), ToleranceRange(60, 180))

    def test_new_players_copy_current_global(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        store.update_range("hydration", 85, 100)
        created = store.register_player("p2", "Sam Kerr")
        self.assertEqual(created.range_for("hydration"), ToleranceRange(85, 100))

        # Registering again keeps the player's own ranges.
        store.update_range("hydration", 70, 100, player_id="p2")
        again = store.register_player("p2", "Sam Kerr")
        self.assertEqual(again.range_for("hydration"), ToleranceRange(70, 100))

    def test_apply_global_to_player(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        store.register_player("p1", "Alex")
        store.update_range("lactic_acid", 0, 6, player_id="p1")
        store.update_range("vo2_max", 45, 65)

        updated = store.apply_global_to_player("p1")
        self.assertEqual(updated.player_name, "Alex")
        self.assertEqual(updated.range_for("lactic_acid"), ToleranceRange(0, 4))
        self.assertEqual(updated.range_for("vo2_max"), ToleranceRange(45, 65))

        with self.assertRaises(KeyError):
            store.apply_global_to_player("missing")

    def test_invalid_range_leaves_state_and_file_untouched(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        store.register_player("p1", "Alex")
        before = self.persist_path.read_text(encoding="utf-8")

        with self.assertRaises(InvalidRangeError):
            store.update_range("heart_rate", 200, 100, player_id="p1")

        self.assertEqual(self.persist_path.read_text(encoding="utf-8"), before)
        self.assertEqual(store.tolerances_for("p1").range_for("heart_rate"), ToleranceRange(60, 180))

    def test_global_id_is_reserved(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        with self.assertRaises(ValueError):
            store.save(players={GLOBAL_PLAYER_ID: PlayerTolerances(player_id=GLOBAL_PLAYER_ID)})

    def test_invalid_entries_in_persisted_file_are_skipped(self) -> None:
        self.persist_path.parent.mkdir(parents=True, exist_ok=True)
        self.persist_path.write_text(
            json.dumps(
                {
                    "schema": 1,
                    "global_tolerances": {"heart_rate": {"min": 50, "max": 170}},
                    "players": {
                        "bad": {"player_id": "bad", "tolerances": {"hydration": {"min": 100, "max": 80}}},
                        "p2": {
                            "player_id": "p2",
                            "player_name": "Bo",
                            "tolerances": {"heartRate": {"min": 70, "max": 160}},
                        },
                    },
                }
            ),
            encoding="utf-8",
        )
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        self.assertFalse(store.has_player("bad"))
        p2 = store.tolerances_for("p2")
        self.assertEqual(p2.range_for("heart_rate"), ToleranceRange(70, 160))
        self.assertEqual(p2.range_for("hydration"), ToleranceRange(80, 100))
        self.assertEqual(store.global_tolerances().range_for("heart_rate"), ToleranceRange(50, 170))

    def test_unreadable_file_falls_back_to_defaults(self) -> None:
        self.persist_path.parent.mkdir(parents=True, exist_ok=True)
        self.persist_path.write_text("{not json", encoding="utf-8")
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        self.assertEqual(dict(store.global_tolerances().ranges), dict(DEFAULT_TOLERANCES))

    def test_injected_defaults(self) -> None:
        defaults = dict(DEFAULT_TOLERANCES)
        defaults[MetricName.HEART_RATE] = ToleranceRange(50, 200)
        store = ToleranceSettingsStore(persist_path=self.persist_path, defaults=defaults)
        self.assertEqual(store.global_tolerances().range_for("heart_rate"), ToleranceRange(50, 200))
        store.update_range("heart_rate", 40, 210)
        store.reset_global()
        self.assertEqual(store.global_tolerances().range_for("heart_rate"), ToleranceRange(50, 200))

    def test_subscribers_receive_snapshots_on_save(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        seen = []
        token = store.subscribe(lambda snap: seen.append(snap), emit_initial=False)
        store.register_player("p1", "Alex")
        self.assertEqual(len(seen), 1)
        self.assertIn("p1", seen[0].players)

        store.unsubscribe(token)
        store.update_range("heart_rate", 65, 175)
        self.assertEqual(len(seen), 1)

    def test_snapshot_is_isolated_from_later_saves(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        snap = store.snapshot()
        store.update_range("heart_rate", 65, 175)
        self.assertEqual(snap.global_tolerances.range_for("heart_rate"), ToleranceRange(60, 180))

    def test_import_fills_missing_metrics_from_global(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        store.update_range("heart_rate", 50, 200)
        imported = store.import_players({"p1": {"playerName": "Alex", "hydration": {"min": 85, "max": 100}}})

        self.assertEqual([p.player_id for p in imported], ["p1"])
        p1 = store.tolerances_for("p1")
        self.assertEqual(p1.player_name, "Alex")
        self.assertEqual(p1.range_for("heart_rate"), ToleranceRange(50, 200))
        self.assertEqual(p1.range_for("hydration"), ToleranceRange(85, 100))

    def test_import_global_fills_from_store_defaults(self) -> None:
        defaults = dict(DEFAULT_TOLERANCES)
        defaults[MetricName.HEART_RATE] = ToleranceRange(55, 190)
        store = ToleranceSettingsStore(persist_path=self.persist_path, defaults=defaults)
        store.update_range("heart_rate", 70, 160)

        store.import_players(
            {
                GLOBAL_PLAYER_ID: {"hydration": {"min": 82, "max": 100}},
                "p2": {"vo2Max": {"min": 45, "max": 65}},
            }
        )
        self.assertEqual(store.global_tolerances().range_for("heart_rate"), ToleranceRange(55, 190))
        self.assertEqual(store.global_tolerances().player_name, "Global Settings")
        p2 = store.tolerances_for("p2")
        self.assertEqual(p2.range_for("hydration"), ToleranceRange(82, 100))
        self.assertEqual(p2.range_for("heart_rate"), ToleranceRange(55, 190))

    def test_invalid_import_saves_nothing(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        with self.assertRaises(InvalidRangeError):
            store.import_players(
                {
                    "p1": {"hydration": {"min": 85, "max": 100}},
                    "p2": {"hydration": {"min": 100, "max": 85}},
                }
            )
        self.assertFalse(store.has_player("p1"))
        self.assertFalse(self.persist_path.exists())

    def test_remove_player(self) -> None:
        store = ToleranceSettingsStore(persist_path=self.persist_path)
        store.register_player("p1", "Alex")
        store.remove_player("p1")
        self.assertFalse(ToleranceSettingsStore(persist_path=self.persist_path).has_player("p1"))


class DashboardLayoutTests(unittest.TestCase):
    def test_flat_export_layout_roundtrip(self) -> None:
        exported = {
            "playerId": "p7",
            "playerName": "Jordan",
            "heartRate": {"min": 65, "max": 185},
            "hydration": {"min": 82, "max": 100},
        }
        tolerances = player_tolerances_from_dict(exported)
        self.assertEqual(tolerances.player_id, "p7")
        self.assertEqual(tolerances.range_for("heart_rate"), ToleranceRange(65, 185))
        self.assertEqual(tolerances.range_for("lactic_acid"), ToleranceRange(0, 4))

        flat = export_player_tolerances(tolerances)
        self.assertEqual(flat["playerId"], "p7")
        self.assertEqual(flat["heartRate"], {"min": 65.0, "max": 185.0})
        self.assertIn("muscleFatigue", flat)

    def test_player_id_from_key(self) -> None:
        tolerances = player_tolerances_from_dict({"tolerances": {"vo2_max": {"min": 42, "max": 58}}}, player_id="p9")
        self.assertEqual(tolerances.player_id, "p9")
        with self.assertRaises(ValueError):
            player_tolerances_from_dict({"tolerances": {}})


if __name__ == "__main__":
    unittest.main()
