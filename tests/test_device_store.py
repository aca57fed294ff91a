"""Unit tests for DeviceStore."""
import random

import pytest

from fleetsync.schemas.device import BatteryInfo, CommandResult, VolumeInfo
from fleetsync.store.device_store import DeviceStore, StatusFilter
from tests.fakes import make_device


class TestUpsertAndRemove:
    """Table mutation primitives"""

    def test_upsert_full_inserts_new_device(self, store):
        store.upsert_full(make_device("d1"))

        assert len(store) == 1
        assert "d1" in store
        assert store.get("d1").info.model == "Quest 3"

    def test_upsert_full_replaces_whole_record(self, store):
        store.upsert_full(make_device("d1", battery=50, running_app="com.arcade.game"))
        store.upsert_full(make_device("d1", model="Quest Pro"))

        device = store.get("d1")
        assert device.info.model == "Quest Pro"
        assert device.battery is None
        assert device.running_app is None

    def test_upsert_full_keeps_table_position(self, store):
        for device_id in ("d1", "d2", "d3"):
            store.upsert_full(make_device(device_id))

        store.upsert_full(make_device("d2", model="Pico 4"))

        assert store.ids() == ["d1", "d2", "d3"]

    def test_upsert_full_is_idempotent(self, store):
        snapshot = make_device("d1", battery=42, volume=60, custom_name="Bay 1")

        store.upsert_full(snapshot)
        once = store.devices()
        store.upsert_full(snapshot)

        assert store.devices() == once
        assert len(store) == 1

    def test_upsert_full_copies_input(self, store):
        snapshot = make_device("d1")
        store.upsert_full(snapshot)

        snapshot.info.model = "mutated"

        assert store.get("d1").info.model == "Quest 3"

    def test_remove_prunes_selection(self, store):
        store.upsert_full(make_device("d1"))
        store.upsert_full(make_device("d2"))
        store.select("d1")
        store.select("d2")

        assert store.remove("d1") is True

        assert "d1" not in store
        assert store.selected_ids() == ["d2"]

    def test_remove_unknown_device(self, store):
        assert store.remove("missing") is False

    def test_replace_all_drops_unlisted_devices(self, fleet):
        fleet.select("d2")

        removed = fleet.replace_all([make_device("d1"), make_device("d4")])

        assert sorted(removed) == ["d2", "d3"]
        assert fleet.ids() == ["d1", "d4"]
        assert fleet.selected_ids() == []

    def test_replace_existing_never_inserts(self, store):
        assert store.replace_existing(make_device("d1")) is None
        assert len(store) == 0

    def test_replace_existing_keeps_position_and_selection(self, fleet):
        fleet.select("d1")

        device = fleet.replace_existing(make_device("d1", model="Quest Pro", running_app="com.a"))

        assert device.running_app == "com.a"
        assert fleet.ids()[0] == "d1"
        assert fleet.get("d1").info.model == "Quest Pro"
        assert fleet.selected_ids() == ["d1"]


class TestUpdateField:
    """Field-scoped partial updates"""

    def test_battery_update_keeps_volume(self, store):
        store.upsert_full(make_device("d1", volume=40))

        store.update_field("d1", {"battery": BatteryInfo(headset_level=42, is_charging=True)})

        device = store.get("d1")
        assert device.battery.headset_level == 42
        assert device.battery.is_charging is True
        assert device.volume.volume_percentage == 40

    def test_volume_update_keeps_battery(self, store):
        store.upsert_full(make_device("d1", battery=77))

        store.update_field("d1", {"volume": {"currentVolume": 9, "maxVolume": 15}})

        device = store.get("d1")
        assert device.volume.volume_percentage == 60
        assert device.battery.headset_level == 77

    def test_unknown_id_is_noop(self, fleet):
        before = fleet.devices()

        result = fleet.update_field("ghost", {"battery": {"headsetLevel": 10}})

        assert result is None
        assert len(fleet) == 3
        assert fleet.devices() == before
        assert "ghost" not in fleet

    def test_rename_and_clear_name(self, store):
        store.upsert_full(make_device("d1"))

        store.update_field("d1", {"custom_name": "Front desk"})
        assert store.get("d1").info.custom_name == "Front desk"

        store.update_field("d1", {"custom_name": None})
        assert store.get("d1").info.custom_name is None

    def test_malformed_fields_are_skipped(self, store):
        store.upsert_full(make_device("d1", battery=30))

        device = store.update_field("d1", {
            "battery": {"headsetLevel": 250},
            "running_app": "com.arcade.racer",
            "volume": "loud",
            "not_a_field": 1,
        })

        assert device.battery.headset_level == 30
        assert device.volume is None
        assert device.running_app == "com.arcade.racer"

    def test_history_is_bounded_and_ordered(self, store):
        store.upsert_full(make_device("d1"))

        for index in range(8):
            store.update_field("d1", {"history_append": CommandResult(
                command_type="Ping", success=True, message=f"run {index}")})

        history = store.get("d1").command_history
        assert len(history) == store.history_limit
        assert [entry.message for entry in history] == [f"run {i}" for i in range(3, 8)]

    def test_installed_apps_update(self, store):
        store.upsert_full(make_device("d1"))

        store.update_field("d1", {"installed_apps": ["com.a", "com.b"]})

        assert store.get("d1").installed_apps == ["com.a", "com.b"]

    def test_returned_record_is_a_copy(self, store):
        store.upsert_full(make_device("d1"))

        device = store.update_field("d1", {"running_app": "com.a"})
        device.running_app = "changed"

        assert store.get("d1").running_app == "com.a"


class TestSelection:
    """Selection set behaviour"""

    def test_select_unknown_device_is_rejected(self, store):
        assert store.select("ghost") is False
        assert store.selected_ids() == []

    def test_toggle(self, fleet):
        assert fleet.toggle("d1") is True
        assert fleet.is_selected("d1")
        assert fleet.toggle("d1") is False
        assert not fleet.is_selected("d1")

    def test_select_all_respects_active_filter(self, fleet):
        fleet.set_status_filter(StatusFilter.CONNECTED)

        selected = fleet.select_all()

        assert selected == ["d1", "d2"]

    def test_select_all_respects_search_query(self, fleet):
        fleet.set_search_query("lobby")

        assert fleet.select_all() == ["d2"]

    def test_select_all_replaces_previous_selection(self, fleet):
        fleet.select("d3")
        fleet.set_search_query("quest 3")

        assert fleet.select_all() == ["d1"]

    def test_clear_selection(self, fleet):
        fleet.select_all()
        fleet.clear_selection()

        assert fleet.selected_ids() == []

    def test_selected_ids_follow_table_order(self, fleet):
        fleet.select("d3")
        fleet.select("d1")

        assert fleet.selected_ids() == ["d1", "d3"]
        assert [d.device_id for d in fleet.selected_devices()] == ["d1", "d3"]

    def test_selection_stays_subset_of_table(self):
        """Random mutation sequences never leave dangling selection ids"""
        rng = random.Random(1234)
        store = DeviceStore()
        ids = [f"d{i}" for i in range(6)]

        for _ in range(500):
            device_id = rng.choice(ids)
            action = rng.choice(["upsert", "update", "remove", "select", "toggle", "select_all", "replace"])
            if action == "upsert":
                store.upsert_full(make_device(device_id))
            elif action == "update":
                store.update_field(device_id, {"running_app": "com.x"})
            elif action == "remove":
                store.remove(device_id)
            elif action == "select":
                store.select(device_id)
            elif action == "toggle":
                store.toggle(device_id)
            elif action == "select_all":
                store.select_all()
            else:
                store.replace_all([make_device(i) for i in rng.sample(ids, 3)])

            assert set(store.selected_ids()) <= set(store.ids())


class TestFilteredView:
    """Pure projections"""

    @pytest.mark.parametrize("query,expected", [
        ("", ["d1", "d2", "d3"]),
        ("QUEST", ["d1", "d2"]),
        ("pico", ["d3"]),
        ("lob", ["d2"]),
        ("sn-d3", ["d3"]),
        ("nothing", []),
    ])
    def test_query_matches_model_serial_and_name(self, fleet, query, expected):
        view = fleet.filtered_view(query, StatusFilter.ALL)

        assert [d.device_id for d in view] == expected

    def test_status_predicate(self, fleet):
        connected = fleet.filtered_view("", StatusFilter.CONNECTED)
        disconnected = fleet.filtered_view("", StatusFilter.DISCONNECTED)

        assert [d.device_id for d in connected] == ["d1", "d2"]
        assert [d.device_id for d in disconnected] == ["d3"]

    def test_view_does_not_mutate_table(self, fleet):
        before = fleet.devices()

        view = fleet.filtered_view("quest", StatusFilter.ALL)
        view[0].info.model = "changed"
        view.clear()

        assert fleet.devices() == before

    def test_defaults_to_active_filters(self, fleet):
        fleet.set_search_query("pico")

        assert [d.device_id for d in fleet.filtered_view()] == ["d3"]

    def test_visible_devices_applies_sort(self, fleet):
        fleet.toggle_sort("battery")
        fleet.toggle_sort("battery")

        assert [d.device_id for d in fleet.visible_devices()] == ["d1", "d3", "d2"]


def test_connect_update_disconnect_scenario(store):
    """Battery arrives after connect, then the device disconnects while selected"""
    store.upsert_full(make_device("D1"))
    assert store.get("D1").battery is None

    store.update_field("D1", {"battery": BatteryInfo(headset_level=42, is_charging=False)})
    view = store.filtered_view("", StatusFilter.CONNECTED)
    assert [d.device_id for d in view] == ["D1"]
    assert view[0].battery.headset_level == 42

    store.select("D1")
    store.remove("D1")

    assert "D1" not in store
    assert store.selected_ids() == []


def test_volume_percentage_is_derived():
    assert VolumeInfo(current_volume=0, max_volume=0).volume_percentage == 0
    assert VolumeInfo(current_volume=15, max_volume=15).volume_percentage == 100
    assert VolumeInfo(current_volume=5, max_volume=10).volume_percentage == 50
