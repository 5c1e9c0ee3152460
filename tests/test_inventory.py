"""Tests for the graph provider and snapshot loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from feedsync.inventory import (
    AvailType,
    MetricKind,
    Resource,
    ResourceManager,
    ResourceType,
    ResourceTypeManager,
    SnapshotError,
    inventory_id,
    load_snapshot,
    parse_snapshot,
)


def _resource(name: str, parent: Resource = None) -> Resource:
    return Resource(id=name, name=name, parent=parent)


def test_inventory_id_falls_back_to_name():
    assert inventory_id(Resource(id="", name="fallback")) == "fallback"
    assert inventory_id(Resource(id="rid", name="fallback")) == "rid"


def test_resource_manager_tracks_tree_in_order():
    manager = ResourceManager()
    root = _resource("root")
    a = _resource("a", root)
    b = _resource("b", root)
    a1 = _resource("a1", a)
    for resource in (root, a, b, a1):
        manager.add_resource(resource)

    assert manager.get_root_resources() == [root]
    assert manager.get_children(root) == [a, b]
    assert manager.get_subtree(root) == [root, a, b, a1]
    assert manager.size() == 4
    assert manager.size(a) == 2


def test_resource_manager_rejects_unmanaged_parent():
    manager = ResourceManager()

    with pytest.raises(ValueError):
        manager.add_resource(_resource("orphan", _resource("ghost")))


def test_remove_resource_returns_subtree():
    manager = ResourceManager()
    root = _resource("root")
    child = _resource("child", root)
    grandchild = _resource("grandchild", child)
    other = _resource("other")
    for resource in (root, child, grandchild, other):
        manager.add_resource(resource)

    removed = manager.remove_resource(child)

    assert removed == [child, grandchild]
    assert manager.get_children(root) == []
    assert manager.get_resources_breadth_first() == [root, other]
    assert manager.remove_resource(child) == []


def test_resources_with_equal_ids_stay_distinct():
    manager = ResourceManager()
    first = _resource("same")
    second = _resource("same")
    manager.add_resource(first)
    manager.add_resource(second)

    assert manager.get_root_resources() == [first, second]


def test_resource_type_manager_keys_by_inventory_id():
    manager = ResourceTypeManager()
    manager.add_resource_type(ResourceType(id="", name="Server"))

    assert manager.get_resource_type("Server").name == "Server"
    assert manager.get_resource_type("missing") is None


def test_parse_snapshot_builds_graph(snapshot):
    assert snapshot.endpoint.name == "local"
    assert snapshot.endpoint.tenant_id == "acme"
    assert snapshot.resource_manager.size() == 3

    server = snapshot.resource_type_manager.get_resource_type("Server")
    assert [m.id for m in server.metric_types] == ["heap.used", "requests"]
    assert server.metric_types[1].metric_kind is MetricKind.COUNTER
    assert isinstance(server.avail_types[0], AvailType)
    assert server.operations[0].parameters[0].required is False

    server1 = snapshot.find_resource("server1")
    assert server1.config_properties[0].name == "hostname"
    assert server1.config_properties[0].value == "host1"
    app = snapshot.find_resource("app.war")
    assert app.parent is server1
    assert app.metrics[0].type is server.metric_types[1]


def test_snapshot_shares_measurement_types_between_resource_types(snapshot):
    server = snapshot.resource_type_manager.get_resource_type("Server")
    deployment = snapshot.resource_type_manager.get_resource_type("Deployment")

    assert deployment.metric_types[0] is server.metric_types[1]


def test_snapshot_rejects_unknown_resource_type(snapshot_data):
    snapshot_data["resources"][0]["type"] = "Nope"

    with pytest.raises(SnapshotError, match="unknown type 'Nope'"):
        parse_snapshot(snapshot_data)


def test_snapshot_rejects_unknown_metric_kind(snapshot_data):
    snapshot_data["metric_types"][0]["kind"] = "histogram"

    with pytest.raises(SnapshotError):
        parse_snapshot(snapshot_data)


def test_snapshot_rejects_avail_type_used_as_metric(snapshot_data):
    snapshot_data["resource_types"][1]["metric_types"] = ["server.avail"]

    with pytest.raises(SnapshotError):
        parse_snapshot(snapshot_data)


@pytest.mark.parametrize(
    "corrupt",
    [
        lambda data: data["resources"][0].update(children=["oops"]),
        lambda data: data["resources"][0].update(metrics="server1.heap"),
        lambda data: data["resources"][0].update(avails=[None]),
        lambda data: data["resources"][0].update(configuration=["hostname"]),
        lambda data: data["metric_types"][0].update(interval="often"),
        lambda data: data["avail_types"][0].update(interval=None),
        lambda data: data["resource_types"][0]["operations"][0].update(parameters=[{"type": "int"}]),
        lambda data: data["resource_types"][0]["operations"][0].update(parameters=["admin-only"]),
        lambda data: data.update(endpoint="local"),
    ],
)
def test_snapshot_rejects_malformed_entries(snapshot_data, corrupt):
    corrupt(snapshot_data)

    with pytest.raises(SnapshotError):
        parse_snapshot(snapshot_data)


def test_load_snapshot_from_file(tmp_path: Path, snapshot_data):
    path = tmp_path / "snapshot.yml"
    path.write_text(yaml.safe_dump(snapshot_data), encoding="utf-8")

    snapshot = load_snapshot(path)

    assert snapshot.find_resource("Server Two") is not None


def test_load_snapshot_reports_bad_files(tmp_path: Path):
    missing = tmp_path / "missing.yml"
    listing = tmp_path / "list.yml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    broken = tmp_path / "broken.yml"
    broken.write_text("resources: [\n", encoding="utf-8")

    for path in (missing, listing, broken):
        with pytest.raises(SnapshotError):
            load_snapshot(path)


def test_to_event_carries_graph(snapshot):
    event = snapshot.to_event()

    assert event.resource_manager is snapshot.resource_manager
    assert event.endpoint is snapshot.endpoint
