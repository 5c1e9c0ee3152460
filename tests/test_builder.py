"""Tests for blueprint structures and the payload builder."""

from __future__ import annotations

import pytest

from feedsync.inventory import (
    MeasurementType,
    MetricType,
    Resource,
    ResourceManager,
    ResourceType,
)
from feedsync.sync.blueprint import (
    DataRole,
    EntityKind,
    MetricDataType,
    canonical_path,
    escape_segment,
    extend_path,
    path_element_id,
    unescape_segment,
)
from feedsync.sync.builder import PayloadBuilder


def _builder() -> PayloadBuilder:
    return PayloadBuilder("acme", "feed1")


def _types(snapshot):
    return snapshot.resource_type_manager.get_resource_types_breadth_first()


def test_canonical_path_escapes_segments():
    assert canonical_path("acme", "feed1", EntityKind.RESOURCE_TYPE, "Server") == "/t;acme/f;feed1/rt;Server"
    path = canonical_path("acme", "feed1", EntityKind.METRIC_TYPE, "a/b;c")
    assert path == "/t;acme/f;feed1/mt;a\\/b\\;c"
    assert path_element_id(path) == "a/b;c"


def test_escape_round_trip():
    value = "x\\y/z;w"
    assert unescape_segment(escape_segment(value)) == value


def test_extend_path_from_root():
    first = extend_path("", EntityKind.RESOURCE, "child")
    assert first == "r;child"
    assert extend_path(first, EntityKind.METRIC, "m1") == "r;child/m;m1"


def test_path_element_id_requires_segment():
    with pytest.raises(ValueError):
        path_element_id("/nothing")


def test_metric_types_are_deduplicated(snapshot):
    structures = _builder().build_metric_types(_types(snapshot))

    blueprints = {s.root_blueprint.id: s.root_blueprint for s in structures.values()}
    assert list(blueprints) == ["heap.used", "requests", "server.avail"]
    assert blueprints["heap.used"].data_type is MetricDataType.GAUGE
    assert blueprints["heap.used"].unit == "BYTES"
    assert blueprints["heap.used"].interval == 30
    assert blueprints["requests"].data_type is MetricDataType.COUNTER
    assert blueprints["server.avail"].data_type is MetricDataType.AVAILABILITY
    assert all(len(s) == 1 for s in structures.values())


def test_persisted_metric_types_are_skipped(snapshot):
    for measurement_type in _types(snapshot)[0].measurement_types():
        measurement_type.persisted = True

    structures = _builder().build_metric_types(_types(snapshot))

    assert structures == {}


def test_unknown_measurement_type_is_rejected():
    class Odd(MeasurementType):
        pass

    resource_type = ResourceType(id="T", name="T", metric_types=[Odd(id="odd", name="odd")])

    with pytest.raises(TypeError, match="please report this bug"):
        _builder().build_metric_types([resource_type])


def test_resource_type_structure(snapshot):
    structures = _builder().build_resource_types(_types(snapshot))
    server = [s for s in structures.values() if s.root_blueprint.id == "Server"][0]

    operations = server.root.children_of(EntityKind.OPERATION_TYPE)
    assert [op.blueprint.id for op in operations] == ["Reload", "Shutdown"]
    params = operations[0].children[0].blueprint
    assert params.role is DataRole.PARAMETER_TYPES
    assert params.value == {"admin-only": {"type": "bool", "required": False}}
    assert operations[1].children == ()

    schema = server.get("d;configurationSchema")
    assert schema is not None
    assert schema.blueprint.value == {"hostname": "Hostname"}


def test_resource_type_without_properties_has_no_schema(snapshot):
    structures = _builder().build_resource_types(_types(snapshot))
    deployment = [s for s in structures.values() if s.root_blueprint.id == "Deployment"][0]

    assert deployment.root.children == ()


def test_duplicate_resource_type_ids_build_once():
    first = ResourceType(id="Server", name="Server")
    second = ResourceType(id="Server", name="Server (again)")

    structures = _builder().build_resource_types([first, second])

    assert list(structures) == [first]


def test_resource_tree_structure(snapshot):
    structures = _builder().build_resources(snapshot.resource_manager)
    tree = structures[snapshot.find_resource("server1")]

    paths = [path for path, _ in tree.walk()]
    assert paths == [
        "",
        "d;configuration",
        "m;server1.heap",
        "m;server1.avail",
        "r;app.war",
        "r;app.war/m;app.requests",
    ]
    root = tree.root_blueprint
    assert root.resource_type_path == "/t;acme/f;feed1/rt;Server"
    assert tree.get("d;configuration").blueprint.value == {"hostname": "host1"}
    assert tree.get("m;server1.heap").blueprint.metric_type_path == "/t;acme/f;feed1/mt;heap.used"
    assert len(tree) == 6


def test_resource_without_id_uses_name(snapshot):
    structures = _builder().build_resources(snapshot.resource_manager)
    tree = structures[snapshot.find_resource("Server Two")]

    assert tree.root_blueprint.id == "Server Two"
    assert tree.root_blueprint.to_dict()["resourceTypePath"].endswith("/rt;Server")


def test_fully_persisted_trees_are_skipped(snapshot):
    server1 = snapshot.find_resource("server1")
    for resource in snapshot.resource_manager.get_subtree(server1):
        resource.persisted = True

    structures = _builder().build_resources(snapshot.resource_manager)

    assert list(structures) == [snapshot.find_resource("Server Two")]


def test_partially_persisted_tree_is_rebuilt(snapshot):
    snapshot.find_resource("server1").persisted = True

    structures = _builder().build_resources(snapshot.resource_manager)

    assert snapshot.find_resource("server1") in structures


def test_resource_without_type_is_rejected():
    manager = ResourceManager()
    manager.add_resource(Resource(id="r1", name="r1"))

    with pytest.raises(ValueError):
        _builder().build_resources(manager)


def test_metric_type_blueprint_dict():
    resource_type = ResourceType(id="T", name="T", metric_types=[MetricType(id="cpu", name="CPU", unit="PERCENT")])

    structure = list(_builder().build_metric_types([resource_type]).values())[0]

    assert structure.root_blueprint.to_dict() == {
        "id": "cpu",
        "name": "CPU",
        "metricDataType": "GAUGE",
        "unit": "PERCENT",
        "collectionInterval": 60,
        "properties": {},
    }
