import json

import pytest

from conftest import make_pod
from kopenapi.model.catalog import PodKind
from kopenapi.model.types import FieldType
from kopenapi.ops.registry import Registry
from kopenapi.ops.verbs import Verb
from kopenapi.swagger import SwaggerLoader

META = "io.k8s.apimachinery.pkg.apis.meta.v1"
CORE = "io.k8s.api.core.v1"

POD_GVK = [{"group": "", "kind": "Pod", "version": "v1"}]
PC_GVK = [{"group": "scheduling.k8s.io", "kind": "PriorityClass", "version": "v1"}]


def op(action, gvk=POD_GVK):
    return {"x-kubernetes-action": action, "x-kubernetes-group-version-kind": gvk[0]}


DOCUMENT = {
    "swagger": "2.0",
    "definitions": {
        f"{META}.Time": {"type": "string", "format": "date-time"},
        f"{META}.ObjectMeta": {
            "properties": {
                "name": {"type": "string"},
                "namespace": {"type": "string"},
                "resourceVersion": {"type": "string"},
                "creationTimestamp": {"$ref": f"#/definitions/{META}.Time"},
                "labels": {"type": "object", "additionalProperties": {"type": "string"}},
                "finalizers": {"type": "array", "items": {"type": "string"}},
            }
        },
        "io.k8s.apimachinery.pkg.util.intstr.IntOrString": {
            "type": "string",
            "format": "int-or-string",
        },
        f"{CORE}.Pod": {
            "properties": {
                "apiVersion": {"type": "string"},
                "kind": {"type": "string"},
                "metadata": {"$ref": f"#/definitions/{META}.ObjectMeta"},
                "spec": {"$ref": f"#/definitions/{CORE}.PodSpec"},
                "status": {"type": "object"},
            },
            "x-kubernetes-group-version-kind": POD_GVK,
        },
        f"{CORE}.PodSpec": {
            "required": ["containers"],
            "properties": {
                "containers": {
                    "type": "array",
                    "items": {"$ref": f"#/definitions/{CORE}.Container"},
                },
                "priority": {"type": "integer", "format": "int32"},
                "hostNetwork": {"type": "boolean"},
                "restartPolicy": {"type": "string"},
            },
        },
        f"{CORE}.Container": {
            "required": ["name"],
            "properties": {
                "name": {"type": "string"},
                "image": {"type": "string"},
                "ports": {"type": "array", "items": {"type": "object"}},
                "port": {"$ref": "#/definitions/io.k8s.apimachinery.pkg.util.intstr.IntOrString"},
                "cpu": {"type": "number"},
            },
        },
        "io.k8s.api.scheduling.v1.PriorityClass": {
            "required": ["value"],
            "properties": {
                "apiVersion": {"type": "string"},
                "kind": {"type": "string"},
                "metadata": {"$ref": f"#/definitions/{META}.ObjectMeta"},
                "value": {"type": "integer"},
            },
            "x-kubernetes-group-version-kind": PC_GVK,
        },
    },
    "paths": {
        "/api/v1/": {"get": {"operationId": "getCoreV1APIResources"}},
        "/api/v1/namespaces/{namespace}/pods": {
            "get": op("list"),
            "post": op("post"),
            "delete": op("deletecollection"),
        },
        "/api/v1/namespaces/{namespace}/pods/{name}": {
            "get": op("get"),
            "put": op("put"),
            "patch": op("patch"),
            "delete": op("delete"),
        },
        "/api/v1/namespaces/{namespace}/pods/{name}/status": {
            "get": op("get"),
            "put": op("put"),
            "patch": op("patch"),
        },
        "/api/v1/namespaces/{namespace}/pods/{name}/log": {"get": op("connect")},
        "/api/v1/pods": {"get": op("list")},
        "/api/v1/watch/namespaces/{namespace}/pods": {"get": op("watchlist")},
        "/api/v1/watch/pods": {"get": op("watchlist")},
        "/apis/scheduling.k8s.io/v1/priorityclasses": {
            "get": op("list", PC_GVK),
            "post": op("post", PC_GVK),
        },
        "/apis/scheduling.k8s.io/v1/priorityclasses/{name}": {
            "get": op("get", PC_GVK),
            "delete": op("delete", PC_GVK),
        },
    },
}


@pytest.fixture
def loaded():
    return SwaggerLoader().load_document(DOCUMENT)


def test_resources_are_derived_from_paths(loaded):
    pod = loaded.lookup("", "v1", "Pod")

    assert pod
    assert pod.name == "pods"
    assert pod.namespaced is True
    assert pod.definition == f"{CORE}.Pod"
    assert pod.subresources == ("status",)
    assert pod.verbs == (
        "create",
        "delete",
        "deletecollection",
        "get",
        "list",
        "patch",
        "update",
        "watch",
    )

    priority_class = loaded.lookup("scheduling.k8s.io", "v1", "PriorityClass")
    assert priority_class.namespaced is False
    assert priority_class.verbs == ("create", "delete", "get", "list")


def test_fields(loaded):
    meta = loaded.definition(f"{META}.ObjectMeta")
    assert meta.fields["creationTimestamp"].type is FieldType.DATE_TIME
    assert meta.fields["labels"].type is FieldType.MAP
    assert meta.fields["labels"].items.type is FieldType.STRING
    assert meta.fields["finalizers"].describe_type() == "[string]"

    spec = loaded.definition(f"{CORE}.PodSpec")
    assert spec.required_fields == ["containers"]
    assert spec.fields["containers"].items.ref == f"{CORE}.Container"
    assert spec.fields["priority"].type is FieldType.INTEGER
    assert spec.fields["hostNetwork"].type is FieldType.BOOLEAN

    container = loaded.definition(f"{CORE}.Container")
    assert container.fields["port"].type is FieldType.ANY
    assert container.fields["cpu"].type is FieldType.NUMBER
    assert container.fields["ports"].items.type is FieldType.ANY


def test_scalar_definitions_are_inlined(loaded):
    assert not loaded.definition(f"{META}.Time")


def test_paths_match_the_builtin_catalog(loaded):
    builtin = Registry.default()
    derived = Registry(loaded)
    pod = loaded.lookup("", "v1", "Pod")

    for verb in Verb:
        expected = builtin.resolve(PodKind, verb)
        handle = derived.resolve(pod, verb)

        assert handle, verb
        assert handle.op.path_template == expected.op.path_template
        assert handle.op.operation_id == expected.op.operation_id


def test_unsupported_verbs_follow_the_document(loaded):
    registry = Registry(loaded)
    priority_class = loaded.lookup("scheduling.k8s.io", "v1", "PriorityClass")

    assert registry.resolve(priority_class, Verb.READ)
    assert not registry.resolve(priority_class, Verb.WATCH)
    assert not registry.resolve(priority_class, Verb.REPLACE)


def test_decode_with_loaded_schema(loaded):
    pod = loaded.lookup("", "v1", "Pod")

    obj = loaded.codec.decode_resource(pod, make_pod())

    assert obj.spec.containers[0].name == "nginx"
    # not declared in the small document
    assert obj.spec.extra == {}
    assert obj.spec.containers[0].ports == [{"containerPort": 80, "protocol": "TCP"}]


def test_load_file(tmp_path):
    filepath = tmp_path / "swagger.json"
    filepath.write_text(json.dumps(DOCUMENT))

    schema = SwaggerLoader().load_file(str(filepath))

    assert schema.lookup("", "v1", "Pod")


def test_not_a_swagger_document():
    with pytest.raises(ValueError):
        SwaggerLoader().load_document({"openapi": "3.0.0"})
