from datetime import datetime, timezone

import pytest

from conftest import make_pod
from kopenapi.errors import DecodeError, InvalidParameter
from kopenapi.model.catalog import ConfigMapKind, DeploymentKind, PodKind
from kopenapi.model.object_model import KubeObject


def test_decode_pod(codec):
    pod = codec.decode_resource(PodKind, make_pod())

    assert isinstance(pod, KubeObject)
    assert pod.kind == "Pod"
    assert pod.metadata.name == "nginx"
    assert pod.metadata.labels == {"app": "nginx"}
    assert pod.metadata.creationTimestamp == datetime(2021, 3, 1, 12, 30, tzinfo=timezone.utc)
    assert pod.spec.containers[0].image == "nginx:1.19"
    assert pod.spec.containers[0].ports[0].containerPort == 80
    assert pod.status.phase == "Running"


def test_absent_fields_read_as_none(codec):
    pod = codec.decode_resource(PodKind, make_pod())

    assert pod.spec.nodeName is None
    assert pod.metadata.deletionTimestamp is None


def test_undeclared_fields_are_kept_as_extra(codec):
    raw = make_pod()
    raw["spec"]["shareProcessNamespace"] = True

    pod = codec.decode_resource(PodKind, raw)

    assert pod.spec.extra == {"shareProcessNamespace": True}
    assert codec.encode(pod)["spec"]["shareProcessNamespace"] is True


def test_explicit_nulls_are_skipped(codec):
    raw = make_pod()
    raw["spec"]["nodeName"] = None

    pod = codec.decode_resource(PodKind, raw)

    assert "nodeName" not in pod.spec.present_fields()


def test_decode_then_encode_gives_back_the_document(codec):
    raw = make_pod()

    assert codec.encode(codec.decode_resource(PodKind, raw)) == raw


def test_encode_omits_unset_fields(codec):
    type_def = codec.get_definition("io.k8s.api.core.v1.ConfigMap")
    config_map = KubeObject(type_def=type_def, values={"data": {"a": "1"}})

    body = codec.encode_resource(ConfigMapKind, config_map)

    assert body == {"apiVersion": "v1", "kind": "ConfigMap", "data": {"a": "1"}}


def test_encode_strips_nulls_from_dicts(codec):
    body = codec.encode_resource(
        ConfigMapKind, {"metadata": {"name": "cfg", "namespace": None}, "data": None}
    )

    assert body == {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cfg"}}


def test_encode_formats_dates(codec):
    type_def = codec.get_definition("io.k8s.apimachinery.pkg.apis.meta.v1.ObjectMeta")
    meta = KubeObject(
        type_def=type_def,
        values={"creationTimestamp": datetime(2021, 3, 1, 12, 30, tzinfo=timezone.utc)},
    )

    assert codec.encode(meta) == {"creationTimestamp": "2021-03-01T12:30:00Z"}


def test_naive_timestamp_survives_a_round_trip(codec):
    pod = codec.decode_resource(PodKind, make_pod())
    pod.metadata.set("creationTimestamp", datetime(2021, 3, 1, 12, 30))

    again = codec.decode_resource(PodKind, codec.encode(pod))

    assert again == pod
    assert again.metadata.creationTimestamp == datetime(2021, 3, 1, 12, 30, tzinfo=timezone.utc)


def test_encode_rejects_the_wrong_kind(codec):
    pod = codec.decode_resource(PodKind, make_pod())

    with pytest.raises(InvalidParameter):
        codec.encode_resource(DeploymentKind, pod)

    with pytest.raises(InvalidParameter):
        codec.encode_resource(PodKind, [make_pod()])


def test_missing_required_field_is_located(codec):
    raw = make_pod()
    del raw["spec"]["containers"][0]["name"]

    with pytest.raises(DecodeError) as info:
        codec.decode_resource(PodKind, raw)

    assert info.value.path == "spec.containers[0].name"


def test_wrong_type_is_located(codec):
    raw = make_pod()
    raw["spec"]["containers"][0]["ports"][0]["containerPort"] = "80"

    with pytest.raises(DecodeError) as info:
        codec.decode_resource(PodKind, raw)

    assert info.value.path == "spec.containers[0].ports[0].containerPort"
    assert info.value.fragment == "80"


def test_bool_is_not_an_integer(codec):
    raw = make_pod()
    raw["spec"]["containers"][0]["ports"][0]["containerPort"] = True

    with pytest.raises(DecodeError):
        codec.decode_resource(PodKind, raw)


def test_invalid_date(codec):
    raw = make_pod()
    raw["metadata"]["creationTimestamp"] = "yesterday-ish"

    with pytest.raises(DecodeError) as info:
        codec.decode_resource(PodKind, raw)

    assert info.value.path == "metadata.creationTimestamp"


def test_kind_mismatch(codec):
    raw = make_pod()
    raw["kind"] = "Deployment"

    with pytest.raises(DecodeError) as info:
        codec.decode_resource(PodKind, raw)

    assert info.value.path == "kind"


def test_partial_decode_skips_required_checks(codec):
    raw = {"kind": "Pod", "apiVersion": "v1", "metadata": {"resourceVersion": "7"}, "spec": {}}

    pod = codec.decode_resource(PodKind, raw, partial=True)

    assert pod.metadata.resourceVersion == "7"
    with pytest.raises(DecodeError):
        codec.decode_resource(PodKind, raw)


def test_object_accessors(codec):
    pod = codec.decode_resource(PodKind, make_pod())

    pod.spec.set("nodeName", "node-1")
    assert pod.spec.get("nodeName") == "node-1"

    pod.spec.set("nodeName", None)
    assert pod.spec.nodeName is None

    with pytest.raises(KeyError):
        pod.spec.get("bogus")
    with pytest.raises(AttributeError):
        pod.spec.bogus
