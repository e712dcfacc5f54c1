import pytest

from kopenapi.model.catalog import (
    ConfigMapKind,
    DeploymentKind,
    NamespaceKind,
    PodKind,
    PriorityClassKind,
)
from kopenapi.ops.params import DeleteOptional, ListOptional, WatchOptional
from kopenapi.ops.registry import OperationHandle, Registry, Unsupported
from kopenapi.ops.verbs import Verb


def test_pod_supports_every_verb(registry):
    for verb in Verb:
        assert isinstance(registry.resolve(PodKind, verb), OperationHandle), verb


def test_cluster_scoped_has_no_all_namespaces_variant(registry):
    result = registry.resolve(PriorityClassKind, Verb.LIST_FOR_ALL_NAMESPACES)

    assert not result
    assert isinstance(result, Unsupported)
    assert result.reason == "PriorityClass is not namespaced"


def test_missing_discovery_verb(registry):
    result = registry.resolve(NamespaceKind, Verb.DELETE_COLLECTION)

    assert not result
    assert "deletecollection" in result.reason


def test_no_status_subresource(registry):
    assert not registry.resolve(ConfigMapKind, Verb.READ_STATUS)
    assert registry.resolve(DeploymentKind, Verb.READ_STATUS)


@pytest.mark.parametrize(
    "resource, verb, operation_id",
    [
        (PodKind, Verb.READ, "readCoreV1NamespacedPod"),
        (PodKind, Verb.READ_STATUS, "readCoreV1NamespacedPodStatus"),
        (PodKind, Verb.LIST_FOR_ALL_NAMESPACES, "listCoreV1PodForAllNamespaces"),
        (PodKind, Verb.DELETE_COLLECTION, "deleteCoreV1CollectionNamespacedPod"),
        (PodKind, Verb.WATCH, "watchCoreV1NamespacedPod"),
        (DeploymentKind, Verb.PATCH, "patchAppsV1NamespacedDeployment"),
        (PriorityClassKind, Verb.LIST, "listSchedulingV1PriorityClass"),
        (NamespaceKind, Verb.CREATE, "createCoreV1Namespace"),
    ],
)
def test_operation_ids(registry, resource, verb, operation_id):
    handle = registry.resolve(resource, verb)

    assert handle.op.operation_id == operation_id
    assert registry.find_operation(operation_id) is handle


def test_operation_ids_are_unique(registry):
    ids = [handle.op.operation_id for handle in registry.operations()]

    assert len(ids) == len(set(ids))
    assert len(ids) == len(registry)


def test_operations_for_one_resource(registry):
    verbs = {handle.verb for handle in registry.operations(NamespaceKind)}

    assert Verb.DELETE_COLLECTION not in verbs
    assert Verb.LIST_FOR_ALL_NAMESPACES not in verbs
    assert Verb.READ_STATUS in verbs


def test_optional_parameters_describe_their_effect(registry):
    params = registry.resolve(PodKind, Verb.WATCH).optional_parameters()

    names = [param.wire_name for param in params]
    assert "allowWatchBookmarks" in names
    assert "limit" not in names
    assert all(param.effect for param in params)


def test_delete_collection_optional_parameters(registry):
    handle = registry.resolve(PodKind, Verb.DELETE_COLLECTION)

    names = [param.wire_name for param in handle.optional_parameters()]
    assert "labelSelector" in names
    assert "propagationPolicy" in names
    assert handle.op.optional_cls is ListOptional
    assert handle.op.takes_delete_optional


def test_optional_classes(registry):
    assert registry.resolve(PodKind, Verb.WATCH).op.optional_cls is WatchOptional
    assert registry.resolve(PodKind, Verb.DELETE).op.optional_cls is DeleteOptional


def test_documented_codes(registry):
    assert sorted(registry.resolve(PodKind, Verb.READ).op.variants) == [200, 401, 403, 404]
    assert 201 in registry.resolve(PodKind, Verb.CREATE).op.variants
    assert 410 in registry.resolve(PodKind, Verb.LIST_FOR_ALL_NAMESPACES).op.variants


def test_descriptions(registry):
    assert registry.resolve(PodKind, Verb.LIST).op.description == "list objects of kind Pod"


def test_default_registry_is_shared():
    assert Registry.default() is Registry.default()
    assert len(Registry.default()) > 0
