import copy
from typing import Any, Dict

import pytest

from kopenapi.model.codec import ObjectCodec
from kopenapi.ops.registry import Registry
from kopenapi.schema import Schema

POD: Dict[str, Any] = {
    "apiVersion": "v1",
    "kind": "Pod",
    "metadata": {
        "name": "nginx",
        "namespace": "default",
        "resourceVersion": "1001",
        "labels": {"app": "nginx"},
        "creationTimestamp": "2021-03-01T12:30:00Z",
    },
    "spec": {
        "containers": [
            {
                "name": "nginx",
                "image": "nginx:1.19",
                "ports": [{"containerPort": 80, "protocol": "TCP"}],
            }
        ],
        "restartPolicy": "Always",
    },
    "status": {"phase": "Running", "podIP": "10.0.0.12"},
}


def make_pod(name: str = "nginx", resource_version: str = "1001") -> Dict[str, Any]:
    pod = copy.deepcopy(POD)
    pod["metadata"]["name"] = name
    pod["metadata"]["resourceVersion"] = resource_version
    return pod


def make_status(code: int, reason: str, message: str) -> Dict[str, Any]:
    return {
        "kind": "Status",
        "apiVersion": "v1",
        "metadata": {},
        "status": "Failure",
        "message": message,
        "reason": reason,
        "code": code,
    }


@pytest.fixture
def schema() -> Schema:
    return Schema.default()


@pytest.fixture
def codec(schema: Schema) -> ObjectCodec:
    return schema.codec


@pytest.fixture
def registry(schema: Schema) -> Registry:
    return Registry(schema)
