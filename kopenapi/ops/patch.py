import enum
import json
from typing import Any, List, Union

from kopenapi.errors import InvalidBody
from kopenapi.model.types import RawObject


class PatchType(enum.Enum):
    JSON = "application/json-patch+json"
    MERGE = "application/merge-patch+json"
    STRATEGIC_MERGE = "application/strategic-merge-patch+json"
    APPLY = "application/apply-patch+yaml"


class Patch:
    """
    The body of a patch operation. JSON patches are a list of operations,
    every other type is a (partial) object. Nulls are kept as they are since
    in a merge patch they mean "remove this key".
    """

    def __init__(self, *, type: PatchType, body: Union[RawObject, List[Any]]) -> None:
        if type is PatchType.JSON and not isinstance(body, list):
            raise InvalidBody("A JSON patch must be a list of operations")
        if type is not PatchType.JSON and not isinstance(body, dict):
            raise InvalidBody("A %s patch must be an object" % type.name.lower())

        self.type = type
        self.body = body

    def __repr__(self) -> str:
        return "<%s type=%s, body=%r>" % (
            self.__class__.__name__,
            self.type.name,
            self.body,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Patch):
            return NotImplemented
        return (self.type, self.body) == (other.type, other.body)

    @property
    def content_type(self) -> str:
        return self.type.value

    def to_bytes(self) -> bytes:
        # json is a subset of yaml so apply patches are sent as json too
        return json.dumps(self.body, separators=(",", ":")).encode()

    @classmethod
    def merge(cls, body: RawObject) -> "Patch":
        return cls(type=PatchType.MERGE, body=body)

    @classmethod
    def strategic_merge(cls, body: RawObject) -> "Patch":
        return cls(type=PatchType.STRATEGIC_MERGE, body=body)

    @classmethod
    def json_patch(cls, operations: List[Any]) -> "Patch":
        return cls(type=PatchType.JSON, body=operations)

    @classmethod
    def apply(cls, body: RawObject) -> "Patch":
        return cls(type=PatchType.APPLY, body=body)
