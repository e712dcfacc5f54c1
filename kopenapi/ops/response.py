import enum
import json
import logging
from types import MappingProxyType
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, Union

from kopenapi.errors import DecodeError
from kopenapi.model.api_resource import ApiResource
from kopenapi.model.codec import ObjectCodec
from kopenapi.model.object_model import KubeObject, ListObject
from kopenapi.model.status import Status
from kopenapi.ops.verbs import Verb
from kopenapi.ops.watch import WatchDecoder, WatchStream

T = TypeVar("T")

logger = logging.getLogger("response")


class VariantKind(enum.Enum):
    TYPED = "typed"  # success, body is the documented type
    STATUS = "status"  # success, body is a Status object
    ERROR = "error"  # failure, body is a Status object
    OTHER = "other"  # a status code the operation does not document


class BodyShape(enum.Enum):
    RESOURCE = "resource"
    RESOURCE_OR_STATUS = "resource-or-status"
    LIST = "list"
    LIST_OR_STATUS = "list-or-status"
    STATUS = "status"
    WATCH = "watch"


class VariantSpec:
    def __init__(self, *, status_code: int, tag: str, shape: BodyShape) -> None:
        self.status_code = status_code
        self.tag = tag
        self.shape = shape

    def __repr__(self) -> str:
        return "<%s status_code=%r, tag=%r, shape=%s>" % (
            self.__class__.__name__,
            self.status_code,
            self.tag,
            self.shape.value,
        )

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


class ResponseVariant(Generic[T]):
    """
    The outcome of one operation. `tag` names the documented variant (Ok,
    Created, NotFound, ...) or is "Other" for a status code the operation
    does not document, in which case `value` is the raw body.
    """

    def __init__(
        self, *, tag: str, kind: VariantKind, status_code: int, value: T, raw: bytes
    ) -> None:
        self.tag = tag
        self.kind = kind
        self.status_code = status_code
        self.value = value
        self.raw = raw

    def __repr__(self) -> str:
        return "<%s tag=%r, kind=%s, status_code=%r, value=%r>" % (
            self.__class__.__name__,
            self.tag,
            self.kind.value,
            self.status_code,
            self.value,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResponseVariant):
            return NotImplemented
        return (self.tag, self.kind, self.status_code, self.value) == (
            other.tag,
            other.kind,
            other.status_code,
            other.value,
        )

    @classmethod
    def other(cls, status_code: int, raw: bytes) -> "ResponseVariant[bytes]":
        return cls(  # type: ignore
            tag="Other",
            kind=VariantKind.OTHER,
            status_code=status_code,
            value=raw,
            raw=raw,
        )

    @property
    def is_success(self) -> bool:
        return self.kind in (VariantKind.TYPED, VariantKind.STATUS)

    @property
    def is_error(self) -> bool:
        return self.kind is VariantKind.ERROR

    @property
    def is_other(self) -> bool:
        return self.kind is VariantKind.OTHER


def variants(*specs: VariantSpec) -> Mapping[int, VariantSpec]:
    table: Dict[int, VariantSpec] = {}
    for spec in specs:
        if spec.status_code in table:
            raise ValueError("Status code %s documented twice" % spec.status_code)
        table[spec.status_code] = spec
    return table


def ok(shape: BodyShape) -> VariantSpec:
    return VariantSpec(status_code=200, tag="Ok", shape=shape)


CREATED = VariantSpec(status_code=201, tag="Created", shape=BodyShape.RESOURCE)
UNAUTHORIZED = VariantSpec(status_code=401, tag="Unauthorized", shape=BodyShape.STATUS)
FORBIDDEN = VariantSpec(status_code=403, tag="Forbidden", shape=BodyShape.STATUS)
NOT_FOUND = VariantSpec(status_code=404, tag="NotFound", shape=BodyShape.STATUS)
CONFLICT = VariantSpec(status_code=409, tag="Conflict", shape=BodyShape.STATUS)
GONE = VariantSpec(status_code=410, tag="Gone", shape=BodyShape.STATUS)
INVALID = VariantSpec(status_code=422, tag="Invalid", shape=BodyShape.STATUS)


_documented: Dict[Verb, Mapping[int, VariantSpec]] = {
    Verb.CREATE: variants(
        ok(BodyShape.RESOURCE),
        CREATED,
        VariantSpec(status_code=202, tag="Accepted", shape=BodyShape.RESOURCE),
        UNAUTHORIZED,
        FORBIDDEN,
        CONFLICT,
        INVALID,
    ),
    Verb.READ: variants(ok(BodyShape.RESOURCE), UNAUTHORIZED, FORBIDDEN, NOT_FOUND),
    Verb.REPLACE: variants(
        ok(BodyShape.RESOURCE),
        CREATED,
        UNAUTHORIZED,
        FORBIDDEN,
        NOT_FOUND,
        CONFLICT,
        INVALID,
    ),
    Verb.PATCH: variants(
        ok(BodyShape.RESOURCE), UNAUTHORIZED, FORBIDDEN, NOT_FOUND, CONFLICT, INVALID
    ),
    Verb.DELETE: variants(
        ok(BodyShape.RESOURCE_OR_STATUS),
        VariantSpec(status_code=202, tag="Accepted", shape=BodyShape.RESOURCE_OR_STATUS),
        UNAUTHORIZED,
        FORBIDDEN,
        NOT_FOUND,
    ),
    Verb.DELETE_COLLECTION: variants(
        ok(BodyShape.LIST_OR_STATUS), UNAUTHORIZED, FORBIDDEN
    ),
    Verb.LIST: variants(ok(BodyShape.LIST), UNAUTHORIZED, FORBIDDEN, GONE),
    Verb.WATCH: variants(ok(BodyShape.WATCH), UNAUTHORIZED, FORBIDDEN),
}

# the variations of a verb answer like the verb itself
for verb, same_as in (
    (Verb.LIST_FOR_ALL_NAMESPACES, Verb.LIST),
    (Verb.WATCH_FOR_ALL_NAMESPACES, Verb.WATCH),
    (Verb.READ_STATUS, Verb.READ),
    (Verb.REPLACE_STATUS, Verb.REPLACE),
    (Verb.PATCH_STATUS, Verb.PATCH),
):
    _documented[verb] = _documented[same_as]

DOCUMENTED_VARIANTS: Mapping[Verb, Mapping[int, VariantSpec]] = MappingProxyType(
    _documented
)


def decode_json(body: bytes) -> Any:
    if not body or not body.strip():
        raise DecodeError("Response body is empty", fragment=body)

    try:
        return json.loads(body)
    except ValueError:
        raise DecodeError("Response body is not valid json", fragment=body)


def is_status(dct: Any) -> bool:
    return isinstance(dct, dict) and dct.get("kind") == "Status"


def decode_list(codec: ObjectCodec, resource: ApiResource, dct: Any) -> ListObject:
    if not isinstance(dct, dict):
        raise DecodeError("Expected %s object" % resource.list_kind, fragment=dct)

    kind = dct.get("kind") or resource.list_kind
    if kind != resource.list_kind:
        raise DecodeError("Expected kind %s" % resource.list_kind, fragment=kind, path="kind")

    items = dct.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise DecodeError("Expected items to be an array", fragment=items, path="items")

    api_version = dct.get("apiVersion") or resource.api_version

    decoded = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise DecodeError("Expected object", fragment=item, path=f"items[{i}]")

        # items in a list response usually omit their own apiVersion and kind
        item = dict(item)
        item.setdefault("apiVersion", api_version)
        item.setdefault("kind", resource.kind)

        try:
            decoded.append(codec.decode_resource(resource, item))
        except DecodeError as exc:
            exc.path = f"items[{i}].{exc.path}" if exc.path else f"items[{i}]"
            raise

    metadata = None
    raw_meta = dct.get("metadata")
    if raw_meta is not None:
        metadata = codec.decode(
            "io.k8s.apimachinery.pkg.apis.meta.v1.ListMeta", raw_meta, path="metadata"
        )

    return ListObject(apiVersion=api_version, kind=kind, metadata=metadata, items=decoded)


def parse_response(
    op, codec: ObjectCodec, status_code: int, body: bytes
) -> ResponseVariant:
    """
    Maps a status code and body to the matching variant of `op`, an
    OperationDef from the registry.
    """

    spec = op.variants.get(status_code)
    if spec is None:
        logger.debug(
            "Status %s is not documented for %s - returning Other",
            status_code,
            op.operation_id,
        )
        return ResponseVariant.other(status_code, body)

    resource = op.resource
    value: Union[KubeObject, ListObject, Status, WatchStream]

    if spec.shape is BodyShape.WATCH:
        decoder = WatchDecoder(codec=codec, resource=resource)
        stream = WatchStream(decoder=decoder, chunks=[body])
        return ResponseVariant(
            tag=spec.tag,
            kind=VariantKind.TYPED,
            status_code=status_code,
            value=stream,
            raw=body,
        )

    logger.debug("Parsing %s response [status: %s] as json", op.operation_id, status_code)
    dct = decode_json(body)

    if spec.shape is BodyShape.STATUS:
        value = Status.from_dict(dct)
        kind = VariantKind.ERROR if spec.is_error else VariantKind.STATUS

    elif spec.shape in (BodyShape.RESOURCE_OR_STATUS, BodyShape.LIST_OR_STATUS) and is_status(dct):
        value = Status.from_dict(dct)
        kind = VariantKind.STATUS

    elif spec.shape in (BodyShape.RESOURCE, BodyShape.RESOURCE_OR_STATUS):
        value = codec.decode_resource(resource, dct)
        kind = VariantKind.TYPED

    elif spec.shape in (BodyShape.LIST, BodyShape.LIST_OR_STATUS):
        value = decode_list(codec, resource, dct)
        kind = VariantKind.TYPED

    else:
        raise AssertionError("Unhandled body shape: %s" % spec.shape)

    return ResponseVariant(
        tag=spec.tag, kind=kind, status_code=status_code, value=value, raw=body
    )


def documented_variants(verb: Verb) -> Mapping[int, VariantSpec]:
    return DOCUMENTED_VARIANTS[verb]


def status_of(variant: ResponseVariant) -> Optional[Status]:
    if isinstance(variant.value, Status):
        return variant.value
    return None
