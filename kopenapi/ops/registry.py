import enum
import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from kopenapi.model.api_resource import ApiResource
from kopenapi.model.codec import ObjectCodec
from kopenapi.ops.params import (
    ClientOperationParams,
    CreateOptional,
    DeleteOptional,
    ListOptional,
    ParameterDef,
    PatchOptional,
    ReadOptional,
    ReplaceOptional,
    WatchOptional,
)
from kopenapi.ops.request import BodyKind, RequestDescriptor, build_request, template_parameters
from kopenapi.ops.response import ResponseVariant, VariantSpec, documented_variants, parse_response
from kopenapi.ops.verbs import Verb
from kopenapi.ops.watch import WatchDecoder, WatchStream
from kopenapi.schema import Schema


class Scope(enum.Enum):
    COLLECTION = "collection"
    ITEM = "item"
    STATUS = "status"
    ALL_NAMESPACES = "all-namespaces"


class VerbInfo:
    def __init__(
        self,
        *,
        method: str,
        scope: Scope,
        optional_cls: Type[ClientOperationParams],
        body_kind: BodyKind,
        action: str,
        summary: str,
    ) -> None:
        self.method = method
        self.scope = scope
        self.optional_cls = optional_cls
        self.body_kind = body_kind
        self.action = action
        self.summary = summary


VERBS: Mapping[Verb, VerbInfo] = MappingProxyType(
    {
        Verb.CREATE: VerbInfo(
            method="POST",
            scope=Scope.COLLECTION,
            optional_cls=CreateOptional,
            body_kind=BodyKind.RESOURCE,
            action="create",
            summary="create a %s",
        ),
        Verb.READ: VerbInfo(
            method="GET",
            scope=Scope.ITEM,
            optional_cls=ReadOptional,
            body_kind=BodyKind.NONE,
            action="read",
            summary="read the specified %s",
        ),
        Verb.REPLACE: VerbInfo(
            method="PUT",
            scope=Scope.ITEM,
            optional_cls=ReplaceOptional,
            body_kind=BodyKind.RESOURCE,
            action="replace",
            summary="replace the specified %s",
        ),
        Verb.PATCH: VerbInfo(
            method="PATCH",
            scope=Scope.ITEM,
            optional_cls=PatchOptional,
            body_kind=BodyKind.PATCH,
            action="patch",
            summary="partially update the specified %s",
        ),
        Verb.DELETE: VerbInfo(
            method="DELETE",
            scope=Scope.ITEM,
            optional_cls=DeleteOptional,
            body_kind=BodyKind.DELETE_OPTIONS,
            action="delete",
            summary="delete a %s",
        ),
        Verb.DELETE_COLLECTION: VerbInfo(
            method="DELETE",
            scope=Scope.COLLECTION,
            optional_cls=ListOptional,
            body_kind=BodyKind.DELETE_OPTIONS,
            action="deleteCollection",
            summary="delete collection of %s",
        ),
        Verb.LIST: VerbInfo(
            method="GET",
            scope=Scope.COLLECTION,
            optional_cls=ListOptional,
            body_kind=BodyKind.NONE,
            action="list",
            summary="list objects of kind %s",
        ),
        Verb.LIST_FOR_ALL_NAMESPACES: VerbInfo(
            method="GET",
            scope=Scope.ALL_NAMESPACES,
            optional_cls=ListOptional,
            body_kind=BodyKind.NONE,
            action="list",
            summary="list objects of kind %s in all namespaces",
        ),
        Verb.WATCH: VerbInfo(
            method="GET",
            scope=Scope.COLLECTION,
            optional_cls=WatchOptional,
            body_kind=BodyKind.NONE,
            action="watch",
            summary="watch objects of kind %s for changes",
        ),
        Verb.WATCH_FOR_ALL_NAMESPACES: VerbInfo(
            method="GET",
            scope=Scope.ALL_NAMESPACES,
            optional_cls=WatchOptional,
            body_kind=BodyKind.NONE,
            action="watch",
            summary="watch objects of kind %s in all namespaces for changes",
        ),
        Verb.READ_STATUS: VerbInfo(
            method="GET",
            scope=Scope.STATUS,
            optional_cls=ReadOptional,
            body_kind=BodyKind.NONE,
            action="read",
            summary="read status of the specified %s",
        ),
        Verb.REPLACE_STATUS: VerbInfo(
            method="PUT",
            scope=Scope.STATUS,
            optional_cls=ReplaceOptional,
            body_kind=BodyKind.RESOURCE,
            action="replace",
            summary="replace status of the specified %s",
        ),
        Verb.PATCH_STATUS: VerbInfo(
            method="PATCH",
            scope=Scope.STATUS,
            optional_cls=PatchOptional,
            body_kind=BodyKind.PATCH,
            action="patch",
            summary="partially update status of the specified %s",
        ),
    }
)


def path_template(resource: ApiResource, scope: Scope) -> str:
    prefix = resource.group.endpoint

    if scope is Scope.ALL_NAMESPACES or not resource.namespaced:
        collection = f"{prefix}/{resource.name}"
    else:
        collection = f"{prefix}/namespaces/{{namespace}}/{resource.name}"

    if scope in (Scope.COLLECTION, Scope.ALL_NAMESPACES):
        return collection

    item = f"{collection}/{{name}}"
    if scope is Scope.STATUS:
        return f"{item}/status"
    return item


def title(value: str) -> str:
    return value[:1].upper() + value[1:]


def operation_id(resource: ApiResource, verb: Verb) -> str:
    # the same ids the API server's openapi document uses, eg.
    # readCoreV1NamespacedPodStatus, listSchedulingV1PriorityClass
    info = VERBS[verb]
    group = resource.group

    group_part = "Core"
    if group.name:
        # scheduling.k8s.io -> Scheduling, apps -> Apps
        group_part = "".join(
            title(part) for part in group.name.replace(".k8s.io", "").split(".")
        )

    action = info.action
    collection = ""
    if verb is Verb.DELETE_COLLECTION:
        action = "delete"
        collection = "Collection"

    namespaced = "Namespaced" if resource.namespaced and info.scope is not Scope.ALL_NAMESPACES else ""

    suffix = ""
    if info.scope is Scope.ALL_NAMESPACES:
        suffix = "ForAllNamespaces"
    elif info.scope is Scope.STATUS:
        suffix = "Status"

    return "%s%s%s%s%s%s%s" % (
        action,
        group_part,
        title(group.version),
        collection,
        namespaced,
        resource.kind,
        suffix,
    )


class OperationDef:
    """One verb on one resource. Static, built once by the Registry."""

    def __init__(self, *, resource: ApiResource, verb: Verb) -> None:
        info = VERBS[verb]

        self.resource = resource
        self.verb = verb
        self.method = info.method
        self.path_template = path_template(resource, info.scope)
        self.path_parameters: Sequence[str] = tuple(template_parameters(self.path_template))
        self.optional_cls = info.optional_cls
        self.body_kind = info.body_kind
        self.takes_delete_optional = verb is Verb.DELETE_COLLECTION
        self.variants: Mapping[int, VariantSpec] = documented_variants(verb)
        self.operation_id = operation_id(resource, verb)
        self.description = info.summary % resource.kind

    def __repr__(self) -> str:
        return "<%s %s %s %s>" % (
            self.__class__.__name__,
            self.operation_id,
            self.method,
            self.path_template,
        )


class OperationHandle:
    """The builder and parser pair for one OperationDef."""

    def __init__(self, *, op: OperationDef, codec: ObjectCodec) -> None:
        self.op = op
        self.codec = codec

    def __repr__(self) -> str:
        return "<%s %s>" % (self.__class__.__name__, self.op.operation_id)

    def __bool__(self) -> bool:
        return True

    @property
    def resource(self) -> ApiResource:
        return self.op.resource

    @property
    def verb(self) -> Verb:
        return self.op.verb

    def optional_parameters(self) -> Sequence[ParameterDef]:
        params: List[ParameterDef] = list(self.op.optional_cls.parameters)
        if self.op.takes_delete_optional:
            params.extend(DeleteOptional.parameters)
        return params

    def build(
        self,
        body: Any = None,
        optional: Optional[ClientOperationParams] = None,
        delete_optional: Optional[DeleteOptional] = None,
        **path_params: Any,
    ) -> RequestDescriptor:
        return build_request(
            self.op,
            self.codec,
            path_params,
            body=body,
            optional=optional,
            delete_optional=delete_optional,
        )

    def parse(self, status_code: int, body: bytes) -> ResponseVariant:
        return parse_response(self.op, self.codec, status_code, body)

    def stream(self, chunks: Union[Iterable[bytes], Any]) -> WatchStream:
        if not self.op.verb.is_watch:
            raise TypeError("%s is not a watch operation" % self.op.operation_id)

        decoder = WatchDecoder(codec=self.codec, resource=self.op.resource)
        return WatchStream(decoder=decoder, chunks=chunks)


class Unsupported:
    """Returned by Registry.resolve for verbs a resource does not support."""

    def __init__(self, *, resource: ApiResource, verb: Verb, reason: str) -> None:
        self.resource = resource
        self.verb = verb
        self.reason = reason

    def __repr__(self) -> str:
        return "<%s kind=%r, verb=%s, reason=%r>" % (
            self.__class__.__name__,
            self.resource.kind,
            self.verb.value,
            self.reason,
        )

    def __bool__(self) -> bool:
        return False


def unsupported_reason(resource: ApiResource, verb: Verb) -> Optional[str]:
    if verb.discovery_verb not in resource.verbs:
        return "%s does not support %s" % (resource.kind, verb.discovery_verb)

    if verb.is_all_namespaces and not resource.namespaced:
        return "%s is not namespaced" % resource.kind

    if verb.is_status and not resource.has_subresource("status"):
        return "%s has no status subresource" % resource.kind

    return None


class Registry:
    """
    The static table of (resource, verb) -> OperationHandle. Combinatorial in
    size but every entry is derived mechanically from the resource.
    """

    _default: Optional["Registry"] = None

    def __init__(self, schema: Schema, logger=None) -> None:
        self.schema = schema
        self.logger = logger or logging.getLogger("registry")

        table: Dict[Tuple[Tuple[str, str, str], Verb], OperationHandle] = {}
        for resource in schema.resources():
            for verb in Verb:
                if unsupported_reason(resource, verb) is not None:
                    continue

                op = OperationDef(resource=resource, verb=verb)
                table[(resource.identity, verb)] = OperationHandle(op=op, codec=schema.codec)

        self._table = MappingProxyType(table)
        self.logger.debug("Registered %s operations", len(self._table))

    def __repr__(self) -> str:
        return "<%s operations=%s>" % (self.__class__.__name__, len(self._table))

    def __len__(self) -> int:
        return len(self._table)

    @classmethod
    def default(cls) -> "Registry":
        if cls._default is None:
            cls._default = cls(Schema.default())
        return cls._default

    def resolve(
        self, resource: ApiResource, verb: Verb
    ) -> Union[OperationHandle, Unsupported]:
        handle = self._table.get((resource.identity, verb))
        if handle is not None:
            return handle

        reason = unsupported_reason(resource, verb) or "%s is not registered" % resource.kind
        return Unsupported(resource=resource, verb=verb, reason=reason)

    def operations(self, resource: Optional[ApiResource] = None) -> Sequence[OperationHandle]:
        if resource is None:
            return list(self._table.values())

        return [
            handle
            for (identity, _), handle in self._table.items()
            if identity == resource.identity
        ]

    def find_operation(self, operation_id: str) -> Optional[OperationHandle]:
        for handle in self._table.values():
            if handle.op.operation_id == operation_id:
                return handle
        return None
