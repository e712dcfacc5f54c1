import enum
import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

from kopenapi.errors import InvalidParameter, MissingParameter, UnexpectedParameter
from kopenapi.model.codec import ObjectCodec
from kopenapi.model.types import RawObject
from kopenapi.ops.params import ClientOperationParams, DeleteOptional
from kopenapi.ops.patch import Patch

rx_placeholder = re.compile(r"\{(\w+)\}")


class BodyKind(enum.Enum):
    NONE = "none"
    RESOURCE = "resource"
    PATCH = "patch"
    DELETE_OPTIONS = "delete-options"


class RequestDescriptor:
    """Everything a transport needs to perform one call, minus the server."""

    def __init__(
        self,
        *,
        method: str,
        path: str,
        query: Sequence[Tuple[str, str]] = (),
        body: Optional[bytes] = None,
        content_type: Optional[str] = None,
    ) -> None:
        self.method = method
        self.path = path
        self.query = list(query)
        self.body = body
        self.content_type = content_type

    def __repr__(self) -> str:
        return "<%s method=%r, url=%r, content_type=%r, body=%s>" % (
            self.__class__.__name__,
            self.method,
            self.url,
            self.content_type,
            "[%s bytes]" % len(self.body) if self.body is not None else None,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, RequestDescriptor):
            return NotImplemented
        return (
            self.method == other.method
            and self.path == other.path
            and self.query == other.query
            and self.body == other.body
            and self.content_type == other.content_type
        )

    @property
    def url(self) -> str:
        if self.query:
            return f"{self.path}?{urlencode(self.query)}"
        return self.path

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.content_type:
            headers["Content-Type"] = self.content_type
        return headers

    def json(self) -> Any:
        if self.body is None:
            return None
        return json.loads(self.body)


def template_parameters(template: str) -> List[str]:
    return rx_placeholder.findall(template)


def render_path(template: str, path_params: Mapping[str, Any]) -> str:
    wanted = template_parameters(template)

    for name in path_params:
        if name not in wanted:
            raise UnexpectedParameter(name, template)

    def substitute(match) -> str:
        name = match.group(1)
        value = path_params.get(name)
        if value is None or value == "":
            raise MissingParameter(name, template)
        return quote(str(value), safe="")

    return rx_placeholder.sub(substitute, template)


def serialize(dct: Any) -> bytes:
    return json.dumps(dct, separators=(",", ":")).encode()


def build_request(
    op,
    codec: ObjectCodec,
    path_params: Mapping[str, Any],
    body: Any = None,
    optional: Optional[ClientOperationParams] = None,
    delete_optional: Optional[DeleteOptional] = None,
) -> RequestDescriptor:
    """
    Turns an operation plus its arguments into a RequestDescriptor. `op` is an
    OperationDef from the registry.
    """

    path = render_path(op.path_template, path_params)

    if optional is None:
        optional = op.optional_cls()
    elif not isinstance(optional, op.optional_cls):
        raise InvalidParameter(
            "%s takes %s, not %s"
            % (op.operation_id, op.optional_cls.__name__, type(optional).__name__)
        )

    if delete_optional is not None and not op.takes_delete_optional:
        raise UnexpectedParameter("delete_optional", op.path_template)

    query: List[Tuple[str, str]] = []
    if op.verb.is_watch:
        query.append(("watch", "true"))
    query.extend(optional.to_query())

    payload: Optional[bytes] = None
    content_type: Optional[str] = None

    if op.body_kind is BodyKind.NONE:
        if body is not None:
            raise UnexpectedParameter("body", op.path_template)

    elif op.body_kind is BodyKind.RESOURCE:
        if body is None:
            raise MissingParameter("body", op.path_template)
        dct: RawObject = codec.encode_resource(op.resource, body)
        payload = serialize(dct)
        content_type = "application/json"

    elif op.body_kind is BodyKind.PATCH:
        if body is None:
            raise MissingParameter("body", op.path_template)
        if not isinstance(body, Patch):
            raise InvalidParameter("%s takes a Patch body" % op.operation_id)
        payload = body.to_bytes()
        content_type = body.content_type

    elif op.body_kind is BodyKind.DELETE_OPTIONS:
        if body is not None:
            raise UnexpectedParameter("body", op.path_template)
        options = delete_optional if op.takes_delete_optional else optional
        options = options or DeleteOptional()
        payload = serialize(options.to_body())  # type: ignore
        content_type = "application/json"

    return RequestDescriptor(
        method=op.method,
        path=path,
        query=query,
        body=payload,
        content_type=content_type,
    )
