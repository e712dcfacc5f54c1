from typing import Any, Dict, List, Sequence, Tuple

from kopenapi.errors import InvalidParameter
from kopenapi.model.types import RawObject


class ParameterDef:
    """One optional parameter of an operation and what setting it does."""

    def __init__(self, *, attr: str, wire_name: str, type: type, effect: str) -> None:
        self.attr = attr
        self.wire_name = wire_name
        self.type = type
        self.effect = effect

    def __repr__(self) -> str:
        return "<%s attr=%r, wire_name=%r, type=%s>" % (
            self.__class__.__name__,
            self.attr,
            self.wire_name,
            self.type.__name__,
        )

    def check(self, value: Any) -> None:
        # bool is a subclass of int, don't let it pass as one
        if self.type is int and isinstance(value, bool):
            raise InvalidParameter("%s must be int, not bool" % self.attr)
        if not isinstance(value, self.type):
            raise InvalidParameter(
                "%s must be %s, not %s"
                % (self.attr, self.type.__name__, type(value).__name__)
            )

    def encode(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


PRETTY = ParameterDef(
    attr="pretty",
    wire_name="pretty",
    type=bool,
    effect="If true, the server pretty-prints the output.",
)
DRY_RUN = ParameterDef(
    attr="dry_run",
    wire_name="dryRun",
    type=bool,
    effect="If set, the request is validated and processed but not persisted.",
)
FIELD_MANAGER = ParameterDef(
    attr="field_manager",
    wire_name="fieldManager",
    type=str,
    effect="Attributes the write to the named actor in managedFields.",
)
FIELD_VALIDATION = ParameterDef(
    attr="field_validation",
    wire_name="fieldValidation",
    type=str,
    effect="How unknown or duplicate fields are handled: Ignore, Warn or Strict.",
)
FORCE = ParameterDef(
    attr="force",
    wire_name="force",
    type=bool,
    effect="Re-acquires fields owned by other managers. Only valid for apply patches.",
)
CONTINUE = ParameterDef(
    attr="continue_",
    wire_name="continue",
    type=str,
    effect="Token from a previous paginated list response, fetches the next page.",
)
FIELD_SELECTOR = ParameterDef(
    attr="field_selector",
    wire_name="fieldSelector",
    type=str,
    effect="Restricts the returned objects by their fields.",
)
LABEL_SELECTOR = ParameterDef(
    attr="label_selector",
    wire_name="labelSelector",
    type=str,
    effect="Restricts the returned objects by their labels.",
)
LIMIT = ParameterDef(
    attr="limit",
    wire_name="limit",
    type=int,
    effect="Maximum number of items to return. The server sets metadata.continue when more exist.",
)
RESOURCE_VERSION = ParameterDef(
    attr="resource_version",
    wire_name="resourceVersion",
    type=str,
    effect="Serves the state (or changes) as of this resource version.",
)
RESOURCE_VERSION_MATCH = ParameterDef(
    attr="resource_version_match",
    wire_name="resourceVersionMatch",
    type=str,
    effect="How resourceVersion is applied: Exact or NotOlderThan.",
)
TIMEOUT_SECONDS = ParameterDef(
    attr="timeout_seconds",
    wire_name="timeoutSeconds",
    type=int,
    effect="Server-side timeout for the call, regardless of activity.",
)
ALLOW_WATCH_BOOKMARKS = ParameterDef(
    attr="allow_watch_bookmarks",
    wire_name="allowWatchBookmarks",
    type=bool,
    effect="Asks the server to send BOOKMARK events carrying the latest resource version.",
)
GRACE_PERIOD_SECONDS = ParameterDef(
    attr="grace_period_seconds",
    wire_name="gracePeriodSeconds",
    type=int,
    effect="Seconds before the object is deleted. Zero deletes immediately.",
)
PRECONDITIONS = ParameterDef(
    attr="preconditions",
    wire_name="preconditions",
    type=dict,
    effect="Deletes only if the object still has this uid and/or resourceVersion.",
)
PROPAGATION_POLICY = ParameterDef(
    attr="propagation_policy",
    wire_name="propagationPolicy",
    type=str,
    effect="Garbage collection of dependents: Orphan, Background or Foreground.",
)


class ClientOperationParams:
    """
    Base of the optional parameter records. Every parameter starts unset
    (None) and unset parameters are never sent.
    """

    parameters: Sequence[ParameterDef] = ()

    def __init__(self, **kwargs: Any) -> None:
        known = {param.attr: param for param in self.parameters}

        for param in self.parameters:
            setattr(self, param.attr, None)

        for key, value in kwargs.items():
            param = known.get(key)
            if param is None:
                raise InvalidParameter(
                    "%s got an unexpected parameter %r" % (self.__class__.__name__, key)
                )

            if value is not None:
                param.check(value)
            setattr(self, key, value)

    def __repr__(self) -> str:
        return "<%s %s>" % (
            self.__class__.__name__,
            ", ".join("%s=%r" % (k, v) for k, v in self.get_set_values().items()),
        )

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.get_set_values() == other.get_set_values()

    def get_set_values(self) -> Dict[str, Any]:
        values = {}
        for param in self.parameters:
            value = getattr(self, param.attr)
            if value is not None:
                values[param.attr] = value
        return values

    def copy(self, **changes: Any) -> "ClientOperationParams":
        values = self.get_set_values()
        values.update(changes)
        return self.__class__(**values)

    def to_query(self) -> List[Tuple[str, str]]:
        query = []
        for param in self.parameters:
            value = getattr(self, param.attr)
            if value is None:
                continue

            if param is DRY_RUN:
                # the only dry run mode the server knows
                if value:
                    query.append((param.wire_name, "All"))
                continue

            query.append((param.wire_name, param.encode(value)))

        return query


class ReadOptional(ClientOperationParams):
    parameters = (PRETTY,)


class CreateOptional(ClientOperationParams):
    parameters = (DRY_RUN, FIELD_MANAGER, FIELD_VALIDATION, PRETTY)


class ReplaceOptional(ClientOperationParams):
    parameters = (DRY_RUN, FIELD_MANAGER, FIELD_VALIDATION, PRETTY)


class PatchOptional(ClientOperationParams):
    parameters = (DRY_RUN, FIELD_MANAGER, FIELD_VALIDATION, FORCE, PRETTY)


class ListOptional(ClientOperationParams):
    parameters = (
        CONTINUE,
        FIELD_SELECTOR,
        LABEL_SELECTOR,
        LIMIT,
        PRETTY,
        RESOURCE_VERSION,
        RESOURCE_VERSION_MATCH,
        TIMEOUT_SECONDS,
    )


class WatchOptional(ClientOperationParams):
    # a watch never pages, so no continue/limit
    parameters = (
        ALLOW_WATCH_BOOKMARKS,
        FIELD_SELECTOR,
        LABEL_SELECTOR,
        PRETTY,
        RESOURCE_VERSION,
        RESOURCE_VERSION_MATCH,
        TIMEOUT_SECONDS,
    )


class DeleteOptional(ClientOperationParams):
    """Sent as a DeleteOptions body rather than in the query string."""

    parameters = (DRY_RUN, GRACE_PERIOD_SECONDS, PRECONDITIONS, PROPAGATION_POLICY)

    def to_query(self) -> List[Tuple[str, str]]:
        return []

    def to_body(self) -> RawObject:
        body: RawObject = {}
        for param in self.parameters:
            value = getattr(self, param.attr)
            if value is None:
                continue

            if param is DRY_RUN:
                if value:
                    body[param.wire_name] = ["All"]
                continue

            body[param.wire_name] = value

        return body
