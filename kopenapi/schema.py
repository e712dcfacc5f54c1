import logging
from types import MappingProxyType
from typing import Dict, Optional, Sequence, Tuple, Union

from kopenapi.model import catalog
from kopenapi.model.api_group import ApiGroup, normalize_group_name
from kopenapi.model.api_resource import ApiResource
from kopenapi.model.codec import ObjectCodec
from kopenapi.model.types import TypeDef

Identity = Tuple[str, str, str]


class NotFound:
    """Returned by lookups that miss. It is falsy so callers can just test it."""

    def __init__(self, *, what: str, key) -> None:
        self.what = what
        self.key = key

    def __repr__(self) -> str:
        return "<%s what=%r, key=%r>" % (self.__class__.__name__, self.what, self.key)

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other) -> bool:
        if not isinstance(other, NotFound):
            return NotImplemented
        return (self.what, self.key) == (other.what, other.key)


class Schema:
    """
    The static catalog of resource kinds and the definitions of their fields.
    Built once and never mutated afterwards, so it can be shared freely.
    """

    _default: Optional["Schema"] = None

    def __init__(
        self,
        *,
        definitions: Sequence[TypeDef],
        resources: Sequence[ApiResource],
        logger=None,
    ) -> None:
        self.logger = logger or logging.getLogger("schema")

        defs: Dict[str, TypeDef] = {}
        for type_def in definitions:
            defs[type_def.name] = type_def

        index: Dict[Identity, ApiResource] = {}
        for resource in resources:
            if resource.definition not in defs:
                raise ValueError(
                    "Resource %s refers to unknown definition %s"
                    % (resource.kind, resource.definition)
                )

            if resource.identity in index:
                self.logger.warning("Duplicate resource %r - keeping the first", resource)
                continue

            index[resource.identity] = resource

        self._definitions = MappingProxyType(defs)
        self._resources = MappingProxyType(index)
        self.codec = ObjectCodec(self._definitions)

    def __repr__(self) -> str:
        return "<%s definitions=%s, resources=%s>" % (
            self.__class__.__name__,
            len(self._definitions),
            len(self._resources),
        )

    @classmethod
    def default(cls) -> "Schema":
        if cls._default is None:
            cls._default = cls(
                definitions=catalog.DEFINITIONS, resources=catalog.RESOURCES
            )
        return cls._default

    @property
    def definitions(self):
        return self._definitions

    def resources(self) -> Sequence[ApiResource]:
        return list(self._resources.values())

    def lookup(
        self, group: str, version: str, kind: str
    ) -> Union[ApiResource, NotFound]:
        key = (normalize_group_name(group), version, kind)

        resource = self._resources.get(key)
        if resource is None:
            return NotFound(what="resource", key=key)

        return resource

    def lookup_api_version(
        self, api_version: str, kind: str
    ) -> Union[ApiResource, NotFound]:
        group = ApiGroup.from_api_version(api_version)
        return self.lookup(group.name, group.version, kind)

    def find_kind(self, kind: str) -> Sequence[ApiResource]:
        "All resources with the given kind (or plural name), in any group"

        lowered = kind.lower()
        return [
            res
            for res in self._resources.values()
            if res.kind.lower() == lowered or res.name == lowered
        ]

    def definition(self, name: str) -> Union[TypeDef, NotFound]:
        type_def = self._definitions.get(name)
        if type_def is None:
            return NotFound(what="definition", key=name)
        return type_def
