from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

from kopenapi.model.helpers import as_utc
from kopenapi.model.types import FieldType, RawObject, TypeDef


class KubeObject:
    """
    A typed instance of a TypeDef. Declared fields are read as attributes
    using their wire names (`pod.spec.nodeName`); fields that are absent read
    as None. Properties the definition does not declare are kept in `extra`
    so they survive being written back.
    """

    def __init__(
        self,
        *,
        type_def: TypeDef,
        values: Optional[Dict[str, Any]] = None,
        extra: Optional[RawObject] = None,
    ) -> None:
        self._type_def = type_def
        self._values: Dict[str, Any] = {
            name: self._normalize(name, value) for name, value in (values or {}).items()
        }
        self._extra: RawObject = dict(extra or {})

        unknown = set(self._values) - set(type_def.fields)
        if unknown:
            raise ValueError(
                "%s has no fields %s" % (type_def.short_name, sorted(unknown))
            )

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        type_def = self.__dict__.get("_type_def")
        if type_def is not None and name in type_def.fields:
            return self._values.get(name)

        raise AttributeError(
            "%s has no field %r" % (type_def.short_name if type_def else "?", name)
        )

    def __repr__(self) -> str:
        return "<%s %s %r>" % (
            self.__class__.__name__,
            self._type_def.short_name,
            self._values,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, KubeObject):
            return NotImplemented

        return (
            self._type_def.name == other._type_def.name
            and self._values == other._values
            and self._extra == other._extra
        )

    @property
    def type_def(self) -> TypeDef:
        return self._type_def

    @property
    def extra(self) -> RawObject:
        return self._extra

    def _normalize(self, name: str, value: Any) -> Any:
        field = self._type_def.fields.get(name)
        # timestamps are held timezone aware so they compare equal once decoded
        if field is None or field.type is not FieldType.DATE_TIME:
            return value
        return as_utc(value) if isinstance(value, datetime) else value

    def present_fields(self) -> Sequence[str]:
        return [name for name in self._type_def.fields if name in self._values]

    def get(self, name: str, default: Any = None) -> Any:
        if name not in self._type_def.fields:
            raise KeyError(name)
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        if name not in self._type_def.fields:
            raise KeyError(name)

        # setting None makes the field absent again
        if value is None:
            self._values.pop(name, None)
        else:
            self._values[name] = self._normalize(name, value)


class ListObject:
    def __init__(
        self,
        *,
        apiVersion: str,
        kind: str,
        metadata: Optional[KubeObject],
        items: List[KubeObject],
    ) -> None:
        self.apiVersion = apiVersion
        self.kind = kind
        self.metadata = metadata
        self.items = items

    def __repr__(self) -> str:
        return "<%s kind=%r, items=%s>" % (
            self.__class__.__name__,
            self.kind,
            len(self.items),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, ListObject):
            return NotImplemented

        return (
            self.apiVersion == other.apiVersion
            and self.kind == other.kind
            and self.metadata == other.metadata
            and self.items == other.items
        )

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[KubeObject]:
        return iter(self.items)

    @property
    def resource_version(self) -> Optional[str]:
        if self.metadata is None:
            return None
        return self.metadata.resourceVersion

    @property
    def continue_token(self) -> Optional[str]:
        if self.metadata is None:
            return None
        return self.metadata.get("continue")
