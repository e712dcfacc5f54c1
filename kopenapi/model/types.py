import enum
from typing import Any, Dict, Mapping, Optional, Sequence

RawObject = Dict[str, Any]


class FieldType(enum.Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE_TIME = "date-time"
    OBJECT = "object"
    ARRAY = "array"
    MAP = "map"
    ANY = "any"


class Field:
    """
    One property of a TypeDef. `ref` names the TypeDef of an OBJECT field,
    `items` describes the element of an ARRAY or the value of a MAP.
    """

    def __init__(
        self,
        *,
        name: str,
        type: FieldType,
        required: bool = False,
        ref: Optional[str] = None,
        items: Optional["Field"] = None,
        description: str = "",
    ) -> None:
        if type is FieldType.OBJECT and not ref:
            raise ValueError("Object field %r needs a ref" % name)
        if type in (FieldType.ARRAY, FieldType.MAP) and items is None:
            raise ValueError("Container field %r needs items" % name)

        self.name = name
        self.type = type
        self.required = required
        self.ref = ref
        self.items = items
        self.description = description

    def __repr__(self) -> str:
        return "<%s name=%r, type=%s, required=%r, ref=%r>" % (
            self.__class__.__name__,
            self.name,
            self.type.value,
            self.required,
            self.ref,
        )

    def describe_type(self) -> str:
        if self.type is FieldType.OBJECT:
            return self.ref.rsplit(".", 1)[-1]  # type: ignore
        if self.type is FieldType.ARRAY:
            return "[%s]" % self.items.describe_type()  # type: ignore
        if self.type is FieldType.MAP:
            return "{%s}" % self.items.describe_type()  # type: ignore
        return self.type.value


class TypeDef:
    """A named structural definition, eg. io.k8s.api.core.v1.PodSpec"""

    def __init__(
        self, *, name: str, fields: Sequence[Field], description: str = ""
    ) -> None:
        self.name = name
        self.description = description
        self.fields: Mapping[str, Field] = {field.name: field for field in fields}

    def __repr__(self) -> str:
        return "<%s name=%r, fields=%r>" % (
            self.__class__.__name__,
            self.name,
            list(self.fields),
        )

    @property
    def short_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    @property
    def required_fields(self) -> Sequence[str]:
        return [name for name, field in self.fields.items() if field.required]
