import logging
from datetime import datetime
from typing import Any, Mapping, Union

from kopenapi.errors import DecodeError, InvalidParameter
from kopenapi.model.api_resource import ApiResource
from kopenapi.model.helpers import format_date, maybe_parse_date
from kopenapi.model.object_model import KubeObject
from kopenapi.model.types import Field, FieldType, RawObject, TypeDef


def join_path(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def strip_nulls(value: Any) -> Any:
    "Drops None values from (nested) dicts so they are omitted on the wire"

    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_nulls(v) for v in value]
    return value


class ObjectCodec:
    """
    Converts between the JSON wire form of kube objects and KubeObjects,
    validating the structure against the TypeDefs it was built with.
    """

    def __init__(self, definitions: Mapping[str, TypeDef], logger=None) -> None:
        self.definitions = definitions
        self.logger = logger or logging.getLogger("codec")

    def get_definition(self, name: str) -> TypeDef:
        type_def = self.definitions.get(name)
        if type_def is None:
            raise LookupError("Unknown definition: %s" % name)
        return type_def

    # Decoding

    def decode(
        self, type_name: str, raw: Any, partial: bool = False, path: str = ""
    ) -> KubeObject:
        type_def = self.get_definition(type_name)

        if not isinstance(raw, dict):
            raise DecodeError(
                "Expected object for %s" % type_def.short_name, fragment=raw, path=path
            )

        values = {}
        extra = {}

        for key, value in raw.items():
            field = type_def.fields.get(key)
            if field is None:
                extra[key] = value
                continue

            # the server sends explicit nulls for some optional fields
            if value is None:
                continue

            values[key] = self.decode_value(
                field, value, partial=partial, path=join_path(path, key)
            )

        if not partial:
            for name in type_def.required_fields:
                if name not in values:
                    raise DecodeError(
                        "Missing required field of %s" % type_def.short_name,
                        fragment=raw,
                        path=join_path(path, name),
                    )

        return KubeObject(type_def=type_def, values=values, extra=extra)

    def decode_value(
        self, field: Field, value: Any, partial: bool = False, path: str = ""
    ) -> Any:
        type = field.type

        if type is FieldType.ANY:
            return value

        if type is FieldType.STRING:
            if not isinstance(value, str):
                raise DecodeError("Expected string", fragment=value, path=path)
            return value

        if type is FieldType.INTEGER:
            if not isinstance(value, int) or isinstance(value, bool):
                raise DecodeError("Expected integer", fragment=value, path=path)
            return value

        if type is FieldType.NUMBER:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise DecodeError("Expected number", fragment=value, path=path)
            return value

        if type is FieldType.BOOLEAN:
            if not isinstance(value, bool):
                raise DecodeError("Expected boolean", fragment=value, path=path)
            return value

        if type is FieldType.DATE_TIME:
            if not isinstance(value, str):
                raise DecodeError("Expected date-time string", fragment=value, path=path)
            try:
                return maybe_parse_date(value)
            except (ValueError, OverflowError):
                raise DecodeError("Invalid date-time", fragment=value, path=path)

        if type is FieldType.OBJECT:
            return self.decode(field.ref, value, partial=partial, path=path)  # type: ignore

        if type is FieldType.ARRAY:
            if not isinstance(value, list):
                raise DecodeError("Expected array", fragment=value, path=path)
            return [
                self.decode_value(field.items, item, partial, f"{path}[{i}]")  # type: ignore
                for i, item in enumerate(value)
            ]

        if type is FieldType.MAP:
            if not isinstance(value, dict):
                raise DecodeError("Expected object", fragment=value, path=path)
            return {
                key: self.decode_value(field.items, item, partial, f"{path}[{key!r}]")  # type: ignore
                for key, item in value.items()
            }

        raise AssertionError("Unhandled field type: %s" % type)

    def decode_resource(
        self, resource: ApiResource, raw: Any, partial: bool = False
    ) -> KubeObject:
        if not isinstance(raw, dict):
            raise DecodeError("Expected %s object" % resource.kind, fragment=raw)

        # make sure we are decoding what we think we're decoding
        kind = raw.get("kind")
        if kind is not None and kind != resource.kind:
            raise DecodeError(
                "Expected kind %s" % resource.kind, fragment=kind, path="kind"
            )

        api_version = raw.get("apiVersion")
        if api_version is not None and api_version != resource.api_version:
            raise DecodeError(
                "Expected apiVersion %s" % resource.api_version,
                fragment=api_version,
                path="apiVersion",
            )

        return self.decode(resource.definition, raw, partial=partial)

    # Encoding

    def encode(self, obj: KubeObject) -> RawObject:
        dct: RawObject = {}

        for name, field in obj.type_def.fields.items():
            value = obj.get(name)
            if value is None:
                continue
            dct[name] = self.encode_value(field, value)

        for key, value in obj.extra.items():
            if key not in dct and value is not None:
                dct[key] = value

        return dct

    def encode_value(self, field: Field, value: Any) -> Any:
        type = field.type

        if type is FieldType.DATE_TIME and isinstance(value, datetime):
            return format_date(value)

        if type is FieldType.OBJECT:
            if isinstance(value, KubeObject):
                return self.encode(value)
            return strip_nulls(value)

        if type is FieldType.ARRAY:
            return [
                self.encode_value(field.items, item)  # type: ignore
                for item in value
                if item is not None
            ]

        if type is FieldType.MAP:
            return {
                key: self.encode_value(field.items, item)  # type: ignore
                for key, item in value.items()
                if item is not None
            }

        if type is FieldType.ANY:
            return strip_nulls(value)

        return value

    def encode_resource(
        self, resource: ApiResource, obj: Union[KubeObject, RawObject]
    ) -> RawObject:
        if isinstance(obj, KubeObject):
            if obj.type_def.name != resource.definition:
                raise InvalidParameter(
                    "Cannot send %s as %s" % (obj.type_def.short_name, resource.kind)
                )
            body = self.encode(obj)
        elif isinstance(obj, Mapping):
            body = strip_nulls(dict(obj))
        else:
            raise InvalidParameter(
                "A %s body must be an object, not %s" % (resource.kind, type(obj).__name__)
            )

        dct: RawObject = {
            "apiVersion": body.pop("apiVersion", None) or resource.api_version,
            "kind": body.pop("kind", None) or resource.kind,
        }
        dct.update(body)
        return dct
