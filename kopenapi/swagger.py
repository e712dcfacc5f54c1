import logging
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from kopenapi.model.api_group import ApiGroup
from kopenapi.model.api_resource import ApiResource
from kopenapi.model.types import Field, FieldType, RawObject, TypeDef
from kopenapi.schema import Schema

REF_PREFIX = "#/definitions/"

# x-kubernetes-action -> the verb discovery reports for it
ACTION_VERBS = {
    "post": "create",
    "get": "get",
    "list": "list",
    "put": "update",
    "patch": "patch",
    "delete": "delete",
    "deletecollection": "deletecollection",
    "watch": "watch",
    "watchlist": "watch",
}

HTTP_METHODS = ("get", "put", "post", "delete", "patch")


class ResourceDraft:
    def __init__(self, *, group: ApiGroup, plural: str) -> None:
        self.group = group
        self.plural = plural
        self.kind: Optional[str] = None
        self.namespaced = False
        self.verbs: Set[str] = set()
        self.subresources: Set[str] = set()


class SwaggerLoader:
    """
    Derives a Schema from the swagger 2.0 document an API server publishes at
    /openapi/v2. Definitions with properties become TypeDefs, and the paths
    tagged with x-kubernetes-action tell us which kinds are served, under which
    plural, with which verbs.
    """

    def __init__(self, logger=None) -> None:
        self.logger = logger or logging.getLogger("swagger")

    def load_file(self, filepath: str) -> Schema:
        self.logger.info("Loading swagger document: %s", filepath)

        with open(filepath, "rb") as fl:
            # json is a subset of yaml, one loader does both
            doc = yaml.load(fl, Loader=yaml.SafeLoader)

        return self.load_document(doc)

    def load_document(self, doc: RawObject) -> Schema:
        if not isinstance(doc, dict) or "definitions" not in doc:
            raise ValueError("Not a swagger 2.0 document: no definitions")

        raw_defs: Dict[str, RawObject] = doc.get("definitions") or {}
        definitions = self.parse_definitions(raw_defs)

        known = {type_def.name for type_def in definitions}
        resources = self.parse_resources(doc.get("paths") or {}, raw_defs, known)

        self.logger.info(
            "Loaded %s definitions and %s resources", len(definitions), len(resources)
        )
        return Schema(definitions=definitions, resources=resources)

    # Definitions

    def parse_definitions(self, raw_defs: Dict[str, RawObject]) -> List[TypeDef]:
        type_defs = []

        for name, dct in sorted(raw_defs.items()):
            properties = dct.get("properties")
            if not properties:
                # scalars like Time and Quantity are inlined where referenced
                continue

            required = set(dct.get("required") or [])
            fields = [
                self.parse_field(prop, schema, raw_defs, prop in required)
                for prop, schema in properties.items()
            ]
            type_defs.append(
                TypeDef(name=name, fields=fields, description=dct.get("description", ""))
            )

        return type_defs

    def parse_field(
        self,
        name: str,
        schema: RawObject,
        raw_defs: Dict[str, RawObject],
        required: bool = False,
    ) -> Field:
        description = schema.get("description", "")

        # openapi v3 wraps refs as allOf: [{$ref: ...}]
        all_of = schema.get("allOf")
        if all_of and len(all_of) == 1:
            schema = dict(schema, **all_of[0])

        ref = schema.get("$ref")
        if ref:
            target = ref[len(REF_PREFIX):] if ref.startswith(REF_PREFIX) else ref
            target_schema = raw_defs.get(target)

            if target_schema is None:
                self.logger.warning("Unresolved reference %s - treating as any", ref)
                return Field(name=name, type=FieldType.ANY, required=required, description=description)

            if target_schema.get("properties"):
                return Field(
                    name=name,
                    type=FieldType.OBJECT,
                    ref=target,
                    required=required,
                    description=description,
                )

            # a scalar definition, eg. meta/v1 Time
            return self.parse_field(name, dict(target_schema, description=description), raw_defs, required)

        type = schema.get("type")
        format = schema.get("format")

        if type == "string":
            if format == "date-time":
                field_type = FieldType.DATE_TIME
            elif format == "int-or-string":
                field_type = FieldType.ANY
            else:
                field_type = FieldType.STRING
            return Field(name=name, type=field_type, required=required, description=description)

        if type == "integer":
            return Field(name=name, type=FieldType.INTEGER, required=required, description=description)

        if type == "number":
            return Field(name=name, type=FieldType.NUMBER, required=required, description=description)

        if type == "boolean":
            return Field(name=name, type=FieldType.BOOLEAN, required=required, description=description)

        if type == "array" and isinstance(schema.get("items"), dict):
            items = self.parse_field("", schema["items"], raw_defs)
            return Field(
                name=name,
                type=FieldType.ARRAY,
                items=items,
                required=required,
                description=description,
            )

        if type == "object" and isinstance(schema.get("additionalProperties"), dict):
            items = self.parse_field("", schema["additionalProperties"], raw_defs)
            return Field(
                name=name,
                type=FieldType.MAP,
                items=items,
                required=required,
                description=description,
            )

        return Field(name=name, type=FieldType.ANY, required=required, description=description)

    # Resources

    def split_path(self, path: str) -> Optional[Tuple[ApiGroup, List[str]]]:
        segments = [seg for seg in path.split("/") if seg]

        # /api/v1/... and /apis/{group}/{version}/...
        if len(segments) >= 3 and segments[0] == "api":
            return ApiGroup(name="", version=segments[1]), segments[2:]
        if len(segments) >= 4 and segments[0] == "apis":
            return ApiGroup(name=segments[1], version=segments[2]), segments[3:]

        return None

    def parse_resources(
        self, paths: Dict[str, RawObject], raw_defs: Dict[str, RawObject], known: Set[str]
    ) -> List[ApiResource]:
        drafts: Dict[Tuple[ApiGroup, str], ResourceDraft] = {}

        for path, path_item in sorted(paths.items()):
            split = self.split_path(path)
            if split is None:
                continue
            group, rest = split

            # deprecated /watch/ paths fold into the watch verb of the plural
            if rest and rest[0] == "watch":
                rest = rest[1:]

            namespaced = False
            if len(rest) >= 3 and rest[0] == "namespaces" and rest[1] == "{namespace}":
                namespaced = True
                rest = rest[2:]

            if not rest or rest[0].startswith("{"):
                continue

            plural = rest[0]
            subresource = rest[2] if len(rest) >= 3 else None

            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, dict):
                    continue

                action = operation.get("x-kubernetes-action")
                gvk = operation.get("x-kubernetes-group-version-kind")
                verb = ACTION_VERBS.get(action)  # type: ignore
                if verb is None or not gvk:
                    continue

                draft = drafts.get((group, plural))
                if draft is None:
                    draft = ResourceDraft(group=group, plural=plural)
                    drafts[(group, plural)] = draft

                if subresource:
                    draft.subresources.add(subresource)
                    continue

                draft.kind = draft.kind or gvk.get("kind")
                draft.namespaced = draft.namespaced or namespaced
                draft.verbs.add(verb)

        resources = []
        for draft in drafts.values():
            if not draft.kind or not draft.verbs:
                continue

            definition = self.find_definition(raw_defs, known, draft.group, draft.kind)
            if definition is None:
                self.logger.warning(
                    "No definition for %s %s - skipping", draft.group.api_version, draft.kind
                )
                continue

            resources.append(
                ApiResource(
                    group=draft.group,
                    kind=draft.kind,
                    name=draft.plural,
                    namespaced=draft.namespaced,
                    verbs=sorted(draft.verbs),
                    definition=definition,
                    subresources=sorted(draft.subresources),
                )
            )

        return resources

    def find_definition(
        self, raw_defs: Dict[str, RawObject], known: Set[str], group: ApiGroup, kind: str
    ) -> Optional[str]:
        for name, dct in raw_defs.items():
            if name not in known:
                continue

            for gvk in dct.get("x-kubernetes-group-version-kind") or []:
                if (
                    gvk.get("group", "") == group.name
                    and gvk.get("version") == group.version
                    and gvk.get("kind") == kind
                ):
                    return name

        return None


def load_schema(filepath: str) -> Schema:
    return SwaggerLoader().load_file(filepath)
