#!/usr/bin/env python

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional, Sequence

import yaml
from aiohttp import ClientSession

from kopenapi.client.config import Context, get_selector
from kopenapi.client.transport import AsyncClient, AsyncTransport
from kopenapi.errors import KubeOpenApiError
from kopenapi.model.api_resource import ApiResource
from kopenapi.ops.params import ClientOperationParams, DeleteOptional, ParameterDef, WatchOptional
from kopenapi.ops.patch import Patch, PatchType
from kopenapi.ops.registry import OperationHandle, Registry
from kopenapi.ops.request import BodyKind
from kopenapi.ops.verbs import Verb
from kopenapi.schema import Schema
from kopenapi.swagger import load_schema
from kopenapi.tools.logs import configure_logging
from kopenapi.tools.terminal import TerminalPrinter

PATCH_TYPES = {
    "json": PatchType.JSON,
    "merge": PatchType.MERGE,
    "strategic-merge": PatchType.STRATEGIC_MERGE,
    "apply": PatchType.APPLY,
}


class UsageError(Exception):
    pass


def get_schema(args: argparse.Namespace) -> Schema:
    if not args.swagger:
        return Schema.default()

    try:
        return load_schema(args.swagger)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        raise UsageError("Cannot load %s: %s" % (args.swagger, exc))


def find_resource(schema: Schema, args: argparse.Namespace) -> ApiResource:
    resources = schema.find_kind(args.kind)

    if args.api_version:
        resources = [res for res in resources if res.api_version == args.api_version]

    if not resources:
        raise UsageError("No such kind: %s" % args.kind)

    if len(resources) > 1:
        versions = ", ".join(res.api_version for res in resources)
        raise UsageError(
            "Kind %s is served by several api versions (%s), pick one with --api-version"
            % (args.kind, versions)
        )

    return resources[0]


def parse_param_value(param: ParameterDef, value: str) -> Any:
    if param.type is bool:
        if value.lower() not in ("true", "false"):
            raise UsageError("%s takes true or false" % param.attr)
        return value.lower() == "true"

    if param.type is int:
        try:
            return int(value)
        except ValueError:
            raise UsageError("%s takes an integer" % param.attr)

    if param.type is dict:
        try:
            return json.loads(value)
        except ValueError:
            raise UsageError("%s takes a json object" % param.attr)

    return value


def parse_params(
    cls: type, pairs: Sequence[str]
) -> Optional[ClientOperationParams]:
    if not pairs:
        return None

    known = {}
    for param in cls.parameters:  # type: ignore
        known[param.attr] = param
        known[param.wire_name] = param

    values: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        param = known.get(key)
        if not sep or param is None:
            raise UsageError("Unknown parameter for %s: %s" % (cls.__name__, pair))
        values[param.attr] = parse_param_value(param, value)

    return cls(**values)


def read_document(filepath: str) -> Any:
    try:
        if filepath == "-":
            return yaml.load(sys.stdin, Loader=yaml.SafeLoader)

        with open(filepath, "rb") as fl:
            return yaml.load(fl, Loader=yaml.SafeLoader)
    except (OSError, yaml.YAMLError) as exc:
        raise UsageError("Cannot read %s: %s" % (filepath, exc))


def resolve(registry: Registry, resource: ApiResource, verb: Verb) -> OperationHandle:
    handle = registry.resolve(resource, verb)
    if not handle:
        raise UsageError(handle.reason)  # type: ignore
    return handle  # type: ignore


def path_params(handle: OperationHandle, args: argparse.Namespace) -> Dict[str, Any]:
    params = {}
    if "namespace" in handle.op.path_parameters:
        params["namespace"] = args.namespace
    if "name" in handle.op.path_parameters:
        params["name"] = args.name
    return params


# Commands


def list_resources(args: argparse.Namespace, printer: TerminalPrinter) -> None:
    schema = get_schema(args)

    resources = sorted(
        schema.resources(), key=lambda res: (res.group.name, res.group.version, res.kind)
    )

    current = None
    for res in resources:
        if res.api_version != current:
            current = res.api_version
            printer.headingln(current)

        scope = "namespaced" if res.namespaced else "cluster"
        printer.write_line(
            "  %-20s %-22s %-10s %s" % (res.kind, res.name, scope, ",".join(res.verbs))
        )


def describe_kind(args: argparse.Namespace, printer: TerminalPrinter) -> None:
    schema = get_schema(args)
    registry = Registry(schema)
    resource = find_resource(schema, args)

    printer.loudln("%s %s (%s)" % (resource.api_version, resource.kind, resource.definition))

    for handle in registry.operations(resource):
        op = handle.op
        printer.headingln("%s  %s %s" % (op.operation_id, op.method, op.path_template))
        printer.write_line("    %s" % op.description)

        for param in handle.optional_parameters():
            printer.write_line("    ?%-22s %s" % (param.wire_name, param.effect))

        codes = ", ".join("%s %s" % (code, spec.tag) for code, spec in sorted(op.variants.items()))
        printer.write_line("    -> %s" % codes)


def build_request(args: argparse.Namespace, printer: TerminalPrinter) -> None:
    schema = get_schema(args)
    registry = Registry(schema)
    resource = find_resource(schema, args)

    try:
        verb = Verb.parse(args.verb)
    except ValueError as exc:
        raise UsageError(str(exc))

    handle = resolve(registry, resource, verb)
    op = handle.op

    optional = parse_params(op.optional_cls, args.params)
    delete_optional = None
    if op.takes_delete_optional:
        delete_optional = parse_params(DeleteOptional, args.delete_params)

    body: Any = None
    if args.body:
        document = read_document(args.body)
        if op.body_kind is BodyKind.PATCH:
            body = Patch(type=PATCH_TYPES[args.patch_type], body=document)
        else:
            body = document

    request = handle.build(
        body=body,
        optional=optional,
        delete_optional=delete_optional,  # type: ignore
        **path_params(handle, args),
    )

    printer.headingln("%s %s" % (request.method, request.url))
    for key, value in request.headers.items():
        printer.write_line("%s: %s" % (key, value))

    if request.body is not None:
        printer.write_line("")
        printer.write_line(json.dumps(request.json(), indent=2))


async def watch_objects(
    context: Context, registry: Registry, resource: ApiResource, args, printer
) -> None:
    async with ClientSession() as session:
        transport = AsyncTransport(session=session, context=context)
        client = AsyncClient(transport=transport, registry=registry)

        optional = parse_params(WatchOptional, args.params)
        async for event in client.watch(
            resource, namespace=args.namespace, optional=optional  # type: ignore
        ):
            name = event.object.metadata.name if event.object.metadata else None  # type: ignore
            printer.write_line(
                "[%s] %-8s %s %s" % (context.short_name, event.type.value, resource.kind, name)
            )


def watch(args: argparse.Namespace, printer: TerminalPrinter) -> None:
    schema = get_schema(args)
    registry = Registry(schema)
    resource = find_resource(schema, args)

    contexts = get_selector().fnmatch_context(args.context)
    if not contexts:
        raise UsageError("No kube context matches: %s" % args.context)

    async def run_all():
        await asyncio.gather(
            *[watch_objects(ctx, registry, resource, args, printer) for ctx in contexts]
        )

    try:
        asyncio.run(run_all())
    except KeyboardInterrupt:
        printer.loudln("\nCtrl-C received")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kopenapi")
    parser.add_argument(
        "--swagger",
        dest="swagger",
        action="store",
        help="Read kinds from this openapi v2 document instead of the built-in catalog",
    )
    parser.add_argument(
        "--log-file",
        dest="log_file",
        action="store",
        help="Write debug logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("resources", help="List the kinds in the catalog")

    describe = subparsers.add_parser("describe", help="Show the operations of a kind")
    describe.add_argument("kind")
    describe.add_argument("--api-version", dest="api_version", action="store")

    build = subparsers.add_parser("build", help="Print the request an operation sends")
    build.add_argument("kind")
    build.add_argument("verb")
    build.add_argument("--api-version", dest="api_version", action="store")
    build.add_argument("--namespace", "-n", dest="namespace", action="store")
    build.add_argument("--name", dest="name", action="store")
    build.add_argument(
        "--param", dest="params", action="append", default=[], metavar="KEY=VALUE"
    )
    build.add_argument(
        "--delete-param",
        dest="delete_params",
        action="append",
        default=[],
        metavar="KEY=VALUE",
    )
    build.add_argument("--body", dest="body", action="store", help="yaml or json file, - for stdin")
    build.add_argument(
        "--patch-type",
        dest="patch_type",
        choices=sorted(PATCH_TYPES),
        default="merge",
    )

    watch = subparsers.add_parser("watch", help="Stream watch events from clusters")
    watch.add_argument("kind")
    watch.add_argument("--api-version", dest="api_version", action="store")
    watch.add_argument("--context", dest="context", action="store", required=True)
    watch.add_argument("--namespace", "-n", dest="namespace", action="store")
    watch.add_argument(
        "--param", dest="params", action="append", default=[], metavar="KEY=VALUE"
    )

    return parser


COMMANDS = {
    "resources": list_resources,
    "describe": describe_kind,
    "build": build_request,
    "watch": watch,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)

    if args.log_file:
        configure_logging(filename=args.log_file)

    printer = TerminalPrinter()

    try:
        COMMANDS[args.command](args, printer)
    except (UsageError, KubeOpenApiError) as exc:
        printer.write_line("error: %s" % exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
