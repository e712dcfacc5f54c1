import asyncio
import json
import socket

import pytest
from aiohttp import ClientConnectorError, ClientSession, web
from aiohttp.test_utils import TestServer

from conftest import make_pod, make_status
from kopenapi.client.config import Cluster, Context, User
from kopenapi.client.transport import ApiError, AsyncClient, AsyncTransport
from kopenapi.errors import OperationNotSupported
from kopenapi.model.catalog import NamespaceKind, PodKind, PriorityClassKind
from kopenapi.ops.params import ListOptional, WatchOptional
from kopenapi.ops.registry import Registry
from kopenapi.ops.request import RequestDescriptor
from kopenapi.ops.verbs import Verb
from kopenapi.ops.watch import EventType


def make_context(server: str) -> Context:
    return Context(
        name="test.example.com",
        user=User(name="tester", token="abc"),
        cluster=Cluster(name="test", server=server),
    )


def event_line(type: str, obj) -> bytes:
    return json.dumps({"type": type, "object": obj}).encode() + b"\n"


async def stream_lines(request: web.Request, lines) -> web.StreamResponse:
    response = web.StreamResponse()
    response.content_type = "application/json"
    await response.prepare(request)
    for line in lines:
        await response.write(line)
    await response.write_eof()
    return response


def run_against(app: web.Application, scenario):
    async def main():
        server = TestServer(app)
        await server.start_server()
        try:
            async with ClientSession() as session:
                context = make_context(str(server.make_url("/")))
                transport = AsyncTransport(session=session, context=context, retry_delay=0)
                client = AsyncClient(
                    transport=transport, registry=Registry.default(), restart_delay=0
                )
                return await scenario(client)
        finally:
            await server.close()

    return asyncio.run(main())


async def take(gen, count: int):
    events = []
    async for event in gen:
        events.append(event)
        if len(events) == count:
            break
    await gen.aclose()
    return events


def test_call_read():
    seen = []

    async def read_pod(request):
        seen.append(request)
        return web.json_response(make_pod())

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/default/pods/nginx", read_pod)

    async def scenario(client):
        return await client.call(PodKind, Verb.READ, namespace="default", name="nginx")

    variant = run_against(app, scenario)

    assert variant.tag == "Ok"
    assert variant.value.metadata.name == "nginx"
    assert seen[0].headers["Authorization"] == "Bearer abc"
    assert seen[0].headers["Accept"] == "application/json"


def test_call_not_found():
    async def read_pod(request):
        return web.json_response(make_status(404, "NotFound", 'pods "nginx" not found'), status=404)

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/default/pods/nginx", read_pod)

    async def scenario(client):
        return await client.call(PodKind, Verb.READ, namespace="default", name="nginx")

    variant = run_against(app, scenario)

    assert variant.tag == "NotFound"
    assert variant.value.message == 'pods "nginx" not found'


def test_call_create_sends_body():
    received = []

    async def create_pod(request):
        received.append((request.content_type, await request.json()))
        return web.json_response(await request.json(), status=201)

    app = web.Application()
    app.router.add_post("/api/v1/namespaces/default/pods", create_pod)

    async def scenario(client):
        return await client.call(PodKind, Verb.CREATE, body=make_pod(), namespace="default")

    variant = run_against(app, scenario)

    assert variant.tag == "Created"
    assert received == [("application/json", make_pod())]


def test_call_list_with_query():
    queries = []

    async def list_pods(request):
        queries.append(dict(request.query))
        return web.json_response(
            {"apiVersion": "v1", "kind": "PodList", "metadata": {"resourceVersion": "5"}, "items": []}
        )

    app = web.Application()
    app.router.add_get("/api/v1/pods", list_pods)

    async def scenario(client):
        return await client.call(
            PodKind, Verb.LIST_FOR_ALL_NAMESPACES, optional=ListOptional(limit=5)
        )

    variant = run_against(app, scenario)

    assert variant.value.resource_version == "5"
    assert queries == [{"limit": "5"}]


def test_transient_server_errors_are_retried():
    attempts = []

    async def read_pod(request):
        attempts.append(1)
        if len(attempts) < 3:
            return web.json_response(make_status(503, "ServiceUnavailable", "try later"), status=503)
        return web.json_response(make_pod())

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/default/pods/nginx", read_pod)

    async def scenario(client):
        return await client.call(PodKind, Verb.READ, namespace="default", name="nginx")

    variant = run_against(app, scenario)

    assert variant.tag == "Ok"
    assert len(attempts) == 3


def test_unsupported_operation():
    app = web.Application()

    async def scenario(client):
        return await client.call(PriorityClassKind, Verb.LIST_FOR_ALL_NAMESPACES)

    with pytest.raises(OperationNotSupported):
        run_against(app, scenario)


def test_watch_resumes_after_disconnect():
    versions = []

    async def watch_pods(request):
        assert request.query["watch"] == "true"
        versions.append(request.query.get("resourceVersion"))

        if len(versions) == 1:
            lines = [
                event_line("ADDED", make_pod("a", "100")),
                event_line("MODIFIED", make_pod("a", "101")),
            ]
        else:
            lines = [event_line("DELETED", make_pod("a", "102"))]

        return await stream_lines(request, lines)

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/default/pods", watch_pods)

    async def scenario(client):
        return await take(client.watch(PodKind, namespace="default"), 3)

    events = run_against(app, scenario)

    assert [event.type for event in events] == [
        EventType.ADDED,
        EventType.MODIFIED,
        EventType.DELETED,
    ]
    assert versions == [None, "101"]


def test_watch_adopts_suggested_version():
    versions = []

    async def watch_pods(request):
        versions.append(request.query.get("resourceVersion"))

        if len(versions) == 1:
            lines = [
                event_line("ADDED", make_pod("a", "100")),
                event_line(
                    "ERROR",
                    make_status(410, "Expired", "too old resource version: 100 (250)"),
                ),
            ]
        else:
            lines = [event_line("MODIFIED", make_pod("a", "251"))]

        return await stream_lines(request, lines)

    app = web.Application()
    app.router.add_get("/api/v1/pods", watch_pods)

    async def scenario(client):
        return await take(client.watch(PodKind), 2)

    events = run_against(app, scenario)

    # the error itself is not handed out
    assert [event.type for event in events] == [EventType.ADDED, EventType.MODIFIED]
    assert versions == [None, "250"]


def test_watch_starts_from_given_version():
    versions = []

    async def watch_namespaces(request):
        versions.append(request.query.get("resourceVersion"))
        obj = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "ns", "resourceVersion": "8"}}
        return await stream_lines(request, [event_line("ADDED", obj)])

    app = web.Application()
    app.router.add_get("/api/v1/namespaces", watch_namespaces)

    async def scenario(client):
        gen = client.watch(NamespaceKind, optional=WatchOptional(resource_version="7"))
        return await take(gen, 1)

    events = run_against(app, scenario)

    assert events[0].object.metadata.name == "ns"
    assert versions == ["7"]


def test_watch_resume_point_excludes_failed_event():
    async def watch_pods(request):
        lines = [
            event_line("ADDED", make_pod("a", "100")),
            event_line("ADDED", make_pod("b", "101")),
        ]
        return await stream_lines(request, lines)

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/default/pods", watch_pods)

    async def scenario(client):
        gen = client.watch(PodKind, namespace="default")
        try:
            async for event in gen:
                if event.object.metadata.name == "b":
                    raise RuntimeError("handler failed")
        except RuntimeError:
            pass
        finally:
            await gen.aclose()
        return await client.get_resource_version(PodKind, "default")

    assert run_against(app, scenario) == "100"


def test_watch_gives_up_on_permanent_errors():
    async def watch_pods(request):
        return web.json_response(make_status(403, "Forbidden", "pods is forbidden"), status=403)

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/default/pods", watch_pods)

    async def scenario(client):
        return await take(client.watch(PodKind, namespace="default"), 1)

    with pytest.raises(ApiError) as info:
        run_against(app, scenario)

    assert info.value.code == 403
    assert info.value.reason == "Forbidden"


def test_connection_errors_are_retried_then_raised():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    async def main():
        async with ClientSession() as session:
            context = make_context(f"http://127.0.0.1:{port}")
            transport = AsyncTransport(session=session, context=context, retry_delay=0)
            request = RequestDescriptor(method="GET", path="/api/v1/namespaces")
            await transport.execute(request)

    with pytest.raises(ClientConnectorError):
        asyncio.run(main())


def test_api_error_from_response():
    body = json.dumps(make_status(410, "Expired", "too old resource version: 1 (5)")).encode()

    error = ApiError.from_response(410, body)

    assert error.code == 410
    assert error.is_resource_version_too_old()
    assert not error.is_retryable()

    error = ApiError.from_response(502, b"Bad Gateway")
    assert error.message == "Bad Gateway"
    assert error.is_retryable()
