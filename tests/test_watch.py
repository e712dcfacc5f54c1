import asyncio
import json

import pytest

from conftest import make_pod, make_status
from kopenapi.errors import DecodeError
from kopenapi.model.catalog import PodKind
from kopenapi.model.status import Status
from kopenapi.ops.params import WatchOptional
from kopenapi.ops.verbs import Verb
from kopenapi.ops.watch import EventType


def event_line(type: str, obj) -> bytes:
    return json.dumps({"type": type, "object": obj}).encode() + b"\n"


def pod_events(count: int) -> bytes:
    return b"".join(event_line("ADDED", make_pod(f"pod-{i}", str(100 + i))) for i in range(count))


@pytest.fixture
def handle(registry):
    return registry.resolve(PodKind, Verb.WATCH)


def test_events_in_order(handle):
    stream = handle.stream([pod_events(5)])

    events = list(stream)

    assert [event.object.metadata.name for event in events] == [f"pod-{i}" for i in range(5)]
    assert stream.resource_version == "104"
    assert stream.events_delivered == 5
    assert stream.end.truncated is False


@pytest.mark.parametrize("size", [1, 2, 7, 64, 1000])
def test_chunking_does_not_matter(handle, size):
    payload = pod_events(4)
    chunks = [payload[i : i + size] for i in range(0, len(payload), size)]

    events = list(handle.stream(chunks))

    assert [event.object.metadata.name for event in events] == [f"pod-{i}" for i in range(4)]


def test_blank_lines_are_skipped(handle):
    payload = b"\n" + event_line("ADDED", make_pod()) + b"\r\n\n"

    events = list(handle.stream([payload]))

    assert len(events) == 1


def test_last_event_without_newline(handle):
    payload = pod_events(2) + event_line("DELETED", make_pod("gone", "200")).rstrip(b"\n")

    stream = handle.stream([payload])
    events = list(stream)

    assert [event.type for event in events] == [EventType.ADDED, EventType.ADDED, EventType.DELETED]
    assert stream.end.truncated is False


def test_truncated_tail(handle):
    partial = event_line("ADDED", make_pod("cut", "300"))[:40]
    stream = handle.stream([pod_events(2), partial])

    events = list(stream)

    assert len(events) == 2
    assert stream.end.truncated is True
    assert stream.end.fragment == partial
    # resume from the last event that was processed
    assert stream.resource_version == "101"


def test_close_stops_at_event_boundary(handle):
    stream = handle.stream([pod_events(5)])

    names = []
    for event in stream:
        names.append(event.object.metadata.name)
        if len(names) == 2:
            stream.close()

    assert names == ["pod-0", "pod-1"]
    assert stream.end.cancelled is True


def test_resume_optional(handle):
    stream = handle.stream([pod_events(3)])
    list(stream)

    optional = stream.resume_optional(WatchOptional(label_selector="app=nginx"))

    assert optional == WatchOptional(label_selector="app=nginx", resource_version="102")


def test_resume_optional_before_any_event(handle):
    stream = handle.stream([])

    assert stream.resume_optional() == WatchOptional()


def test_error_event_carries_status(handle):
    status = make_status(410, "Expired", "too old resource version: 100 (250)")
    stream = handle.stream([pod_events(1) + event_line("ERROR", status)])

    events = list(stream)

    assert events[1].is_error
    assert isinstance(events[1].object, Status)
    assert events[1].object.is_resource_version_too_old()
    assert events[1].object.extract_resource_version() == "250"
    # errors do not move the resume point
    assert stream.resource_version == "100"


def test_bookmark_event(handle):
    bookmark = {"kind": "Pod", "apiVersion": "v1", "metadata": {"resourceVersion": "999"}}
    stream = handle.stream([event_line("BOOKMARK", bookmark)])

    events = list(stream)

    assert events[0].type is EventType.BOOKMARK
    assert stream.resource_version == "999"


def test_malformed_line_is_skipped(handle):
    payload = pod_events(1) + b"{not json}\n" + event_line("ADDED", make_pod("after", "150"))
    stream = handle.stream([payload])

    events = list(stream)

    assert [event.object.metadata.name for event in events] == ["pod-0", "after"]
    assert stream.resource_version == "150"
    assert stream.end.truncated is False
    assert len(stream.end.errors) == 1
    assert isinstance(stream.end.errors[0], DecodeError)
    assert stream.end.errors[0].fragment == b"{not json}"


def test_unknown_event_type(handle):
    stream = handle.stream([event_line("EXPLODED", make_pod()) + pod_events(1)])

    events = list(stream)

    assert len(events) == 1
    assert stream.errors[0].path == "type"


def test_resume_point_excludes_event_being_processed(handle):
    stream = handle.stream([pod_events(3)])

    with pytest.raises(RuntimeError):
        for event in stream:
            if event.object.metadata.name == "pod-1":
                raise RuntimeError("handler failed")

    assert stream.resource_version == "100"
    assert stream.resume_optional().resource_version == "100"


def test_break_cancels_and_clears_buffer(handle):
    stream = handle.stream([pod_events(3)])

    for event in stream:
        break

    assert stream.end.cancelled is True
    assert stream.decoder.buffer == bytearray()
    # the first event was never finished with
    assert stream.resource_version is None


def test_async_stream_closed_midway(handle):
    async def chunks():
        yield pod_events(2)
        yield event_line("ADDED", make_pod("late", "300"))[:20]

    async def consume():
        stream = handle.stream(chunks())
        events = stream.aiterate()
        first = await events.__anext__()
        second = await events.__anext__()
        await events.aclose()
        return stream, first, second

    stream, first, second = asyncio.run(consume())

    assert second.object.metadata.name == "pod-1"
    assert stream.resource_version == "100"
    assert stream.end.cancelled is True


def test_decoder_feed_returns_completed_events(handle):
    decoder = handle.stream([]).decoder
    line = event_line("ADDED", make_pod("split", "400"))

    assert decoder.feed(line[:30]) == []
    events = decoder.feed(line[30:] + b"\n" + line[:10])

    assert [event.object.metadata.name for event in events] == ["split"]
    assert decoder.flush() == []
    assert decoder.finish().truncated is True



def test_async_chunks(handle):
    async def chunks():
        payload = pod_events(3)
        for i in range(0, len(payload), 50):
            await asyncio.sleep(0)
            yield payload[i : i + 50]

    async def consume():
        return [event async for event in handle.stream(chunks())]

    events = asyncio.run(consume())

    assert [event.object.metadata.name for event in events] == ["pod-0", "pod-1", "pod-2"]


def test_sync_iteration_over_async_chunks(handle):
    async def chunks():
        yield pod_events(1)

    with pytest.raises(TypeError):
        list(handle.stream(chunks()))


def test_stream_only_for_watches(registry):
    with pytest.raises(TypeError):
        registry.resolve(PodKind, Verb.LIST).stream([])
