import enum
import json
import logging
from typing import Any, AsyncIterator, Iterable, Iterator, List, Optional, Union

from kopenapi.errors import DecodeError
from kopenapi.model.api_resource import ApiResource
from kopenapi.model.codec import ObjectCodec
from kopenapi.model.object_model import KubeObject
from kopenapi.model.status import Status
from kopenapi.ops.params import WatchOptional


class EventType(enum.Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"
    BOOKMARK = "BOOKMARK"


class WatchEvent:
    def __init__(
        self, *, type: EventType, object: Union[KubeObject, Status], raw: Any
    ) -> None:
        self.type = type
        self.object = object
        self.raw = raw

    def __repr__(self) -> str:
        return "<%s type=%s, object=%r>" % (
            self.__class__.__name__,
            self.type.value,
            self.object,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, WatchEvent):
            return NotImplemented
        return (self.type, self.object) == (other.type, other.object)

    @property
    def is_error(self) -> bool:
        return self.type is EventType.ERROR

    @property
    def resource_version(self) -> Optional[str]:
        if isinstance(self.object, KubeObject) and self.object.metadata is not None:
            return self.object.metadata.resourceVersion
        return None


class StreamEnd:
    """
    How a watch stream ended. `truncated` means the connection dropped in the
    middle of an event, `fragment` holds the partial bytes that were dropped.
    `errors` lists the lines that could not be decoded and were skipped.
    """

    def __init__(
        self,
        *,
        truncated: bool,
        fragment: bytes = b"",
        cancelled: bool = False,
        errors: Optional[List[DecodeError]] = None,
    ) -> None:
        self.truncated = truncated
        self.fragment = fragment
        self.cancelled = cancelled
        self.errors = errors or []

    def __repr__(self) -> str:
        return "<%s truncated=%r, cancelled=%r, fragment=[%s bytes], errors=%s>" % (
            self.__class__.__name__,
            self.truncated,
            self.cancelled,
            len(self.fragment),
            len(self.errors),
        )


class WatchDecoder:
    """
    Splits a watch response into newline delimited envelopes, however the
    bytes happen to be chunked, and decodes each one on its own. A line that
    does not decode is logged, kept in `errors` and skipped.
    """

    def __init__(self, *, codec: ObjectCodec, resource: ApiResource, logger=None) -> None:
        self.codec = codec
        self.resource = resource
        self.logger = logger or logging.getLogger("watch")

        self.buffer = bytearray()
        self.errors: List[DecodeError] = []

    def feed(self, chunk: bytes) -> List[WatchEvent]:
        "Buffer a chunk and return the events of every line it completed"

        self.buffer.extend(chunk)

        events = []
        while True:
            idx = self.buffer.find(b"\n")
            if idx < 0:
                break

            # the line leaves the buffer before it is decoded
            line = bytes(self.buffer[:idx])
            del self.buffer[: idx + 1]

            if not line.strip():
                continue

            event = self.try_decode(line)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> List[WatchEvent]:
        "Decode a last line that arrived complete but without a newline"

        tail = bytes(self.buffer).strip()
        if not tail or not self.is_complete(tail):
            return []

        self.buffer.clear()
        event = self.try_decode(tail)
        return [event] if event is not None else []

    def is_complete(self, tail: bytes) -> bool:
        try:
            json.loads(tail)
        except ValueError:
            return False
        return True

    def finish(self) -> StreamEnd:
        tail = bytes(self.buffer)
        self.buffer.clear()

        if not tail.strip():
            return StreamEnd(truncated=False, errors=list(self.errors))

        self.logger.info(
            "Watch on %s ended in the middle of an event [len: %s]",
            self.resource.kind,
            len(tail),
        )
        return StreamEnd(truncated=True, fragment=tail, errors=list(self.errors))

    def abandon(self) -> StreamEnd:
        self.buffer.clear()
        return StreamEnd(truncated=False, cancelled=True, errors=list(self.errors))

    def try_decode(self, line: bytes) -> Optional[WatchEvent]:
        try:
            return self.decode_line(line)
        except DecodeError as exc:
            self.logger.warning("Skipping undecodable %s watch event: %s", self.resource.kind, exc)
            self.errors.append(exc)
            return None

    def decode_line(self, line: bytes) -> WatchEvent:
        self.logger.debug(
            "Parsing %s watch line [len: %s] as json", self.resource.kind, len(line)
        )

        try:
            dct = json.loads(line)
        except ValueError:
            raise DecodeError("Watch event is not valid json", fragment=line)

        if not isinstance(dct, dict) or "type" not in dct or "object" not in dct:
            raise DecodeError("Watch event is not a {type, object} envelope", fragment=line)

        try:
            type = EventType(dct["type"])
        except ValueError:
            raise DecodeError("Unknown watch event type", fragment=dct["type"], path="type")

        raw_obj = dct["object"]

        if type is EventType.ERROR:
            obj: Union[KubeObject, Status] = Status.from_dict(raw_obj)
        elif type is EventType.BOOKMARK:
            # bookmarks only carry metadata.resourceVersion
            obj = self.codec.decode_resource(self.resource, raw_obj, partial=True)
        else:
            obj = self.codec.decode_resource(self.resource, raw_obj)

        return WatchEvent(type=type, object=obj, raw=dct)


class WatchStream:
    """
    A lazy sequence of watch events over a sync or async iterable of response
    chunks. Single consumer.

    An event counts as processed once the consumer asks for the next one, and
    only then does its resource version become the resume point. Leaving the
    loop early (break, an exception, close()) ends the stream as cancelled
    and discards whatever was still buffered.
    """

    def __init__(
        self,
        *,
        decoder: WatchDecoder,
        chunks: Union[Iterable[bytes], AsyncIterator[bytes]],
        logger=None,
    ) -> None:
        self.decoder = decoder
        self.chunks = chunks
        self.logger = logger or logging.getLogger("watch")

        self.resource_version: Optional[str] = None
        self.end: Optional[StreamEnd] = None
        self.closed = False
        self.events_delivered = 0

    def __repr__(self) -> str:
        return "<%s kind=%r, resource_version=%r, delivered=%s, end=%r>" % (
            self.__class__.__name__,
            self.decoder.resource.kind,
            self.resource_version,
            self.events_delivered,
            self.end,
        )

    @property
    def errors(self) -> List[DecodeError]:
        return self.decoder.errors

    def close(self) -> None:
        "Stop at the next event boundary"
        self.closed = True

    def record(self, event: WatchEvent) -> None:
        version = event.resource_version
        if version:
            self.resource_version = version
        self.events_delivered += 1

    def resume_optional(self, optional: Optional[WatchOptional] = None) -> WatchOptional:
        optional = optional or WatchOptional()
        if self.resource_version is None:
            return optional.copy()  # type: ignore
        return optional.copy(resource_version=self.resource_version)  # type: ignore

    def deliver(self, events: List[WatchEvent]) -> Iterator[WatchEvent]:
        for event in events:
            if self.closed:
                return
            yield event
            self.record(event)

    def conclude(self, completed: bool) -> None:
        if self.end is not None:
            return

        if completed and not self.closed:
            self.end = self.decoder.finish()
        else:
            self.end = self.decoder.abandon()
            self.logger.debug(
                "Watch on %s cancelled after %s events",
                self.decoder.resource.kind,
                self.events_delivered,
            )

    def __iter__(self) -> Iterator[WatchEvent]:
        if hasattr(self.chunks, "__aiter__"):
            raise TypeError("Use 'async for' on a watch over an async stream")

        completed = False
        try:
            for chunk in self.chunks:  # type: ignore
                if self.closed:
                    break
                yield from self.deliver(self.decoder.feed(chunk))

            if not self.closed:
                yield from self.deliver(self.decoder.flush())
            completed = True
        finally:
            self.conclude(completed)

    def __aiter__(self):
        return self.aiterate()

    async def aiterate(self):
        if not hasattr(self.chunks, "__aiter__"):
            for event in self:
                yield event
            return

        completed = False
        try:
            async for chunk in self.chunks:  # type: ignore
                if self.closed:
                    break
                for event in self.deliver(self.decoder.feed(chunk)):
                    yield event

            if not self.closed:
                for event in self.deliver(self.decoder.flush()):
                    yield event
            completed = True
        finally:
            self.conclude(completed)
