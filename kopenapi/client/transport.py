import asyncio
import json
import logging
from asyncio.exceptions import TimeoutError
from asyncio.locks import Lock
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from aiohttp import ClientResponse, ClientSession
from aiohttp.client import ClientTimeout
from aiohttp.client_exceptions import (
    ClientConnectorCertificateError,
    ClientConnectorError,
    ClientConnectorSSLError,
    ClientOSError,
    ClientPayloadError,
    ServerTimeoutError,
    TooManyRedirects,
)

from kopenapi.client.auth import AuthProvider
from kopenapi.client.config import Context
from kopenapi.errors import KubeOpenApiError, OperationNotSupported
from kopenapi.model.api_resource import ApiResource
from kopenapi.model.status import Status
from kopenapi.ops.params import ClientOperationParams, DeleteOptional, WatchOptional
from kopenapi.ops.registry import OperationHandle, Registry
from kopenapi.ops.request import RequestDescriptor
from kopenapi.ops.response import ResponseVariant
from kopenapi.ops.verbs import Verb
from kopenapi.ops.watch import WatchEvent
from kopenapi.tools.logs import CtxLogger

retriable_connection_errors = (
    ClientConnectorError,
    ServerTimeoutError,
    TimeoutError,
    TooManyRedirects,
    ClientOSError,
    ClientConnectorCertificateError,
    ClientConnectorSSLError,
)

# the server closing a watch after its timeout looks like one of these
successful_completion_exceptions = (
    TimeoutError,
    ClientPayloadError,
)


class ApiError(KubeOpenApiError):
    def __init__(self, code: int, reason: str, message: str) -> None:
        super().__init__()

        self.code = code
        self.reason = reason
        self.message = message

    def __repr__(self) -> str:
        return "%s(code=%r, reason=%r, message=%r)" % (
            self.__class__.__name__,
            self.code,
            self.reason,
            self.message,
        )

    def __str__(self) -> str:
        return self.__repr__()

    @classmethod
    def from_status(cls, status: Status) -> "ApiError":
        return cls(
            code=status.code or 0,
            reason=status.reason or "",
            message=status.message or "",
        )

    @classmethod
    def from_response(cls, code: int, body: bytes) -> "ApiError":
        try:
            dct = json.loads(body)
        except ValueError:
            dct = None

        if isinstance(dct, dict) and dct.get("kind") == "Status":
            error = cls.from_status(Status.from_dict(dct))
            error.code = error.code or code
            return error

        return cls(code=code, reason="", message=body.decode(errors="replace"))

    def is_retryable(self) -> bool:
        return self.code in (429, 500, 502, 503, 504)

    def is_resource_version_too_old(self) -> bool:
        status = Status(code=self.code, reason=self.reason, message=self.message)
        return status.is_resource_version_too_old()


class AsyncTransport:
    """
    Performs RequestDescriptors against the cluster of one kube context.
    Knows nothing about operations, only about connections.
    """

    def __init__(
        self,
        *,
        session: ClientSession,
        context: Context,
        max_retries: int = 3,
        retry_delay: float = 0.3,
        logger=None,
    ) -> None:
        self.session = session
        self.context = context
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = logger or logging.getLogger("transport")

        self.ssl_context = self.context.create_ssl_context()
        self.auth_provider = AuthProvider(context)

    def __repr__(self) -> str:
        return "<%s context=%r, server=%r>" % (
            self.__class__.__name__,
            self.context.name,
            self.context.cluster.server,
        )

    # Logging

    def get_ctx_logger(self, request: RequestDescriptor) -> CtxLogger:
        return CtxLogger(
            logger=self.logger,
            extra={"context": self.context.short_name, "request": request.method},
            prefix="[%(context)s] [%(request)s] ",
        )

    # Requests

    def get_request_kwargs(self, request: RequestDescriptor, total: int) -> Dict[str, Any]:
        credentials = self.auth_provider.get_credentials()

        headers = dict(request.headers)
        headers.update(credentials.get_headers())

        return dict(
            data=request.body,
            headers=headers,
            ssl=self.ssl_context,
            auth=credentials.basic_auth,
            allow_redirects=True,
            timeout=ClientTimeout(
                sock_connect=3,
                total=total,
            ),
        )

    async def open(self, request: RequestDescriptor, total: int) -> ClientResponse:
        log = self.get_ctx_logger(request)
        url = f"{self.context.cluster.server}{request.url}"

        retries = 0
        while True:
            try:
                log.info("Requesting %s", url)
                kwargs = self.get_request_kwargs(request, total)
                response = await self.session.request(request.method, url, **kwargs)

            except retriable_connection_errors as exc:
                if retries < self.max_retries:
                    retries += 1
                    log.warning("Request failed with retryable error: %r - retrying", exc)

                    await asyncio.sleep(self.retry_delay)
                    continue

                log.exception("Request failed with non-retryable error - giving up")
                raise

            if response.status in (429, 500, 502, 503, 504) and retries < self.max_retries:
                retries += 1
                log.warning("Request failed with status %s - retrying", response.status)
                response.release()

                await asyncio.sleep(self.retry_delay)
                continue

            return response

    async def execute(self, request: RequestDescriptor) -> Tuple[int, bytes]:
        log = self.get_ctx_logger(request)

        response = await self.open(request, total=15)
        try:
            body = await response.read()
        finally:
            response.release()

        log.debug("Received status %s [len: %s]", response.status, len(body))
        return response.status, body

    async def stream(self, request: RequestDescriptor) -> AsyncIterator[bytes]:
        log = self.get_ctx_logger(request)

        response = await self.open(request, total=300)
        try:
            if response.status != 200:
                body = await response.read()
                raise ApiError.from_response(response.status, body)

            # read one line at a time, b'\n' terminated
            while True:
                line = await response.content.readline()

                if not line:
                    log.info("Received empty line, exiting")
                    break

                yield line

        finally:
            response.release()


class AsyncClient:
    """
    Typed calls against one cluster: resolves the operation in the registry,
    builds the request, hands it to the transport and parses the answer.
    """

    def __init__(
        self,
        *,
        transport: AsyncTransport,
        registry: Registry,
        restart_delay: float = 1,
        logger=None,
    ) -> None:
        self.transport = transport
        self.registry = registry
        self.restart_delay = restart_delay
        self.logger = logger or logging.getLogger("client")

        self.resource_version_lock = Lock()
        self.resource_versions: Dict[Tuple[Any, Optional[str]], str] = {}

    # Logging

    def get_ctx_logger(self, resource: ApiResource, namespace: Optional[str]) -> CtxLogger:
        return CtxLogger(
            logger=self.logger,
            extra={
                "context": self.transport.context.short_name,
                "selector": "%s/%s" % (namespace or "*", resource.qualified_name),
            },
            prefix="[%(context)s] [%(selector)s] ",
        )

    # Manage resourceVersion

    async def get_resource_version(
        self, resource: ApiResource, namespace: Optional[str]
    ) -> Optional[str]:
        async with self.resource_version_lock:
            return self.resource_versions.get((resource.identity, namespace))

    async def update_resource_version(
        self, resource: ApiResource, namespace: Optional[str], version: Optional[str]
    ) -> None:
        async with self.resource_version_lock:
            key = (resource.identity, namespace)
            if version is None:
                self.resource_versions.pop(key, None)
            else:
                self.resource_versions[key] = version

    # Operations

    def resolve(self, resource: ApiResource, verb: Verb) -> OperationHandle:
        handle = self.registry.resolve(resource, verb)
        if not handle:
            raise OperationNotSupported(resource.kind, verb.value, handle.reason)  # type: ignore
        return handle  # type: ignore

    async def call(
        self,
        resource: ApiResource,
        verb: Verb,
        body: Any = None,
        optional: Optional[ClientOperationParams] = None,
        delete_optional: Optional[DeleteOptional] = None,
        **path_params: Any,
    ) -> ResponseVariant:
        if verb.is_watch:
            raise TypeError("Use watch() for %s" % verb.value)

        handle = self.resolve(resource, verb)
        request = handle.build(
            body=body, optional=optional, delete_optional=delete_optional, **path_params
        )

        status_code, payload = await self.transport.execute(request)
        return handle.parse(status_code, payload)

    async def watch(
        self,
        resource: ApiResource,
        namespace: Optional[str] = None,
        optional: Optional[WatchOptional] = None,
    ) -> AsyncIterator[WatchEvent]:
        """
        Yields events until the consumer stops. Whenever the connection ends
        the watch is restarted from the last event the consumer finished with.
        """

        log = self.get_ctx_logger(resource, namespace)

        path_params = {}
        if resource.namespaced and namespace:
            verb = Verb.WATCH
            path_params["namespace"] = namespace
        elif resource.namespaced:
            verb = Verb.WATCH_FOR_ALL_NAMESPACES
        else:
            verb = Verb.WATCH

        handle = self.resolve(resource, verb)

        optional = optional or WatchOptional()
        if optional.resource_version is not None:  # type: ignore
            await self.update_resource_version(
                resource, namespace, optional.resource_version  # type: ignore
            )

        while True:
            version = await self.get_resource_version(resource, namespace)
            request = handle.build(
                optional=optional.copy(resource_version=version), **path_params
            )

            chunks = self.transport.stream(request)
            stream = handle.stream(chunks)
            events = stream.aiterate()

            log.info("Watching %s objects from version %r", resource.kind, version)
            try:
                async for event in events:
                    if event.is_error:
                        status: Status = event.object  # type: ignore

                        # the server said our resourceVersion is too old, but
                        # also told us an acceptable one so let's use that
                        if status.is_resource_version_too_old():
                            suggested = status.extract_resource_version()
                            log.info(
                                "Resource version %r too old - resuming from %r",
                                version,
                                suggested,
                            )
                            await self.update_resource_version(resource, namespace, suggested)
                            break

                        raise ApiError.from_status(status)

                    yield event

                    # the consumer asked for more, so it is done with this one
                    if event.resource_version:
                        await self.update_resource_version(
                            resource, namespace, event.resource_version
                        )

                else:
                    log.info("Watch request completed - restarting: %r", stream.end)
                    await asyncio.sleep(self.restart_delay)

            except successful_completion_exceptions as exc:
                log.info("Watch request completed - restarting: %r", exc)
                await asyncio.sleep(self.restart_delay)

            except retriable_connection_errors as exc:
                log.warning("Watch request failed with retryable error: %r - retrying", exc)
                await asyncio.sleep(self.restart_delay)

            except ApiError as exc:
                if exc.is_retryable():
                    log.warning("Watch request failed with retryable error: %r - retrying", exc)
                    await asyncio.sleep(self.restart_delay)
                    continue

                if exc.is_resource_version_too_old():
                    log.info("Resource version %r too old - relisting from now", version)
                    await self.update_resource_version(resource, namespace, None)
                    continue

                log.exception("Watch request failed with non-retryable error - giving up")
                raise

            finally:
                stream.close()
                await events.aclose()
                await chunks.aclose()  # type: ignore
