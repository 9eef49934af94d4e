"""
MQTT v5 Client Connection and RPC Request/Response Management.

This module provides:
- A wrapper around `aiomqtt` for connecting to the broker that fronts the App Service.
- The MQTT v5 Request/Response pattern: every request carries a response
  topic and fresh correlation data, and a single listener task routes
  responses back to the pending call (or open stream) they belong to.
- Server-streaming calls (`ResponseStream`) that end on an `end` envelope,
  an error envelope, or an explicit cancel.

Response envelopes are JSON objects of one of the forms
`{"result": {...}}`, `{"error": {"code": ..., "message": ...}}` or
`{"end": true}`.
"""
import asyncio
import json
import logging
import uuid
from contextlib import AsyncExitStack
from typing import Any, Dict, Optional, Type, Union

from aiomqtt import Client as MQTTClient, MqttError, ProtocolVersion
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from fleet_app_client.errors import RPCError, StatusCode
from fleet_app_client.models import BaseMessage

logger = logging.getLogger(__name__)

# Marks the end of a server stream inside a stream queue.
_END_OF_STREAM = object()


def _parse_envelope(payload: Union[bytes, bytearray, str]) -> Union[Dict[str, Any], RPCError, object]:
    """Turns a response payload into a result dict, an RPCError or the end marker."""
    try:
        envelope = json.loads(payload)
    except (TypeError, ValueError) as e:
        return RPCError(StatusCode.INTERNAL, f"Malformed response payload: {e}")

    if not isinstance(envelope, dict):
        return RPCError(StatusCode.INTERNAL, "Response envelope is not a JSON object")
    if 'error' in envelope:
        return RPCError.from_payload(envelope['error'])
    if envelope.get('end'):
        return _END_OF_STREAM
    result = envelope.get('result')
    return result if isinstance(result, dict) else {}


def _decode_result(response_type: Type[BaseMessage], method: str, result: Dict[str, Any]) -> BaseMessage:
    """Builds the response message; content that does not fit its schema is an INTERNAL error."""
    try:
        return response_type.from_dict(result)
    except (TypeError, ValueError) as e:
        raise RPCError(StatusCode.INTERNAL, f"Malformed {method} response: {e}") from e


class RPCConnection:
    host: str
    port: int
    client_id: str
    username: Optional[str]
    password: Optional[str]
    topic_prefix: str
    response_topic: str
    request_timeout: Optional[float]
    _client: Optional[MQTTClient]
    _exit_stack: Optional[AsyncExitStack]
    _listener_task: Optional[asyncio.Task]

    """
    Manages one MQTT v5 connection and the request/response calls made over it.
    """
    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        mqtt_conf = config.get('mqtt') or {}
        self.host = mqtt_conf.get('host', 'localhost')
        self.port = int(mqtt_conf.get('port', 1883)) # Must be int

        # Identity & Auth
        self.client_id = mqtt_conf.get('client_id') or f"fleet-app-client-{uuid.uuid4().hex[:8]}"
        self.username = mqtt_conf.get('username', None)
        self.password = mqtt_conf.get('password', None)

        self.topic_prefix = str(config.get('topic_prefix', 'fleet/app/v1')).rstrip('/')
        self.response_topic = f"{self.topic_prefix}/responses/{self.client_id}"
        timeout = config.get('request_timeout', 30.0)
        self.request_timeout = float(timeout) if timeout is not None else None

        # Internal state
        self._client = None
        self._exit_stack = None
        self._listener_task = None
        self._connection_lost = False
        self._pending: Dict[bytes, asyncio.Future] = {}
        self._streams: Dict[bytes, asyncio.Queue] = {}

    @property
    def is_connected(self) -> bool:
        return self._client is not None and not self._connection_lost

    async def start(self):
        """
        Connects to the broker, subscribes to this client's response topic
        and launches the listener task.
        """
        if self._client is not None:
            logger.warning("Attempted to start the connection, but it is already running.")
            return

        logger.info(f"Connecting to {self.host}:{self.port} as {self.client_id}...")
        stack = AsyncExitStack()
        try:
            client = await stack.enter_async_context(
                MQTTClient(self.host,
                           self.port,
                           protocol=ProtocolVersion.V5,
                           identifier=self.client_id,
                           username=self.username,
                           password=self.password))
            await client.subscribe(self.response_topic, qos=1)
        except MqttError as e:
            await stack.aclose()
            raise RPCError(StatusCode.UNAVAILABLE, f"Could not connect to {self.host}:{self.port}: {e}") from e

        self._client = client
        self._exit_stack = stack
        self._connection_lost = False
        self._listener_task = asyncio.create_task(self._listen(client))
        logger.info(f"Connected. Listening for responses on '{self.response_topic}'")

    async def stop(self):
        """
        Cancels the listener, fails whatever is still in flight and closes the connection.
        """
        if self._client is None:
            return

        logger.info("Stopping RPC connection...")
        if self._listener_task:
            self._listener_task.cancel()
            await asyncio.gather(self._listener_task, return_exceptions=True)
            self._listener_task = None

        self._fail_all(RPCError(StatusCode.CANCELLED, "Connection closed"))
        stack = self._exit_stack
        self._client = None
        self._exit_stack = None
        try:
            await stack.aclose()
        except MqttError as e:
            logger.error(f"Error during MQTT disconnect: {e}")
        logger.info("RPC connection stopped.")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # --- Calls ---

    def unary_unary(self, method: str, response_type: Type[BaseMessage]) -> "UnaryUnaryCall":
        return UnaryUnaryCall(self, method, response_type)

    def unary_stream(self, method: str, response_type: Type[BaseMessage]) -> "UnaryStreamCall":
        return UnaryStreamCall(self, method, response_type)

    async def call(self, method: str, request: BaseMessage) -> Dict[str, Any]:
        """
        Publishes one request and waits for its response. Returns the
        decoded `result` object or raises the `RPCError` the service sent.
        """
        correlation = self._new_correlation()
        future = asyncio.get_running_loop().create_future()
        self._pending[correlation] = future
        try:
            await self._publish(self._request_topic(method), request.to_bytes(), correlation)
            return await asyncio.wait_for(future, self.request_timeout)
        except asyncio.TimeoutError:
            raise RPCError(StatusCode.DEADLINE_EXCEEDED,
                           f"{method} got no response within {self.request_timeout}s") from None
        finally:
            self._pending.pop(correlation, None)

    def _open_stream(self, correlation: bytes) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._streams[correlation] = queue
        return queue

    def _close_stream(self, correlation: bytes):
        self._streams.pop(correlation, None)

    async def _send_cancel(self, correlation: bytes):
        await self._publish(f"{self.topic_prefix}/cancel", b"{}", correlation)

    # --- Internals ---

    def _request_topic(self, method: str) -> str:
        return f"{self.topic_prefix}/rpc/{method}"

    @staticmethod
    def _new_correlation() -> bytes:
        return uuid.uuid4().hex.encode('ascii')

    async def _publish(self, topic: str, payload: bytes, correlation: bytes):
        if not self.is_connected:
            raise RPCError(StatusCode.UNAVAILABLE, "Not connected")

        properties = Properties(PacketTypes.PUBLISH)
        properties.ResponseTopic = self.response_topic
        properties.CorrelationData = correlation
        try:
            await self._client.publish(topic, payload=payload, qos=1, properties=properties)
        except MqttError as e:
            raise RPCError(StatusCode.UNAVAILABLE, f"Publish to '{topic}' failed: {e}") from e
        logger.debug(f"Published to '{topic}' [{correlation.decode('ascii')}]: {payload!r}")

    async def _listen(self, client: MQTTClient):
        """The background worker that routes responses to their callers."""
        try:
            async for message in client.messages:
                self._dispatch(message)
        except MqttError as e:
            logger.error(f"MQTT connection lost: {e}")
            self._connection_lost = True
            self._fail_all(RPCError(StatusCode.UNAVAILABLE, f"Connection lost: {e}"))

    def _dispatch(self, message):
        correlation = getattr(message.properties, 'CorrelationData', None)
        if not correlation:
            logger.warning(f"Ignoring message on '{message.topic}' without correlation data")
            return
        correlation = bytes(correlation)
        item = _parse_envelope(message.payload)

        future = self._pending.pop(correlation, None)
        if future is not None:
            if future.done():
                return
            if isinstance(item, RPCError):
                future.set_exception(item)
            elif item is _END_OF_STREAM:
                future.set_result({})
            else:
                future.set_result(item)
            return

        queue = self._streams.get(correlation)
        if queue is not None:
            queue.put_nowait(item)
            return

        logger.debug(f"Dropping response for unknown correlation {correlation!r}")

    def _fail_all(self, error: RPCError):
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()
        for queue in self._streams.values():
            queue.put_nowait(error)
        self._streams.clear()


class UnaryUnaryCall:
    """Awaitable callable for one request/response procedure."""

    def __init__(self, connection: RPCConnection, method: str, response_type: Type[BaseMessage]):
        self._connection = connection
        self._method = method
        self._response_type = response_type

    async def __call__(self, request: BaseMessage):
        result = await self._connection.call(self._method, request)
        return _decode_result(self._response_type, self._method, result)


class UnaryStreamCall:
    """Callable for a server-streaming procedure; returns a `ResponseStream`."""

    def __init__(self, connection: RPCConnection, method: str, response_type: Type[BaseMessage]):
        self._connection = connection
        self._method = method
        self._response_type = response_type

    def __call__(self, request: BaseMessage) -> "ResponseStream":
        return ResponseStream(self._connection, self._method, request, self._response_type)


class ResponseStream:
    """
    The responses of one server-streaming call.

    The request is published on the first iteration. `cancel()` asks the
    service to stop pushing and ends the iteration; it is a no-op for a
    stream that never started or already finished. A response that does
    not decode cancels the stream and raises `RPCError(INTERNAL)`.
    """

    def __init__(self, connection: RPCConnection, method: str, request: BaseMessage,
                 response_type: Type[BaseMessage]):
        self._connection = connection
        self._method = method
        self._request = request
        self._response_type = response_type
        self._correlation = RPCConnection._new_correlation()
        self._queue: Optional[asyncio.Queue] = None
        self._finished = False

    @property
    def started(self) -> bool:
        return self._queue is not None

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._finished:
            raise StopAsyncIteration
        if self._queue is None:
            await self._start()

        item = await self._queue.get()
        if item is _END_OF_STREAM:
            self._finish()
            raise StopAsyncIteration
        if isinstance(item, RPCError):
            self._finish()
            raise item
        try:
            return _decode_result(self._response_type, self._method, item)
        except RPCError:
            # The service keeps pushing until told otherwise.
            await self._abort()
            raise

    async def _start(self):
        self._queue = self._connection._open_stream(self._correlation)
        logger.debug(f"Opening stream {self._method}")
        try:
            await self._connection._publish(self._connection._request_topic(self._method),
                                            self._request.to_bytes(), self._correlation)
        except RPCError:
            self._finish()
            raise

    def _finish(self):
        self._finished = True
        self._connection._close_stream(self._correlation)

    async def cancel(self):
        if self._finished:
            return
        started = self.started
        self._finish()
        if started and self._connection.is_connected:
            logger.debug(f"Cancelling stream {self._method}")
            await self._connection._send_cancel(self._correlation)

    async def _abort(self):
        try:
            await self.cancel()
        except RPCError as e:
            logger.warning(f"Could not cancel stream {self._method}: {e}")
