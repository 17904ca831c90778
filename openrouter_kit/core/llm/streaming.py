from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator

import httpx
from pydantic import ValidationError

from openrouter_kit.api.models import ChatCompletionChunk, ChatCompletionRequest
from openrouter_kit.core.llm.base import Endpoint, HTTPMethod, error_from_status
from openrouter_kit.core.llm.utils import strip_prefix, truncate

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
MAX_ERROR_BODY_BYTES = 1024 * 1024


class _End:
    """Terminal marker: the stream finished without error."""


class _Failure:
    """Terminal marker carrying the error that ended the stream."""

    def __init__(self, error: BaseException) -> None:
        self.error = error


_END = _End()


class ChatCompletionStream(AsyncIterator[ChatCompletionChunk]):
    """Single-consumer stream of completion chunks fed by a producer task.

    Iteration ends cleanly on EOF or cancellation and raises the producer's
    error otherwise. Leaving the ``async with`` block cancels the producer.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._finished = False
        self._buffer: list[str] = []

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task
        task.add_done_callback(self._on_producer_done)

    def _push(self, chunk: ChatCompletionChunk) -> None:
        self._queue.put_nowait(chunk)

    def _on_producer_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            # undelivered chunks belong to a stopped stream
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(_END)
            return
        error = task.exception()
        self._queue.put_nowait(_Failure(error) if error is not None else _END)

    @property
    def content(self) -> str:
        """Text accumulated from the chunks consumed so far."""
        return "".join(self._buffer)

    async def __aenter__(self) -> "ChatCompletionStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __aiter__(self) -> "ChatCompletionStream":
        return self

    async def __anext__(self) -> ChatCompletionChunk:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._finished = True
            raise item.error
        self._buffer.append(item.text)
        return item

    async def aclose(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        self._finished = True


class StreamingSession:
    """Owns at most one live SSE completion stream.

    Starting a stream cancels the previous one before the new request is sent.
    """

    def __init__(self, http_client: httpx.AsyncClient, *, max_error_body_bytes: int = MAX_ERROR_BODY_BYTES) -> None:
        self._http = http_client
        self._max_error_body_bytes = max_error_body_bytes
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start_stream(self, request: ChatCompletionRequest) -> ChatCompletionStream:
        async with self._lock:
            await self._cancel_current()
            request = request.model_copy(update={"stream": True})
            stream = ChatCompletionStream()
            task = asyncio.create_task(self._produce(request, stream))
            stream._attach(task)
            self._task = task
            logger.debug(f"Started completion stream for model {request.model}")
            return stream

    async def stop_streaming(self) -> None:
        async with self._lock:
            await self._cancel_current()

    async def _cancel_current(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait([task])
        logger.debug("Cancelled active completion stream")

    async def _produce(self, request: ChatCompletionRequest, stream: ChatCompletionStream) -> None:
        async with self._http.stream(
            HTTPMethod.POST.value,
            Endpoint.CHAT_COMPLETIONS.path,
            content=request.to_payload(),
            headers={"Accept": "text/event-stream"},
        ) as response:
            if not response.is_success:
                body = await self._read_error_body(response)
                raise error_from_status(response.status_code, body)

            async for line in response.aiter_lines():
                payload = strip_prefix(line, SSE_DATA_PREFIX)
                if payload is None:
                    continue
                try:
                    chunk = ChatCompletionChunk.model_validate_json(payload)
                except ValidationError:
                    logger.debug(f"Dropping malformed stream frame: {truncate(payload)}")
                    continue
                stream._push(chunk)

    async def _read_error_body(self, response: httpx.Response) -> bytes:
        body = bytearray()
        async for piece in response.aiter_bytes():
            body.extend(piece)
            if len(body) >= self._max_error_body_bytes:
                break
        return bytes(body[: self._max_error_body_bytes])
