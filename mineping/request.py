import asyncio
from collections.abc import Awaitable
from enum import Enum
from typing import Any

from loguru import logger

from .errors import PingTimeoutError, TransportError


class RequestState(Enum):
    """
    Lifecycle of a single status request.

    `COMPLETE` and `FAILED` are terminal, at most one of them is ever entered.
    """

    def __str__(self) -> str:
        return str(self.name)

    CONNECTING = 0
    CONNECTED = 1
    AWAITING_RESPONSE = 2
    COMPLETE = 3
    FAILED = 4


class StatusRequest:
    """
    Single-shot bookkeeping shared by the TCP and UDP status protocols.

    Owns the timeout timer, the connect task and the transport of one request.
    Every terminal path goes through `resolve` or `fail`, both of which run
    `cleanup` before settling the outcome.
    """

    def __init__(self, address: tuple[str, int], timeout: int) -> None:
        self.address = address
        self.state = RequestState.CONNECTING
        self.transport: asyncio.BaseTransport | None = None

        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future = self._loop.create_future()
        self._connect_task: asyncio.Future | None = None
        self._cleaned_up = False
        # Fires regardless of socket state, so a request can never hang.
        self._timeout_handle = self._loop.call_later(timeout / 1000, self._on_timeout)

    @property
    def done(self) -> bool:
        return self.state in (RequestState.COMPLETE, RequestState.FAILED)

    def attach(self, connect: Awaitable[Any]) -> None:
        """Schedule the coroutine that opens the transport for this request."""
        self._connect_task = asyncio.ensure_future(connect)
        self._connect_task.add_done_callback(self._on_connect_done)

    def resolve(self, response: Any) -> None:
        if self.done or self._future.done():
            return
        self.state = RequestState.COMPLETE
        self.cleanup()
        self._future.set_result(response)

    def fail(self, exc: BaseException) -> None:
        if self.done or self._future.done():
            logger.debug("dropping error for {}:{} after settlement: {!r}", *self.address, exc)
            return
        logger.debug("request to {}:{} failed: {!r}", *self.address, exc)
        self.state = RequestState.FAILED
        self.cleanup()
        self._future.set_exception(exc)

    def cleanup(self) -> None:
        """Release the timer, the connect task and the transport. Safe to call repeatedly."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        logger.debug("cleaning up resources for {}:{}", *self.address)

        self._timeout_handle.cancel()
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self.transport is not None:
            self.transport.close()

    async def wait(self) -> Any:
        """Wait for the single outcome of this request."""
        try:
            return await self._future
        except asyncio.CancelledError:
            if not self.done:
                self.state = RequestState.FAILED
            raise
        finally:
            self.cleanup()

    def _adopt_transport(self, transport: asyncio.BaseTransport) -> bool:
        """Take ownership of a freshly opened transport, or close it if we are already done."""
        if self._cleaned_up:
            transport.close()
            return False
        self.transport = transport
        self.state = RequestState.CONNECTED
        logger.debug("socket connected to {}:{}", *self.address)
        return True

    def _on_timeout(self) -> None:
        self.fail(PingTimeoutError("Socket timeout"))

    def _on_connect_done(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.fail(TransportError.from_exception(exc))
