import asyncio
from typing import Any, Generic, TypeVar

from .errors import ChannelClosed

T = TypeVar("T")

_CLOSED: Any = object()


class Channel(Generic[T]):
    """
    Unbuffered hand-off between coroutines.

    send() does not return until a receiver has taken the item, so a slow
    consumer throttles every producer behind it. After close(), receivers
    drain whatever senders were already waiting with, then stop:
    receive() raises ChannelClosed and `async for` ends.
    """

    def __init__(self) -> None:
        self._q: asyncio.Queue[tuple[T, asyncio.Future]] = asyncio.Queue()
        self._closed = False

    async def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("send on closed channel")
        taken = asyncio.get_running_loop().create_future()
        self._q.put_nowait((item, taken))
        await taken

    async def receive(self) -> T:
        while True:
            item, taken = await self._q.get()
            if item is _CLOSED:
                # wake the next receiver as well
                self._q.put_nowait((item, taken))
                raise ChannelClosed("channel closed")
            if taken.done():
                # sender gave up (cancelled) before anyone took it
                continue
            taken.set_result(None)
            return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._q.put_nowait((_CLOSED, None))

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration from None
