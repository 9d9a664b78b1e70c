# slumble/core_logic/conduit.py

import asyncio
from asyncio import Queue
from slumble.core_logic.relay_message import RelayMessage


class Conduit:
    """
    FIFO hand-off from the Mumble listener to the Slack sender.

    Bounded; a full conduit blocks the producer instead of dropping anything.
    pymumble delivers callbacks on its own thread, so producers there use
    put_threadsafe(), which parks that thread until the loop accepts the item.
    """
    def __init__(self, maxsize: int = 0):
        self._queue: Queue = Queue(maxsize=maxsize)

    async def put(self, message: RelayMessage):
        await self._queue.put(message)

    def put_threadsafe(self, message: RelayMessage, loop: asyncio.AbstractEventLoop):
        future = asyncio.run_coroutine_threadsafe(self._queue.put(message), loop)
        future.result()

    async def get(self) -> RelayMessage:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()
