"""
Flow control for an asyncio transport, pausing and resuming reads and writes.

Reads are paused when a client sends faster than the connection loop answers: requests are handled
one at a time, so unread bytes pile up in the RequestReader until the loop catches up.
Writes are paused by the transport itself once its send buffer passes the high water mark;
the loop awaits drain() before writing the next response.
"""


import asyncio


HIGH_WATER_LIMIT_READ = 65536


class FlowControl:

    def __init__(self, transport: asyncio.Transport):
        self._read_paused = False
        self._write_paused = False
        self._write_event: asyncio.Event = asyncio.Event()
        self._write_event.set() # Set the event to allow writing initially
        self._transport = transport

    @property
    def write_paused(self) -> bool:
        return self._write_paused

    async def drain(self):
        await self._write_event.wait()  # Wait until the write event is set

    def pause_reading(self):
        if not self._read_paused:
            self._read_paused = True
            self._transport.pause_reading()

    def resume_reading(self):
        if self._read_paused:
            self._read_paused = False
            self._transport.resume_reading()

    def pause_writing(self):
        if not self._write_paused:
            self._write_paused = True
            self._write_event.clear()

    def resume_writing(self):
        if self._write_paused:
            self._write_paused = False
            self._write_event.set()
