"""
Bridge an async request body to a blocking file-like object.

The object storage SDKs are synchronous and read request bodies with
`read(size)`. Starlette exposes the incoming body as an async iterator of
chunks. RequestBodyReader sits between the two: the SDK call runs in a
worker thread and every `read()` pulls the next chunk from the event loop
via anyio.from_thread, so only the chunks currently in flight are held in
memory regardless of the size of the upload.

Must be read from a thread started by anyio.to_thread (which is what
starlette.concurrency.run_in_threadpool uses).
"""

import io
from typing import AsyncIterator, Optional

import anyio.from_thread


class RequestBodyReader(io.RawIOBase):
    """Read-only, non-seekable view over an async iterator of byte chunks."""

    def __init__(self, chunks: AsyncIterator[bytes]) -> None:
        super().__init__()
        self._chunks = chunks
        self._buffer = bytearray()
        self._exhausted = False
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            while not self._exhausted:
                self._fill()
            return self._take(len(self._buffer))

        while len(self._buffer) < size and not self._exhausted:
            self._fill()
        return self._take(size)

    def readall(self) -> bytes:
        return self.read(-1)

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        buffer[:len(data)] = data
        return len(data)

    def _take(self, size: int) -> bytes:
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        self.bytes_read += len(data)
        return data

    def _fill(self) -> None:
        chunk = anyio.from_thread.run(self._next_chunk)
        if chunk is None:
            self._exhausted = True
        else:
            self._buffer.extend(chunk)

    async def _next_chunk(self) -> Optional[bytes]:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None
