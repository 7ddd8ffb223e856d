"""
Stream components composed by a batch.

A batch owns an ``UploadChannel`` (the encode sink feeding its upload request)
and hands out ``RecordStream`` objects (decode sources over downloaded result
parts). ``BatchStream`` exposes both sides as one duplex handle.
"""

import asyncio
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Union

from ..codec.csv_codec import RecordEncoder
from ..core.exceptions import ConfigurationError
from ..models.result import QueryResultRef
from ..utils.events import Signal

Record = Dict[str, Any]


class UploadChannel:
    """
    Bounded queue of encoded chunks between the writer and the upload request.

    ``on_start`` fires when the first non-empty chunk is written, which is
    when the batch opens its upload request.
    """

    def __init__(self, encoder: RecordEncoder, on_start: Callable[[], None], maxsize: int = 64, encoding: str = "utf-8"):
        self._encoder = encoder
        self._on_start = on_start
        self._queue: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue(maxsize)
        self._encoding = encoding
        self._error: Optional[BaseException] = None
        self.started = False
        self.ended = False
        self.bytes_written = 0

    async def write_record(self, record: Mapping[str, Any]) -> None:
        await self.write_raw(self._encoder.encode(record))

    async def write_raw(self, data: Union[bytes, str]) -> None:
        if self._error is not None:
            raise self._error
        if self.ended:
            raise ConfigurationError("Upload stream already ended", config_key="upload")
        if isinstance(data, str):
            data = data.encode(self._encoding)
        if not data:
            return
        if not self.started:
            self.started = True
            self._on_start()
        self.bytes_written += len(data)
        await self._queue.put(data)

    async def end(self) -> None:
        """Signal end-of-stream to the upload request."""
        if self.ended:
            return
        self.ended = True
        if self.started and self._error is None:
            await self._queue.put(None)

    def abort(self, error: BaseException) -> None:
        """Stop accepting data after the upload request failed."""
        self._error = error
        while not self._queue.empty():
            self._queue.get_nowait()

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk


class RecordStream:
    """
    Single-use lazy record sequence with an error channel.

    Failures while producing records are broadcast on ``failed`` and raised
    to whoever is iterating.
    """

    def __init__(self, source: Optional[AsyncIterator[Record]] = None):
        self.failed = Signal("failed")
        self._source = source
        self._consumed = False
        self._error: Optional[BaseException] = None

    def attach(self, source: AsyncIterator[Record]) -> None:
        self._source = source

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def fail(self, error: BaseException) -> None:
        if self._error is error:
            return
        self._error = error
        self.failed.emit(error)

    def __aiter__(self) -> AsyncIterator[Record]:
        if self._consumed:
            raise ConfigurationError("Record stream can only be consumed once", config_key="stream")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Record]:
        if self._source is None:
            raise ConfigurationError("Record stream has no source attached", config_key="stream")
        try:
            async for record in self._source:
                yield record
        except Exception as e:
            self.fail(e)
            raise

    async def collect(self) -> List[Record]:
        """Drain the stream into a list."""
        return [record async for record in self]


class BatchStream:
    """
    Duplex handle over a batch.

    Write side: records or raw CSV into the upload. Read side: the decoded
    outcome, i.e. ``LoadResult`` entries for load batches and records of every
    result part for query batches.
    """

    def __init__(self, batch):
        self._batch = batch

    async def write(self, record: Mapping[str, Any]) -> None:
        await self._batch.write(record)

    async def write_raw(self, data: Union[bytes, str]) -> None:
        await self._batch.write_raw(data)

    async def end(self) -> None:
        await self._batch.end()

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._read()

    async def _read(self) -> AsyncIterator[Any]:
        results = await self._batch
        for result in results:
            if isinstance(result, QueryResultRef):
                part = self._batch.bulk.job(result.job_id).batch(result.batch_id).result(result.id)
                async for record in part:
                    yield record
            else:
                yield result
