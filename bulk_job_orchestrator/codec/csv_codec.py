"""
CSV codec for bulk record streams.

Converts structured records (ordered field -> scalar mappings) to delimited
text and back. The first row is always the header. A configurable sentinel
marks values that were explicitly cleared, so an omitted field (empty cell)
and a null field (sentinel cell) stay distinguishable on the wire.
"""

import codecs
import csv
import io
from datetime import date, datetime
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Union

from ..utils.logger import get_logger

DEFAULT_NULL_VALUE = "#N/A"

Record = Dict[str, Any]
Chunk = Union[bytes, str]

logger = get_logger(__name__)


async def _aiter(source: Union[Iterable[Any], AsyncIterable[Any]]) -> AsyncIterator[Any]:
    if hasattr(source, "__aiter__"):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


class RecordEncoder:
    """
    Incremental encoder bound to one output stream.

    The first encoded record fixes the header. Fields missing from later
    records are written as empty cells; fields outside the header are dropped.
    """

    def __init__(self, codec: "CsvCodec"):
        self._codec = codec
        self.fields: Optional[List[str]] = None
        self._buffer = io.StringIO(newline="")
        self._writer = csv.writer(self._buffer, delimiter=codec.delimiter, lineterminator="\n")
        self._warned_fields = set()

    def encode(self, record: Mapping[str, Any]) -> bytes:
        if self.fields is None:
            self.fields = list(record.keys())
            self._writer.writerow(self.fields)

        dropped = [key for key in record if key not in self.fields and key not in self._warned_fields]
        if dropped:
            self._warned_fields.update(dropped)
            logger.warning("Fields not present in header are dropped", extra={
                "fields": dropped,
                "header": self.fields
            })

        self._writer.writerow([
            self._codec.format_value(record[name]) if name in record else ""
            for name in self.fields
        ])
        return self._drain()

    def _drain(self) -> bytes:
        data = self._buffer.getvalue()
        self._buffer.seek(0)
        self._buffer.truncate(0)
        return data.encode(self._codec.encoding)


class CsvCodec:
    """Bidirectional record <-> CSV transformer."""

    def __init__(
        self,
        null_value: Optional[str] = DEFAULT_NULL_VALUE,
        delimiter: str = ",",
        encoding: str = "utf-8"
    ):
        """
        Args:
            null_value: Sentinel written for None values and read back as None.
                ``None`` disables the substitution.
            delimiter: Field delimiter
            encoding: Byte encoding of the wire format
        """
        self.null_value = null_value
        self.delimiter = delimiter
        self.encoding = encoding

    def format_value(self, value: Any) -> str:
        if value is None:
            return self.null_value if self.null_value is not None else ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return str(value)

    def parse_value(self, text: str) -> Optional[str]:
        if self.null_value is not None and text == self.null_value:
            return None
        return text

    def encoder(self) -> RecordEncoder:
        """Create a fresh incremental encoder (one per output stream)."""
        return RecordEncoder(self)

    async def encode(
        self,
        records: Union[Iterable[Mapping[str, Any]], AsyncIterable[Mapping[str, Any]]]
    ) -> AsyncIterator[bytes]:
        """Lazily encode records into CSV byte chunks, header first."""
        encoder = self.encoder()
        async for record in _aiter(records):
            yield encoder.encode(record)

    async def decode(self, chunks: Union[Iterable[Chunk], AsyncIterable[Chunk]]) -> AsyncIterator[Record]:
        """
        Lazily decode a CSV byte stream into records.

        Chunk boundaries may fall anywhere, including inside a multi-byte
        character or a quoted field spanning several lines.
        """
        decoder = codecs.getincrementaldecoder(self.encoding)()
        header: Optional[List[str]] = None
        pending = ""
        row_lines: List[str] = []
        quotes = 0

        def complete_lines(text: str) -> List[str]:
            nonlocal pending
            parts = (pending + text).split("\n")
            pending = parts.pop()
            return [part + "\n" for part in parts]

        async for chunk in _aiter(chunks):
            text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
            for line in complete_lines(text):
                row_lines.append(line)
                quotes += line.count('"')
                if quotes % 2:
                    continue
                row = self._parse_row(row_lines)
                row_lines, quotes = [], 0
                if row is None:
                    continue
                if header is None:
                    header = row
                else:
                    yield self._to_record(header, row)

        tail = pending + decoder.decode(b"", final=True)
        if tail:
            row_lines.append(tail)
        if row_lines:
            row = self._parse_row(row_lines)
            if row is not None and header is not None:
                yield self._to_record(header, row)

    def parse(self, data: Union[str, bytes]) -> List[Record]:
        """Decode a fully buffered CSV document."""
        if isinstance(data, bytes):
            data = data.decode(self.encoding)
        reader = csv.reader(io.StringIO(data, newline=""), delimiter=self.delimiter)
        rows = [row for row in reader if row]
        if not rows:
            return []
        header, body = rows[0], rows[1:]
        return [self._to_record(header, row) for row in body]

    def _parse_row(self, lines: List[str]) -> Optional[List[str]]:
        if not "".join(lines).strip():
            return None
        return next(csv.reader(lines, delimiter=self.delimiter))

    def _to_record(self, header: List[str], row: List[str]) -> Record:
        return {name: self.parse_value(value) for name, value in zip(header, row)}
