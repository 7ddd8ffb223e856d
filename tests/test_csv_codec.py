"""Tests for the CSV record codec."""

from datetime import date

import pytest

from bulk_job_orchestrator.codec.csv_codec import CsvCodec, DEFAULT_NULL_VALUE


async def _collect(aiterator):
    return [item async for item in aiterator]


async def _chunks(data: bytes, size: int):
    for start in range(0, len(data), size):
        yield data[start:start + size]


class TestEncoding:

    @pytest.mark.asyncio
    async def test_header_then_rows(self):
        codec = CsvCodec()
        records = [{"Name": "Acme", "Phone": "555"}, {"Name": "Globex", "Phone": "777"}]

        data = b"".join(await _collect(codec.encode(records)))

        assert data == b"Name,Phone\nAcme,555\nGlobex,777\n"

    def test_null_becomes_sentinel_and_missing_field_stays_empty(self):
        encoder = CsvCodec().encoder()

        encoder.encode({"Name": "Acme", "Phone": "555"})
        row = encoder.encode({"Name": None})

        assert row == f"{DEFAULT_NULL_VALUE},\n".encode()

    def test_fields_outside_header_are_dropped(self):
        encoder = CsvCodec().encoder()

        encoder.encode({"Name": "Acme"})
        row = encoder.encode({"Name": "Globex", "Extra": "x"})

        assert row == b"Globex\n"
        assert encoder.fields == ["Name"]

    def test_value_formatting(self):
        codec = CsvCodec()

        assert codec.format_value(True) == "true"
        assert codec.format_value(False) == "false"
        assert codec.format_value(12) == "12"
        assert codec.format_value(date(2024, 1, 31)) == "2024-01-31"

    def test_quoting_of_delimiters_and_newlines(self):
        encoder = CsvCodec().encoder()

        data = encoder.encode({"Description": 'says "hi", twice\nthen leaves'})

        assert data == b'Description\n"says ""hi"", twice\nthen leaves"\n'

    def test_disabled_sentinel_writes_empty_cell(self):
        encoder = CsvCodec(null_value=None).encoder()

        assert encoder.encode({"Name": None, "Phone": "555"}) == b"Name,Phone\n,555\n"


class TestDecoding:

    @pytest.mark.asyncio
    async def test_sentinel_decodes_to_none_and_empty_stays_empty(self):
        codec = CsvCodec()

        records = await _collect(codec.decode([b"Id,Name,Phone\n001,#N/A,\n"]))

        assert records == [{"Id": "001", "Name": None, "Phone": ""}]

    @pytest.mark.asyncio
    async def test_chunk_boundaries_anywhere(self):
        codec = CsvCodec()
        data = 'Id,Name\n1,"multi\nline, quoted"\n2,Müller\n3,#N/A\n'.encode("utf-8")

        for size in (1, 2, 3, 5, len(data)):
            records = await _collect(codec.decode(_chunks(data, size)))
            assert records == [
                {"Id": "1", "Name": "multi\nline, quoted"},
                {"Id": "2", "Name": "Müller"},
                {"Id": "3", "Name": None},
            ]

    @pytest.mark.asyncio
    async def test_last_row_without_trailing_newline(self):
        codec = CsvCodec()

        records = await _collect(codec.decode([b"Id,Name\n1,Acme"]))

        assert records == [{"Id": "1", "Name": "Acme"}]

    @pytest.mark.asyncio
    async def test_header_only_yields_nothing(self):
        codec = CsvCodec()

        assert await _collect(codec.decode([b"Id,Name\n"])) == []

    @pytest.mark.asyncio
    async def test_crlf_rows(self):
        codec = CsvCodec()

        records = await _collect(codec.decode([b"Id,Name\r\n1,Acme\r\n"]))

        assert records == [{"Id": "1", "Name": "Acme"}]

    @pytest.mark.asyncio
    async def test_explicit_null_survives_round_trip(self):
        codec = CsvCodec()
        records = [{"Name": "Acme", "Industry": None}]

        data = b"".join(await _collect(codec.encode(records)))

        assert data == b"Name,Industry\nAcme,#N/A\n"
        assert await _collect(codec.decode([data])) == records

    def test_buffered_parse(self):
        codec = CsvCodec()

        assert codec.parse("Id,Success,Error\n001,true,\n") == [{"Id": "001", "Success": "true", "Error": ""}]
        assert codec.parse(b"") == []
