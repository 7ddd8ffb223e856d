"""Wire codecs for bulk record streams."""

from .csv_codec import CsvCodec, RecordEncoder, DEFAULT_NULL_VALUE

__all__ = ["CsvCodec", "RecordEncoder", "DEFAULT_NULL_VALUE"]
