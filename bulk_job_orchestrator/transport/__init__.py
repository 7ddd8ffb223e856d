"""Transports issuing requests against the remote bulk endpoint."""

from .base import BaseTransport, BulkRequest, as_list
from .http import HttpTransport, build_xml, parse_xml, BULK_XML_NAMESPACE

__all__ = [
    "BaseTransport",
    "BulkRequest",
    "as_list",
    "HttpTransport",
    "build_xml",
    "parse_xml",
    "BULK_XML_NAMESPACE"
]
