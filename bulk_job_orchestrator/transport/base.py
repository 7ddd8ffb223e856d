"""
Base transport interface.

The job and batch machinery only needs to issue one request against the
remote bulk endpoint and get back either a parsed body or a byte stream.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union

RequestBody = Union[str, bytes, AsyncIterable[bytes], None]


@dataclass
class BulkRequest:
    """One request against the bulk endpoint, path relative to its base URL."""

    method: str
    path: str
    body: RequestBody = None
    headers: Dict[str, str] = field(default_factory=dict)
    response_type: Optional[str] = None

    @property
    def replayable(self) -> bool:
        """A streamed body cannot be sent twice."""
        return self.body is None or isinstance(self.body, (str, bytes))


def as_list(value: Any) -> List[Any]:
    """Normalize the remote's "single item or list" shape into a list."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


class BaseTransport(ABC):
    """
    Abstract base class for bulk transports.

    Implementations attach credentials, detect session expiry and surface the
    remote's error envelope as ``BulkApiError``.
    """

    @abstractmethod
    async def request(self, request: BulkRequest) -> Any:
        """
        Send a request and return the parsed response body.

        Args:
            request: Request to send

        Returns:
            Parsed body: dict for XML, list of records for CSV, decoded JSON
        """
        pass

    @abstractmethod
    def stream(self, request: BulkRequest) -> AsyncIterator[bytes]:
        """
        Send a request and stream the raw response body.

        Args:
            request: Request to send

        Returns:
            Async iterator over response body chunks
        """
        pass

    async def close(self) -> None:
        """Release any underlying connection resources."""
        return None
