"""
HTTP transport for the asynchronous bulk endpoint, built on httpx.

Requests go to ``{instance_url}/services/async/{api_version}{path}`` with the
session token in the ``X-SFDC-SESSION`` header. XML bodies are turned into
nested dicts, CSV bodies into record lists.
"""

import json
import re
import xml.etree.ElementTree as ET
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from ..codec.csv_codec import CsvCodec
from ..core.exceptions import BulkApiError, SessionExpiredError, TransportError
from ..utils.logger import get_logger, set_log_context
from .base import BaseTransport, BulkRequest

BULK_XML_NAMESPACE = "http://www.force.com/2009/06/asyncapi/dataload"
XSI_NIL = "{http://www.w3.org/2001/XMLSchema-instance}nil"

_SESSION_EXPIRED = re.compile(r"<exceptionCode>InvalidSessionId</exceptionCode>")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _element_to_value(element: ET.Element) -> Any:
    children = list(element)
    if not children:
        if element.get(XSI_NIL) == "true":
            return None
        return element.text.strip() if element.text and element.text.strip() else None

    value: Dict[str, Any] = {}
    for child in children:
        key = _local_name(child.tag)
        item = _element_to_value(child)
        if key in value:
            if not isinstance(value[key], list):
                value[key] = [value[key]]
            value[key].append(item)
        else:
            value[key] = item
    return value


def parse_xml(text: str) -> Dict[str, Any]:
    """Parse an XML document into ``{root_tag: content}`` with namespaces stripped."""
    root = ET.fromstring(text)
    return {_local_name(root.tag): _element_to_value(root)}


def build_xml(root_tag: str, fields: Dict[str, Any]) -> str:
    """Build a namespaced bulk XML document, skipping None fields."""
    root = ET.Element(root_tag, xmlns=BULK_XML_NAMESPACE)
    for name, value in fields.items():
        if value is None:
            continue
        ET.SubElement(root, name).text = str(value)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True).decode("utf-8")


class HttpTransport(BaseTransport):
    """
    httpx-based transport adapter.

    Provides:
    - session header injection
    - session-expiry detection with one refresh-and-retry for replayable requests
    - error envelope detection (``<error><exceptionCode>...``)
    - buffered or streamed response bodies
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        api_version: str = "57.0",
        refresh_session: Optional[Callable[[], Awaitable[str]]] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the transport.

        Args:
            instance_url: Base URL of the remote instance
            access_token: Session token sent with every request
            api_version: Bulk API version segment of the URL
            refresh_session: Coroutine returning a fresh token once the session expired
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject one with a MockTransport)
        """
        self.instance_url = instance_url.rstrip("/")
        self.access_token = access_token
        self.api_version = api_version
        self.refresh_session = refresh_session
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._csv = CsvCodec(null_value=None)

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="http_transport")

    @property
    def base_url(self) -> str:
        return f"{self.instance_url}/services/async/{self.api_version}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    def _build(self, client: httpx.AsyncClient, request: BulkRequest) -> httpx.Request:
        headers = dict(request.headers)
        headers["X-SFDC-SESSION"] = self.access_token or ""
        content = request.body
        if isinstance(content, str):
            content = content.encode("utf-8")
        return client.build_request(
            request.method,
            self.base_url + request.path,
            headers=headers,
            content=content
        )

    def _is_session_expired(self, response: httpx.Response) -> bool:
        return response.status_code == 400 and bool(_SESSION_EXPIRED.search(response.text))

    async def _refresh(self, request: BulkRequest) -> None:
        if self.refresh_session is None or not request.replayable:
            raise SessionExpiredError()
        self.logger.info("Session expired, refreshing", extra={"path": request.path})
        self.access_token = await self.refresh_session()

    def _parse_body(self, response: httpx.Response, request: BulkRequest) -> Any:
        content_type = response.headers.get("content-type") or request.response_type or ""
        text = response.text
        if not text.strip():
            return None
        if "xml" in content_type:
            return parse_xml(text)
        if "json" in content_type:
            return json.loads(text)
        if "csv" in content_type:
            return self._csv.parse(text)
        if text.lstrip().startswith("<"):
            return parse_xml(text)
        return text

    def _decode(self, response: httpx.Response, request: BulkRequest) -> Any:
        """Parse the body, then raise for an error envelope or status."""
        try:
            body = self._parse_body(response, request)
        except (ET.ParseError, ValueError) as e:
            raise TransportError(
                f"HTTP {response.status_code} {response.reason_phrase}: unreadable response body ({e})",
                status_code=response.status_code
            ) from e
        self._raise_for_error(response, body)
        return body

    def _raise_for_error(self, response: httpx.Response, body: Any) -> None:
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            raise BulkApiError(
                error.get("exceptionCode") or "UNKNOWN_EXCEPTION",
                error.get("exceptionMessage") or response.reason_phrase,
                details={"status_code": response.status_code}
            )
        if response.status_code >= 400:
            raise TransportError(
                f"HTTP {response.status_code} {response.reason_phrase}: {response.text[:500]}",
                status_code=response.status_code
            )

    async def _send(self, request: BulkRequest, stream: bool = False) -> httpx.Response:
        client = await self._get_client()
        for attempt in range(2):
            try:
                response = await client.send(self._build(client, request), stream=stream)
            except httpx.TimeoutException as e:
                raise TransportError(f"Request timed out after {self.timeout}s: {e}") from e
            except httpx.RequestError as e:
                raise TransportError(f"Request error: {e}") from e

            if response.status_code == 400:
                await response.aread()
                if self._is_session_expired(response):
                    await response.aclose()
                    if attempt:
                        raise SessionExpiredError()
                    await self._refresh(request)
                    continue
            return response
        raise SessionExpiredError()

    async def request(self, request: BulkRequest) -> Any:
        self.logger.debug("Sending bulk request", extra={
            "method": request.method,
            "path": request.path
        })
        response = await self._send(request)
        return self._decode(response, request)

    async def stream(self, request: BulkRequest) -> AsyncIterator[bytes]:
        self.logger.debug("Opening bulk response stream", extra={
            "method": request.method,
            "path": request.path
        })
        response = await self._send(request, stream=True)
        try:
            if response.status_code >= 400:
                await response.aread()
                self._decode(response, request)
            async for chunk in response.aiter_bytes():
                yield chunk
        finally:
            await response.aclose()
