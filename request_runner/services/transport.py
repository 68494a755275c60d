"""
HTTP transport for sending resolved requests.

Wraps ``httpx.AsyncClient`` with a bounded timeout and converts every
transport-level failure into a zero-status ``ApiResponse`` carrying a
stable reason code, so platform errors never reach the caller.
"""

import json
import logging
import socket
import ssl
import time

import httpx

from ..config import get_settings
from ..exceptions import TransportError
from ..schemas.execute import ApiResponse, TransportRequest


logger = logging.getLogger(__name__)

STATUS_TEXTS = {
    "dns_failure": "DNS Lookup Failed",
    "connection_refused": "Connection Refused",
    "connection_reset": "Connection Reset",
    "timeout": "Timeout",
    "tls_error": "SSL Certificate Error",
    "invalid_url": "Invalid URL",
    "network_error": "Network Error",
}

# Refinements of the timeout and tls_error texts
CONNECT_TIMEOUT_TEXT = "Connection Timed Out"
CERT_EXPIRED_TEXT = "Certificate Expired"

# OpenSSL verify result for an expired certificate
X509_V_ERR_CERT_HAS_EXPIRED = 10


def _exception_chain(exc: BaseException):
    seen = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify_error(exc: Exception) -> TransportError:
    """
    Map an httpx (or underlying socket) exception to a ``TransportError``.

    The cause chain is inspected because httpx wraps the OS-level error
    that tells a DNS failure apart from a refused connection.
    """
    code = "network_error"
    if isinstance(exc, httpx.TimeoutException):
        code = "timeout"
    elif isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        code = "invalid_url"
    else:
        for cause in _exception_chain(exc):
            if isinstance(cause, socket.gaierror):
                code = "dns_failure"
                break
            if isinstance(cause, ssl.SSLError):
                code = "tls_error"
                break
            if isinstance(cause, ConnectionRefusedError):
                code = "connection_refused"
                break
            if isinstance(cause, ConnectionResetError):
                code = "connection_reset"
                break
            if isinstance(cause, (TimeoutError, socket.timeout)):
                code = "timeout"
                break
        else:
            code = _classify_message(str(exc))

    return TransportError(code=code, status_text=_status_text(exc, code), message=str(exc) or type(exc).__name__)


def _status_text(exc: Exception, code: str) -> str:
    # Connect-phase timeouts and expired certificates get their own wording
    if code == "timeout" and isinstance(exc, httpx.ConnectTimeout):
        return CONNECT_TIMEOUT_TEXT
    if code == "tls_error":
        for cause in _exception_chain(exc):
            if getattr(cause, "verify_code", None) == X509_V_ERR_CERT_HAS_EXPIRED \
                    or "certificate has expired" in str(cause).lower():
                return CERT_EXPIRED_TEXT
    return STATUS_TEXTS[code]


def _classify_message(message: str) -> str:
    # httpcore sometimes flattens the OS error into the message only
    lowered = message.lower()
    if "name or service not known" in lowered or "nodename nor servname" in lowered \
            or "getaddrinfo failed" in lowered or "temporary failure in name resolution" in lowered:
        return "dns_failure"
    if "connection refused" in lowered:
        return "connection_refused"
    if "connection reset" in lowered:
        return "connection_reset"
    if "certificate" in lowered or "ssl" in lowered or "tls" in lowered:
        return "tls_error"
    return "network_error"


def error_response(error: TransportError, elapsed_ms: int = 0) -> ApiResponse:
    """Zero-status response describing a transport failure."""
    return ApiResponse(
        status=0,
        status_text=error.status_text,
        headers={},
        body=json.dumps({"error": error.message, "code": error.code}),
        time=elapsed_ms,
        size=0,
        error_code=error.code,
    )


class HttpTransport:
    """
    Sends ``TransportRequest`` payloads over HTTP.

    Args:
        timeout: Request timeout in seconds; defaults to the configured value
        verify_ssl: Whether TLS certificates are verified
        client: Optional pre-built ``httpx.AsyncClient`` (used by tests with
            ``httpx.MockTransport``); it is not closed by this class
    """

    def __init__(
        self,
        timeout: float | None = None,
        verify_ssl: bool | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.verify_ssl = settings.verify_ssl if verify_ssl is None else verify_ssl
        self.follow_redirects = settings.follow_redirects
        self._client = client

    async def send(self, request: TransportRequest) -> ApiResponse:
        """
        Send ``request`` and return the response.

        Never raises for transport failures; they come back as a
        zero-status response with ``error_code`` set.
        """
        content: str | None = None
        files: list[tuple[str, tuple[None, str]]] | None = None
        if request.form_data is not None:
            # A None filename makes httpx encode plain multipart fields
            files = [(row.key, (None, row.value)) for row in request.form_data]
        elif request.body is not None:
            content = request.body

        start_time = time.perf_counter()
        try:
            if self._client is not None:
                response = await self._send_with(self._client, request, content, files)
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    verify=self.verify_ssl,
                    follow_redirects=self.follow_redirects,
                ) as client:
                    response = await self._send_with(client, request, content, files)
        except Exception as exc:  # every transport failure becomes a response
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            error = classify_error(exc)
            logger.warning("%s request failed (%s): %s", request.method, error.code, error.message)
            return error_response(error, elapsed_ms)

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        return ApiResponse(
            status=response.status_code,
            status_text=response.reason_phrase or "",
            headers={key: value for key, value in response.headers.items()},
            body=response.text,
            time=elapsed_ms,
            size=len(response.content),
        )

    async def _send_with(self, client: httpx.AsyncClient, request, content, files) -> httpx.Response:
        return await client.request(
            method=request.method,
            url=request.url,
            headers=request.headers,
            content=content,
            files=files,
            timeout=self.timeout,
        )
