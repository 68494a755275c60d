"""
Pydantic schemas for request execution.

Defines the execution options of a single request, the wire-ready
payload handed to the HTTP transport, and the response returned to
callers (including script results and transport failure codes).
"""

from typing import Literal

from pydantic import BaseModel

from .environment import Variable
from .request import ApiRequest, Auth, HttpMethod, KeyValue


# Stable reason codes for transport-level failures
TransportErrorCode = Literal[
    "dns_failure",
    "connection_refused",
    "connection_reset",
    "timeout",
    "tls_error",
    "invalid_url",
    "network_error",
]


class ExecuteRequest(BaseModel):
    """Options for executing a single request."""
    request: ApiRequest
    collection_variables: list[Variable] = []
    environment_variables: list[Variable] = []
    inherited_auth: Auth | None = None


class TransportRequest(BaseModel):
    """
    Fully resolved request handed to the HTTP transport.

    Exactly one of ``body`` (text payload) or ``form_data`` (multipart
    fields) is set for requests that carry a body.
    """
    url: str
    method: HttpMethod
    headers: dict[str, str] = {}
    body: str | None = None
    form_data: list[KeyValue] | None = None


class ApiResponse(BaseModel):
    """
    Response of a request execution.

    A zero ``status`` means the request never produced an HTTP response:
    either the pre-script failed or the transport failed, in which case
    ``error_code`` holds the stable reason code.
    """
    status: int
    status_text: str = ""
    headers: dict[str, str] = {}
    body: str = ""
    time: int = 0
    size: int = 0
    error_code: TransportErrorCode | None = None
    script_error: str | None = None
    script_output: str | None = None
    pre_script_error: str | None = None
    pre_script_output: str | None = None


class ScriptResult(BaseModel):
    """Outcome of a pre-request script."""
    error: str | None = None
    output: str | None = None


class ExecuteResult(BaseModel):
    """
    HTTP surface response for a single execution.

    Carries the environment variables as they stand after any script
    writes so the caller can persist them.
    """
    response: ApiResponse
    environment_variables: list[Variable] = []
