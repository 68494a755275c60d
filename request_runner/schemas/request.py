"""
Pydantic schemas for request definitions.

Defines the stored shape of a request: method, URL, headers, query
params, body and authentication, plus the optional pre-request and
post-response scripts.
"""

import uuid
from typing import Literal

from pydantic import BaseModel, Field


# HTTP methods supported by the system
HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# Body types supported for requests
BodyType = Literal["none", "json", "raw", "x-www-form-urlencoded", "form-data"]

# Authentication schemes; "inherit" defers to the owning folder or collection
AuthType = Literal["none", "bearer", "basic", "api-key", "inherit"]


class KeyValue(BaseModel):
    """A header, query param or form entry that can be toggled off."""
    key: str = ""
    value: str = ""
    enabled: bool = True


class BearerAuth(BaseModel):
    token: str = ""


class BasicAuth(BaseModel):
    username: str = ""
    password: str = ""


class ApiKeyAuth(BaseModel):
    key: str = ""
    value: str = ""
    add_to: Literal["header", "query"] = "header"


class Auth(BaseModel):
    """
    Authentication settings of a request, folder or collection.

    Only the payload matching ``type`` is consulted; the others may be
    kept around so switching the type back does not lose user input.
    """
    type: AuthType = "none"
    bearer: BearerAuth | None = None
    basic: BasicAuth | None = None
    api_key: ApiKeyAuth | None = None


class RequestBody(BaseModel):
    """Request body; ``raw`` holds json/raw text, the lists hold form entries."""
    type: BodyType = "none"
    raw: str | None = None
    urlencoded: list[KeyValue] = []
    form_data: list[KeyValue] = []


class ApiRequest(BaseModel):
    """A stored request definition."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "New Request"
    method: HttpMethod = "GET"
    url: str = ""
    headers: list[KeyValue] = []
    params: list[KeyValue] = []
    body: RequestBody = Field(default_factory=RequestBody)
    auth: Auth = Field(default_factory=Auth)
    pre_script: str | None = None
    script: str | None = None
