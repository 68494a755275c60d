"""
Authentication resolution for requests.

Computes the auth scheme that actually applies to a request (honoring
the "inherit" mode) and the header or query material it produces.
"""

import base64
from typing import Callable

from ..schemas.collection import Collection, RequestFolder
from ..schemas.request import ApiRequest, Auth


def effective_auth(request: ApiRequest, inherited_auth: Auth | None) -> Auth:
    """
    Return the auth that applies to ``request``.

    A request set to ``inherit`` takes the inherited auth when one is
    supplied and is not ``none``; otherwise the request's own auth is
    used verbatim.
    """
    if (
        request.auth.type == "inherit"
        and inherited_auth is not None
        and inherited_auth.type != "none"
    ):
        return inherited_auth
    return request.auth


def find_folder(folders: list[RequestFolder], folder_id: str) -> RequestFolder | None:
    """Depth-first search for a folder by id."""
    for folder in folders:
        if folder.id == folder_id:
            return folder
        found = find_folder(folder.folders, folder_id)
        if found is not None:
            return found
    return None


def inherited_auth_for(collection: Collection, folder_id: str | None = None) -> Auth | None:
    """
    Auth a request owned by ``folder_id`` (or the collection root) inherits.

    Only the folder that directly owns the request is consulted; if its
    auth is unset or ``none`` the collection auth applies.
    """
    if folder_id:
        folder = find_folder(collection.folders, folder_id)
        if folder is not None and folder.auth is not None and folder.auth.type != "none":
            return folder.auth
    return collection.auth


def auth_headers(auth: Auth, resolve: Callable[[str], str]) -> dict[str, str]:
    """
    Headers derived from ``auth``, with values passed through ``resolve``.

    Nothing is emitted when the resolved credential is empty.
    """
    headers: dict[str, str] = {}

    if auth.type == "bearer" and auth.bearer:
        token = resolve(auth.bearer.token)
        if token.strip():
            headers["Authorization"] = f"Bearer {token}"
    elif auth.type == "basic" and auth.basic:
        username = resolve(auth.basic.username)
        password = resolve(auth.basic.password)
        if username.strip():
            credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
            headers["Authorization"] = f"Basic {credentials}"
    elif auth.type == "api-key" and auth.api_key and auth.api_key.add_to == "header":
        key = resolve(auth.api_key.key)
        value = resolve(auth.api_key.value)
        if key.strip() and value.strip():
            headers[key] = value

    return headers


def auth_query_param(auth: Auth, resolve: Callable[[str], str]) -> tuple[str, str] | None:
    """The (key, value) pair an api-key auth appends to the query string, if any."""
    if auth.type != "api-key" or not auth.api_key or auth.api_key.add_to != "query":
        return None
    key = resolve(auth.api_key.key)
    value = resolve(auth.api_key.value)
    if key.strip() and value.strip():
        return key, value
    return None
