"""
Unit and property tests for authentication resolution.

Tests cover:
- effective_auth: inherit mode and its fallbacks
- inherited_auth_for: folder-then-collection lookup
- auth_headers / auth_query_param: emitted credentials
"""

import base64

import pytest
from hypothesis import given, strategies as st, settings

from ..schemas.collection import Collection, RequestFolder
from ..schemas.request import ApiKeyAuth, ApiRequest, Auth, BasicAuth, BearerAuth
from ..services.auth_resolver import (
    auth_headers,
    auth_query_param,
    effective_auth,
    inherited_auth_for,
)


def identity(text: str) -> str:
    return text


BEARER = Auth(type="bearer", bearer=BearerAuth(token="folder-token"))
COLLECTION_AUTH = Auth(type="basic", basic=BasicAuth(username="user", password="pass"))


class TestEffectiveAuth:

    def test_inherit_uses_inherited_auth(self):
        request = ApiRequest(auth=Auth(type="inherit"))

        assert effective_auth(request, BEARER) == BEARER

    def test_inherit_without_inherited_auth_keeps_request_auth(self):
        request = ApiRequest(auth=Auth(type="inherit"))

        assert effective_auth(request, None).type == "inherit"

    def test_inherit_ignores_inherited_none(self):
        request = ApiRequest(auth=Auth(type="inherit"))

        assert effective_auth(request, Auth(type="none")).type == "inherit"

    def test_explicit_auth_is_used_verbatim(self):
        own = Auth(type="bearer", bearer=BearerAuth(token="own"))
        request = ApiRequest(auth=own)

        assert effective_auth(request, BEARER) == own


class TestInheritedAuthLookup:

    def _collection(self, folder_auth: Auth | None) -> Collection:
        return Collection(
            id="c1",
            auth=COLLECTION_AUTH,
            folders=[
                RequestFolder(
                    id="outer",
                    auth=BEARER,
                    folders=[RequestFolder(id="inner", auth=folder_auth)],
                )
            ],
        )

    def test_root_request_inherits_collection_auth(self):
        assert inherited_auth_for(self._collection(None), None) == COLLECTION_AUTH

    def test_folder_auth_wins(self):
        assert inherited_auth_for(self._collection(None), "outer") == BEARER

    def test_folder_with_none_auth_falls_back_to_collection(self):
        collection = self._collection(Auth(type="none"))

        assert inherited_auth_for(collection, "inner") == COLLECTION_AUTH

    def test_only_the_owning_folder_is_consulted(self):
        # "inner" has no auth of its own; its parent's bearer is not used
        assert inherited_auth_for(self._collection(None), "inner") == COLLECTION_AUTH

    def test_unknown_folder_falls_back_to_collection(self):
        assert inherited_auth_for(self._collection(None), "missing") == COLLECTION_AUTH


class TestAuthMaterial:

    @given(token=st.text(min_size=1, max_size=40).filter(lambda s: s.strip()))
    @settings(max_examples=100)
    def test_bearer_header(self, token: str):
        auth = Auth(type="bearer", bearer=BearerAuth(token=token))

        assert auth_headers(auth, identity) == {"Authorization": f"Bearer {token}"}

    def test_basic_header_is_base64_of_user_and_password(self):
        headers = auth_headers(COLLECTION_AUTH, identity)

        assert headers["Authorization"] == "Basic " + base64.b64encode(b"user:pass").decode()

    @pytest.mark.parametrize(
        "auth",
        [
            Auth(type="bearer", bearer=BearerAuth(token="  ")),
            Auth(type="basic", basic=BasicAuth(username="", password="pw")),
            Auth(type="api-key", api_key=ApiKeyAuth(key="X-Key", value="")),
            Auth(type="none", bearer=BearerAuth(token="unused")),
            Auth(type="inherit"),
        ],
    )
    def test_empty_or_inactive_credentials_emit_nothing(self, auth):
        assert auth_headers(auth, identity) == {}

    def test_api_key_header(self):
        auth = Auth(type="api-key", api_key=ApiKeyAuth(key="X-Api-Key", value="<<key>>"))

        headers = auth_headers(auth, lambda text: text.replace("<<key>>", "abc"))

        assert headers == {"X-Api-Key": "abc"}

    def test_api_key_query_pair(self):
        auth = Auth(type="api-key", api_key=ApiKeyAuth(key="api_key", value="abc", add_to="query"))

        assert auth_query_param(auth, identity) == ("api_key", "abc")
        assert auth_headers(auth, identity) == {}

    def test_api_key_query_pair_requires_key_and_value(self):
        auth = Auth(type="api-key", api_key=ApiKeyAuth(key="api_key", value="<<unset>>", add_to="query"))

        assert auth_query_param(auth, lambda text: "") is None
