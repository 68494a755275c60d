"""
HTTP execution service for running stored request definitions.

Turns a request definition plus its variable context into a wire-ready
HTTP call: effective auth, resolved URL/params, headers and body. It then
runs the pre-request script, sends the request through the transport and
runs the post-response script. ``execute_request`` never raises; every
failure comes back as structured fields on the response.
"""

import json
import logging
import time
from urllib.parse import urlencode

from ..exceptions import PreScriptError
from ..schemas.environment import Variable
from ..schemas.execute import ApiResponse, ExecuteRequest, TransportRequest
from ..schemas.request import ApiRequest, Auth, KeyValue
from .auth_resolver import auth_headers, auth_query_param, effective_auth
from .script_sandbox import run_pre_script, run_script
from .transport import HttpTransport
from .variable_store import EnvironmentStore
from .variable_substitution import build_variable_map, substitute


logger = logging.getLogger(__name__)

# Methods that never carry a body
BODYLESS_METHODS = ("GET", "HEAD")


def _has_header(headers: dict[str, str], name: str) -> bool:
    name = name.lower()
    return any(key.lower() == name for key in headers)


def _drop_header(headers: dict[str, str], name: str) -> None:
    name = name.lower()
    for key in [k for k in headers if k.lower() == name]:
        del headers[key]


def build_url(base_url: str, params: list[tuple[str, str]]) -> str:
    """
    Strip any inline query string from ``base_url`` and append ``params``.

    The explicit params list supersedes whatever query the URL carried.
    URLs without a scheme default to http.
    """
    url = base_url.split("?", 1)[0].split("#", 1)[0]
    if url and "://" not in url:
        url = f"http://{url}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def build_transport_request(
    request: ApiRequest,
    collection_variables: list[Variable],
    environment_variables: list[Variable],
    inherited_auth: Auth | None = None,
) -> TransportRequest:
    """
    Build the resolved request for the transport.

    Args:
        request: The stored request definition
        collection_variables: Collection-scoped variables
        environment_variables: Environment-scoped variables (win on duplicate keys)
        inherited_auth: Auth of the owning folder or collection

    Returns:
        TransportRequest with URL, headers and body fully resolved
    """
    variables = build_variable_map(collection_variables, environment_variables)

    def resolve(text: str | None) -> str:
        return substitute(text or "", variables)[0]

    # 1. Auth
    auth = effective_auth(request, inherited_auth)

    # 2. URL and query params
    params = [
        (p.key, resolve(p.value))
        for p in request.params
        if p.enabled and p.key
    ]
    api_key_param = auth_query_param(auth, resolve)
    if api_key_param is not None:
        params.append(api_key_param)
    url = build_url(resolve(request.url), params)

    # 3. Headers, auth headers overlaid
    headers: dict[str, str] = {}
    for header in request.headers:
        if header.enabled and header.key.strip():
            headers[header.key.strip()] = resolve(header.value)
    for name, value in auth_headers(auth, resolve).items():
        _drop_header(headers, name)
        headers[name] = value

    # 4. Body
    body: str | None = None
    form_data: list[KeyValue] | None = None
    if request.method not in BODYLESS_METHODS:
        body_type = request.body.type
        if body_type == "json":
            if not _has_header(headers, "Content-Type"):
                headers["Content-Type"] = "application/json"
            body = resolve(request.body.raw)
        elif body_type == "raw":
            body = resolve(request.body.raw)
        elif body_type == "x-www-form-urlencoded":
            if not _has_header(headers, "Content-Type"):
                headers["Content-Type"] = "application/x-www-form-urlencoded"
            body = urlencode([
                (item.key, resolve(item.value))
                for item in request.body.urlencoded
                if item.enabled and item.key
            ])
        elif body_type == "form-data":
            form_data = [
                KeyValue(key=item.key, value=resolve(item.value))
                for item in request.body.form_data
                if item.enabled and item.key
            ]
            # The transport sets the multipart boundary
            _drop_header(headers, "Content-Type")

    return TransportRequest(
        url=url,
        method=request.method,
        headers=headers,
        body=body,
        form_data=form_data,
    )


def pre_script_error_response(error: str, output: str | None = None) -> ApiResponse:
    """Response returned when a pre-request script fails; nothing was sent."""
    return ApiResponse(
        status=0,
        status_text="Pre-Script Error",
        headers={},
        body="",
        time=0,
        size=0,
        pre_script_error=error,
        pre_script_output=output,
    )


def unexpected_error_response(message: str, elapsed_ms: int = 0) -> ApiResponse:
    return ApiResponse(
        status=0,
        status_text="Error",
        headers={},
        body=json.dumps({"error": message}),
        time=elapsed_ms,
        size=0,
    )


def _run_pre_script(request: ApiRequest, environment: EnvironmentStore) -> str | None:
    """
    Run the request's pre-request script, if any, and return its output.

    Raises:
        PreScriptError: if the script fails
    """
    if not request.pre_script or not request.pre_script.strip():
        return None
    result = run_pre_script(request.pre_script, environment)
    if result.error is not None:
        raise PreScriptError(result.error, result.output)
    return result.output


async def execute_request(
    options: ExecuteRequest,
    transport: HttpTransport | None = None,
    environment: EnvironmentStore | None = None,
) -> ApiResponse:
    """
    Execute a request definition and return the response.

    Args:
        options: The request plus its collection/environment variables
            and inherited auth
        transport: HTTP transport; a default ``HttpTransport`` when omitted
        environment: Live environment store scripts write into. When
            omitted, a store is built from ``options.environment_variables``
            and script writes are discarded with it.

    Returns:
        ApiResponse. A pre-script failure yields ``status=0`` with
        ``pre_script_error`` set and the transport is never called. A
        post-script failure sets ``script_error`` and leaves the HTTP
        response untouched.
    """
    request = options.request
    if environment is None:
        environment = EnvironmentStore(options.environment_variables)
    transport = transport or HttpTransport()
    start_time = time.perf_counter()

    try:
        transport_request = build_transport_request(
            request,
            options.collection_variables,
            environment.variables,
            options.inherited_auth,
        )

        # 5. Pre-request script; a failure aborts the request
        try:
            pre_script_output = _run_pre_script(request, environment)
        except PreScriptError as exc:
            return pre_script_error_response(str(exc), exc.output)

        # 6. Transport
        logger.debug("Sending %s request '%s'", request.method, request.name)
        response = await transport.send(transport_request)

        # 7. Post-response script
        if request.script and request.script.strip():
            response = run_script(request.script, response, environment)

        # 8. Pre-script output
        if pre_script_output:
            response = response.model_copy(update={"pre_script_output": pre_script_output})

        return response

    except Exception as exc:  # execute_request never raises
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        logger.exception("Unexpected error executing request '%s'", request.name)
        return unexpected_error_response(str(exc) or type(exc).__name__, elapsed_ms)
