"""
Variable substitution service for replacing <<variable>> placeholders.

This service builds the effective variable mapping from the collection
and environment scopes and substitutes placeholders in request
templates (URL, headers, query params, body, auth fields).
"""

import re
from typing import Iterable, List, Tuple

from ..schemas.environment import Variable
from ..schemas.request import ApiRequest, KeyValue


# Pattern to match <<variable_name>> placeholders
VARIABLE_PATTERN = re.compile(r'<<([^<>]+?)>>')


def extract_variables(template: str) -> List[str]:
    """
    Extract all variable names from a template string.

    Example:
        >>> extract_variables("Hello <<name>>, your id is <<id>>")
        ['name', 'id']
    """
    if not template:
        return []

    return VARIABLE_PATTERN.findall(template)


def substitute(template: str, variables: dict[str, str]) -> Tuple[str, List[str]]:
    """
    Replace variable placeholders in a template with their values.

    Substitution is a single pass: a value that itself contains a
    placeholder is inserted literally.

    Args:
        template: String containing <<variable>> placeholders
        variables: Dictionary mapping variable names to their values

    Returns:
        Tuple of (substituted string, list of unmatched variable names)

    Example:
        >>> substitute("Hello <<name>>", {"name": "World"})
        ('Hello World', [])
        >>> substitute("Hello <<name>>", {})
        ('Hello <<name>>', ['name'])
    """
    if not template:
        return template, []

    unmatched: List[str] = []

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        if var_name in variables:
            return variables[var_name]
        unmatched.append(var_name)
        return match.group(0)  # Keep original placeholder

    result = VARIABLE_PATTERN.sub(replace_match, template)
    return result, unmatched


def build_variable_map(
    collection_variables: Iterable[Variable],
    environment_variables: Iterable[Variable],
) -> dict[str, str]:
    """
    Build the key -> effective value mapping used for substitution.

    Collection variables are inserted first and environment variables
    second, so an environment entry overrides a collection entry with
    the same key. Disabled variables are skipped.
    """
    mapping: dict[str, str] = {}
    for variable in collection_variables:
        if variable.enabled:
            mapping[variable.key] = variable.effective_value
    for variable in environment_variables:
        if variable.enabled:
            mapping[variable.key] = variable.effective_value
    return mapping


def replace_variables(
    text: str,
    collection_variables: Iterable[Variable],
    environment_variables: Iterable[Variable],
) -> str:
    """Replace every known <<key>> in ``text``; unknown tokens are left as-is."""
    if not text:
        return text or ""
    mapping = build_variable_map(collection_variables, environment_variables)
    result, _ = substitute(text, mapping)
    return result


def _resolve_rows(rows: list[KeyValue], mapping: dict[str, str]) -> list[KeyValue]:
    return [
        row.model_copy(update={"value": substitute(row.value, mapping)[0]})
        for row in rows
    ]


def resolve_request_variables(
    request: ApiRequest,
    collection_variables: list[Variable],
    environment_variables: list[Variable],
) -> ApiRequest:
    """
    Resolve variables in a request for recording it in history.

    Secret variables are not resolved: their placeholders stay as
    <<key>> so history never holds secret values. A key is treated as
    secret when any enabled variable carrying it is marked secret.
    Only values are substituted, never keys, and raw bodies are treated
    as opaque text.

    Returns:
        A resolved deep copy; the given request is not modified.
    """
    secret_keys = {
        v.key for v in [*collection_variables, *environment_variables]
        if v.enabled and v.is_secret
    }
    mapping = build_variable_map(
        [v for v in collection_variables if not v.is_secret],
        [v for v in environment_variables if not v.is_secret],
    )
    for key in secret_keys:
        mapping.pop(key, None)

    def resolve(text: str) -> str:
        return substitute(text, mapping)[0]

    resolved = request.model_copy(deep=True)
    resolved.url = resolve(resolved.url)
    resolved.headers = _resolve_rows(resolved.headers, mapping)
    resolved.params = _resolve_rows(resolved.params, mapping)

    body = resolved.body
    if body.raw:
        body.raw = resolve(body.raw)
    body.form_data = _resolve_rows(body.form_data, mapping)
    body.urlencoded = _resolve_rows(body.urlencoded, mapping)

    auth = resolved.auth
    if auth.bearer:
        auth.bearer.token = resolve(auth.bearer.token)
    if auth.basic:
        auth.basic.username = resolve(auth.basic.username)
        auth.basic.password = resolve(auth.basic.password)
    if auth.api_key:
        auth.api_key.key = resolve(auth.api_key.key)
        auth.api_key.value = resolve(auth.api_key.value)

    return resolved
