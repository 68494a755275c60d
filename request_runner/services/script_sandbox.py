"""
Sandbox for user-authored pre-request and post-response scripts.

Scripts are Python source run as a capability-scoped interpreter call:
the source is parsed and checked for constructs that could reach outside
the sandbox (imports, private attributes, frame introspection), then
executed with a curated builtins table and exactly these names:

- ``console``: ``console.log(*args)`` appends a formatted line to the
  script output
- ``environment``: ``get(key)``, ``set(key, value)`` and ``all()`` over a
  snapshot of the live environment
- ``response`` (post-response scripts only): read-only view with
  ``data`` (JSON-parsed body), ``headers``, ``status`` and ``status_text``

Environment writes are buffered and applied to the store in one step
after the script returns. A script that raises applies nothing.

Example post-response script::

    token = response.data["token"]
    environment.set("token", token)
    console.log("stored token for", response.status)
"""

import ast
import builtins
import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from ..exceptions import PostScriptError, ScriptValidationError
from ..schemas.execute import ApiResponse, ScriptResult
from .variable_store import EnvironmentStore


logger = logging.getLogger(__name__)

SCRIPT_FILENAME = "<script>"

_SAFE_BUILTIN_NAMES = (
    "abs", "all", "any", "bool", "dict", "enumerate", "filter", "float",
    "int", "isinstance", "len", "list", "map", "max", "min", "range",
    "repr", "reversed", "round", "set", "sorted", "str", "sum", "tuple",
    "zip", "Exception", "ValueError", "TypeError", "KeyError",
    "IndexError", "AssertionError",
)

SAFE_BUILTINS = MappingProxyType(
    {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}
)

# Public attributes that still lead to frames, globals or format-string tricks
_BLOCKED_ATTRIBUTES = frozenset({
    "format", "format_map", "mro",
    "gi_frame", "gi_code", "cr_frame", "cr_code", "ag_frame", "ag_code",
    "f_globals", "f_locals", "f_builtins", "f_back", "f_code",
    "tb_frame", "tb_next",
})


class _ScriptValidator(ast.NodeVisitor):
    """Rejects syntax that is not allowed inside the sandbox."""

    def visit_Import(self, node: ast.Import) -> None:
        raise ScriptValidationError(f"line {node.lineno}: import is not allowed in scripts")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        raise ScriptValidationError(f"line {node.lineno}: import is not allowed in scripts")

    def visit_Global(self, node: ast.Global) -> None:
        raise ScriptValidationError(f"line {node.lineno}: global is not allowed in scripts")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        raise ScriptValidationError(f"line {node.lineno}: nonlocal is not allowed in scripts")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_") or node.attr in _BLOCKED_ATTRIBUTES:
            raise ScriptValidationError(
                f"line {node.lineno}: access to attribute '{node.attr}' is not allowed"
            )
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            raise ScriptValidationError(
                f"line {node.lineno}: access to name '{node.id}' is not allowed"
            )
        self.generic_visit(node)


def compile_script(source: str):
    """
    Parse, validate and compile user source.

    Raises:
        SyntaxError: if the source does not parse
        ScriptValidationError: if the source uses a forbidden construct
    """
    tree = ast.parse(source, filename=SCRIPT_FILENAME, mode="exec")
    _ScriptValidator().visit(tree)
    return compile(tree, SCRIPT_FILENAME, "exec")


def format_log_argument(value: Any) -> str:
    """Objects are pretty-printed as JSON, everything else uses ``str``."""
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, indent=2, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


class ScriptConsole:
    """``console`` capability; collects ``log`` lines."""

    def __init__(self):
        self._lines: list[str] = []

    def log(self, *args: Any) -> None:
        self._lines.append(" ".join(format_log_argument(a) for a in args))

    @property
    def output(self) -> str | None:
        return "\n".join(self._lines) if self._lines else None


class ScriptEnvironment:
    """``environment`` capability bound to a snapshot of the live store."""

    def __init__(self, store: EnvironmentStore):
        self._snapshot = EnvironmentStore(store.snapshot())
        self._writes: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        if key in self._writes:
            return self._writes[key]
        return self._snapshot.get(key)

    def set(self, key: str, value: Any) -> None:
        self._writes[str(key)] = str(value)

    def all(self) -> dict[str, str]:
        values = {
            v.key: v.effective_value for v in self._snapshot.variables if v.enabled
        }
        values.update(self._writes)
        return values

    @property
    def writes(self) -> dict[str, str]:
        return dict(self._writes)


@dataclass(frozen=True)
class ResponseView:
    """
    Read-only ``response`` capability of post-response scripts.

    The body is parsed on first access to ``data``; a body that is not
    valid JSON raises ``PostScriptError`` inside the script.
    """
    status: int
    status_text: str
    headers: Mapping[str, str]
    body: str = field(repr=False)

    @classmethod
    def from_response(cls, response: ApiResponse) -> "ResponseView":
        return cls(
            status=response.status,
            status_text=response.status_text,
            headers=MappingProxyType(dict(response.headers)),
            body=response.body,
        )

    @property
    def data(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise PostScriptError(f"Response body is not valid JSON: {exc}") from exc


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    if not message:
        return type(exc).__name__
    if isinstance(exc, (NameError, TypeError, KeyError, AttributeError, IndexError, ZeroDivisionError)):
        return f"{type(exc).__name__}: {message}"
    return message


def _execute(source: str, names: dict[str, Any]) -> None:
    code = compile_script(source)
    namespace: dict[str, Any] = {"__builtins__": dict(SAFE_BUILTINS)}
    namespace.update(names)
    exec(code, namespace)  # noqa: S102


def run_pre_script(source: str, environment: EnvironmentStore) -> ScriptResult:
    """
    Run a pre-request script.

    Returns:
        ScriptResult with ``output`` (console lines) and, on failure,
        ``error``. Environment writes are applied only on success.
    """
    console = ScriptConsole()
    script_env = ScriptEnvironment(environment)
    try:
        _execute(source, {"console": console, "environment": script_env})
    except Exception as exc:  # user code may raise anything
        error = describe_error(exc)
        logger.warning("Pre-request script failed: %s", error)
        return ScriptResult(error=error, output=console.output)

    environment.apply(script_env.writes)
    return ScriptResult(output=console.output)


def run_script(source: str, response: ApiResponse, environment: EnvironmentStore) -> ApiResponse:
    """
    Run a post-response script against ``response``.

    Returns:
        A copy of the response with ``script_output`` set on success or
        ``script_error`` set on failure. Status, headers and body are
        never altered.
    """
    console = ScriptConsole()
    script_env = ScriptEnvironment(environment)
    view = ResponseView.from_response(response)
    try:
        _execute(source, {"console": console, "environment": script_env, "response": view})
    except Exception as exc:  # user code may raise anything
        error = describe_error(exc)
        logger.warning("Post-response script failed: %s", error)
        return response.model_copy(update={"script_error": error})

    environment.apply(script_env.writes)
    return response.model_copy(update={"script_output": console.output})
