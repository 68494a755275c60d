# Services package

from .variable_substitution import (
    extract_variables,
    substitute,
    build_variable_map,
    replace_variables,
    resolve_request_variables,
)
from .auth_resolver import effective_auth, inherited_auth_for
from .variable_store import EnvironmentStore
from .script_sandbox import run_pre_script, run_script
from .transport import HttpTransport
from .http_executor import build_transport_request, execute_request
from .collection_runner import CollectionRunner, flatten_requests
from .run_manager import RunManager, get_run_manager
from .history_service import save_history

__all__ = [
    "extract_variables",
    "substitute",
    "build_variable_map",
    "replace_variables",
    "resolve_request_variables",
    "effective_auth",
    "inherited_auth_for",
    "EnvironmentStore",
    "run_pre_script",
    "run_script",
    "HttpTransport",
    "build_transport_request",
    "execute_request",
    "CollectionRunner",
    "flatten_requests",
    "RunManager",
    "get_run_manager",
    "save_history",
]
