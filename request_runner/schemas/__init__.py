"""
Pydantic schemas package.

Exports all schemas for request definitions, execution and runs.
"""

from .environment import Variable

from .request import (
    HttpMethod,
    BodyType,
    AuthType,
    KeyValue,
    BearerAuth,
    BasicAuth,
    ApiKeyAuth,
    Auth,
    RequestBody,
    ApiRequest,
)

from .collection import (
    RequestFolder,
    Collection,
)

from .execute import (
    TransportErrorCode,
    ExecuteRequest,
    TransportRequest,
    ApiResponse,
    ScriptResult,
    ExecuteResult,
)

from .run import (
    RunMode,
    ResultStatus,
    RunnerState,
    RunConfig,
    RequestResult,
    RunSummary,
    IterationRecord,
    RunStartRequest,
    RunState,
)

from .history import (
    HistoryResponse,
    HistoryListResponse,
)

__all__ = [
    # Variable schemas
    "Variable",
    # Request schemas
    "HttpMethod",
    "BodyType",
    "AuthType",
    "KeyValue",
    "BearerAuth",
    "BasicAuth",
    "ApiKeyAuth",
    "Auth",
    "RequestBody",
    "ApiRequest",
    # Collection schemas
    "RequestFolder",
    "Collection",
    # Execute schemas
    "TransportErrorCode",
    "ExecuteRequest",
    "TransportRequest",
    "ApiResponse",
    "ScriptResult",
    "ExecuteResult",
    # Run schemas
    "RunMode",
    "ResultStatus",
    "RunnerState",
    "RunConfig",
    "RequestResult",
    "RunSummary",
    "IterationRecord",
    "RunStartRequest",
    "RunState",
    # History schemas
    "HistoryResponse",
    "HistoryListResponse",
]
