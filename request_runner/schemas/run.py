"""
Pydantic schemas for collection runs.

Defines the run configuration, the per-request result record, the
aggregate summary and the snapshot exposed to the UI for progress
display.
"""

from typing import Literal

from pydantic import BaseModel, Field

from .collection import Collection
from .environment import Variable
from .execute import ApiResponse
from .request import HttpMethod


RunMode = Literal["sequential", "parallel"]

ResultStatus = Literal["pending", "running", "success", "failed", "skipped"]

RunnerState = Literal["idle", "configuring", "running", "paused", "aborted"]


class RunConfig(BaseModel):
    """How a collection is replayed."""
    mode: RunMode = "sequential"
    delay_between_requests: int = Field(default=0, ge=0)  # milliseconds
    stop_on_error: bool = False
    iterations: int = Field(default=1, ge=1)


class RequestResult(BaseModel):
    """Status of one request within the current iteration."""
    request_id: str
    request_name: str = ""
    method: HttpMethod = "GET"
    url: str = ""
    status: ResultStatus = "pending"
    response: ApiResponse | None = None
    error: str | None = None
    duration: int | None = None


class RunSummary(BaseModel):
    """Counts per status and the summed duration of a result list."""
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0
    running: int = 0
    total_duration: int = 0


class IterationRecord(BaseModel):
    """Final results of one completed pass over the collection."""
    iteration: int
    results: list[RequestResult]


class RunStartRequest(BaseModel):
    """Body of the run start endpoint."""
    collection: Collection
    environment_variables: list[Variable] = []
    config: RunConfig = Field(default_factory=RunConfig)


class RunState(BaseModel):
    """Live snapshot of a run."""
    run_id: str
    state: RunnerState
    finished: bool = False
    current_iteration: int = 0
    config: RunConfig | None = None
    results: list[RequestResult] = []
    summary: RunSummary = Field(default_factory=RunSummary)
    iterations: list[IterationRecord] = []
