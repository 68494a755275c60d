"""
Collection runner for replaying every request of a collection.

The runner flattens the collection tree into a stable order and drives
the execution engine across iterations under a ``RunConfig``:

- sequential mode runs one request at a time, honoring pause, stop and
  stop-on-error;
- parallel mode launches every request of an iteration at once on the
  event loop and waits for all of them. Pause is refused and
  stop-on-error has no effect there since everything is already in
  flight; stop takes effect before the next iteration.

Results are reset to ``pending`` at the start of every iteration. Each
request only ever writes its own slot of the result list.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..exceptions import RunnerStateError
from ..schemas.collection import Collection, RequestFolder
from ..schemas.environment import Variable
from ..schemas.execute import ApiResponse, ExecuteRequest
from ..schemas.request import ApiRequest
from ..schemas.run import IterationRecord, RequestResult, RunConfig, RunSummary
from .auth_resolver import inherited_auth_for
from .http_executor import execute_request
from .transport import HttpTransport
from .variable_store import EnvironmentStore


logger = logging.getLogger(__name__)

Executor = Callable[[ExecuteRequest, EnvironmentStore], Awaitable[ApiResponse]]
Listener = Callable[["CollectionRunner"], None]


@dataclass(frozen=True)
class FlatRequest:
    """A request together with the collection and folder that own it."""
    request: ApiRequest
    collection_id: str
    folder_id: str | None = None


def flatten_requests(collection: Collection) -> list[FlatRequest]:
    """
    Linearize the collection tree in run order.

    Root-level requests come first, then for each folder its own
    requests followed by those of its subfolders, recursively.
    """
    flat = [FlatRequest(request, collection.id) for request in collection.requests]
    flat.extend(_flatten_folders(collection.folders, collection.id))
    return flat


def _flatten_folders(folders: list[RequestFolder], collection_id: str) -> list[FlatRequest]:
    flat: list[FlatRequest] = []
    for folder in folders:
        flat.extend(FlatRequest(request, collection_id, folder.id) for request in folder.requests)
        flat.extend(_flatten_folders(folder.folders, collection_id))
    return flat


def is_success(response: ApiResponse) -> bool:
    return 200 <= response.status < 400


def summarize(results: list[RequestResult]) -> RunSummary:
    """Count results per status and sum their durations."""
    summary = RunSummary(total=len(results))
    for result in results:
        setattr(summary, result.status, getattr(summary, result.status) + 1)
        summary.total_duration += result.duration or 0
    return summary


def _response_error(response: ApiResponse) -> str | None:
    if response.status != 0:
        return None
    return response.pre_script_error or response.status_text or None


class CollectionRunner:
    """
    Runs a collection under a ``RunConfig``.

    State moves ``idle -> configuring -> running <-> paused -> idle``;
    ``stop()`` moves a configured or started run to ``aborted`` and it
    returns to ``idle`` once the run loop has wound down.

    Args:
        collection: The collection to run
        environment_variables: Environment variables of the run; script
            writes are applied to the run's ``environment`` store
        executor: Coroutine executing one request; defaults to
            ``execute_request`` over ``transport``
        transport: Transport for the default executor
    """

    def __init__(
        self,
        collection: Collection,
        environment_variables: list[Variable] | None = None,
        executor: Executor | None = None,
        transport: HttpTransport | None = None,
    ):
        self.collection = collection
        self.environment = EnvironmentStore(environment_variables)
        self._transport = transport
        self._executor = executor or self._execute_with_transport
        self.flat_requests = flatten_requests(collection)

        self.state = "idle"
        self.config: RunConfig | None = None
        self.current_iteration = 0
        self.results: list[RequestResult] = self._fresh_results()
        self.iterations: list[IterationRecord] = []
        self.started = False
        self.finished = False

        self._aborted = False
        self._looping = False
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._listeners: list[Listener] = []

    # Control surface

    def configure(self, config: RunConfig) -> None:
        """Set the run configuration before starting."""
        if self.state in ("running", "paused", "aborted"):
            raise RunnerStateError(f"cannot configure a runner that is {self.state}")
        self.config = config
        self.state = "configuring"
        self._notify()

    async def run(self, config: RunConfig | None = None) -> list[RequestResult]:
        """
        Execute the whole run and return the final results.

        Raises:
            RunnerStateError: if a run is already in progress
        """
        if self._looping:
            raise RunnerStateError(f"runner is already {self.state}")
        if config is not None:
            self.config = config
        config = self.config or RunConfig()
        self.config = config

        if self.state == "aborted":
            # Stopped before the loop got to run
            logger.info("Run of collection '%s' aborted before start", self.collection.name)
            self.started = True
            self.state = "idle"
            self.finished = True
            self._notify()
            return list(self.results)

        self._looping = True
        self._aborted = False
        self._resume_event.set()
        self.iterations = []
        self.started = True
        self.finished = False
        self.state = "running"
        logger.info(
            "Starting run of collection '%s': %d requests, %d iteration(s), %s mode",
            self.collection.name, len(self.flat_requests), config.iterations, config.mode,
        )
        self._notify()

        try:
            for iteration in range(1, config.iterations + 1):
                if self._aborted:
                    break
                self.current_iteration = iteration
                self.results = self._fresh_results()
                logger.info("Iteration %d/%d", iteration, config.iterations)
                self._notify()

                if config.mode == "parallel":
                    await self._run_parallel()
                else:
                    await self._run_sequential(config)

                if self._aborted:
                    break
                self.iterations.append(
                    IterationRecord(iteration=iteration, results=list(self.results))
                )

                if iteration < config.iterations and config.delay_between_requests > 0:
                    await asyncio.sleep(config.delay_between_requests / 1000)
        finally:
            if self._aborted:
                logger.info("Run of collection '%s' aborted", self.collection.name)
            else:
                logger.info(
                    "Run of collection '%s' finished: %s",
                    self.collection.name, self.summary().model_dump(),
                )
            self._looping = False
            self.state = "idle"
            self.finished = True
            self._resume_event.set()
            self._notify()

        return list(self.results)

    def pause(self) -> None:
        """
        Hold the run before the next sequential request.

        Raises:
            RunnerStateError: if the run is not running or runs in parallel mode
        """
        if self.state != "running":
            raise RunnerStateError(f"cannot pause a runner that is {self.state}")
        if self.config is not None and self.config.mode == "parallel":
            raise RunnerStateError("cannot pause a parallel run")
        self._resume_event.clear()
        self.state = "paused"
        logger.info("Run paused")
        self._notify()

    def resume(self) -> None:
        """Let a paused run continue."""
        if self.state != "paused":
            raise RunnerStateError(f"cannot resume a runner that is {self.state}")
        self.state = "running"
        self._resume_event.set()
        logger.info("Run resumed")
        self._notify()

    def stop(self) -> None:
        """
        Abort the run.

        No further requests are started; a request already in flight is
        left to complete. Completed results are kept. A configured run
        that has not started yet finishes without sending anything.
        """
        if self.state not in ("configuring", "running", "paused"):
            raise RunnerStateError(f"cannot stop a runner that is {self.state}")
        self._aborted = True
        self.state = "aborted"
        # Release a paused loop so it can observe the abort
        self._resume_event.set()
        self._notify()

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def paused(self) -> bool:
        return not self._resume_event.is_set()

    def summary(self) -> RunSummary:
        return summarize(self.results)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call ``listener(runner)`` after every state or result change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Run loop

    async def _run_sequential(self, config: RunConfig) -> None:
        count = len(self.flat_requests)
        for index, item in enumerate(self.flat_requests):
            if self._aborted:
                return
            await self._resume_event.wait()
            if self._aborted:
                return

            succeeded = await self._run_one(index, item)

            if not succeeded and config.stop_on_error:
                for later in range(index + 1, count):
                    self._update_result(later, status="skipped")
                logger.info("Stopping iteration after failed request '%s'", item.request.name)
                return

            if config.delay_between_requests > 0 and index < count - 1:
                await asyncio.sleep(config.delay_between_requests / 1000)

    async def _run_parallel(self) -> None:
        for index in range(len(self.flat_requests)):
            self.results[index] = self.results[index].model_copy(update={"status": "running"})
        self._notify()
        await asyncio.gather(*(
            self._run_one(index, item, mark_running=False)
            for index, item in enumerate(self.flat_requests)
        ))

    async def _run_one(self, index: int, item: FlatRequest, mark_running: bool = True) -> bool:
        """Execute one request and record its result; returns success."""
        if mark_running:
            self._update_result(index, status="running")

        options = ExecuteRequest(
            request=item.request,
            collection_variables=self.collection.variables,
            environment_variables=self.environment.variables,
            inherited_auth=inherited_auth_for(self.collection, item.folder_id),
        )
        start_time = time.perf_counter()
        try:
            response = await self._executor(options, self.environment)
        except Exception as exc:  # one failing request must not end the iteration
            duration = int((time.perf_counter() - start_time) * 1000)
            logger.warning("Request '%s' raised: %s", item.request.name, exc)
            self._update_result(
                index,
                status="failed",
                error=str(exc) or type(exc).__name__,
                duration=duration,
            )
            return False

        duration = int((time.perf_counter() - start_time) * 1000)
        succeeded = is_success(response)
        self._update_result(
            index,
            status="success" if succeeded else "failed",
            response=response,
            error=None if succeeded else _response_error(response),
            duration=duration,
        )
        return succeeded

    async def _execute_with_transport(
        self, options: ExecuteRequest, environment: EnvironmentStore
    ) -> ApiResponse:
        if self._transport is None:
            self._transport = HttpTransport()
        return await execute_request(options, self._transport, environment)

    def _fresh_results(self) -> list[RequestResult]:
        return [
            RequestResult(
                request_id=item.request.id,
                request_name=item.request.name,
                method=item.request.method,
                url=item.request.url,
                status="pending",
            )
            for item in self.flat_requests
        ]

    def _update_result(self, index: int, **changes) -> None:
        # Replace only this slot; concurrent completions touch different indexes
        self.results[index] = self.results[index].model_copy(update=changes)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Run listener failed")
