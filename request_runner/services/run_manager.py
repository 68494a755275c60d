"""
Registry of collection runs started through the HTTP surface.

Each run gets an id, a ``CollectionRunner`` and a background asyncio
task. Control calls are forwarded to the runner and state errors are
turned into API errors.
"""

import asyncio
import logging
import uuid
from typing import AsyncIterator

from ..exceptions import ConflictError, ResourceNotFoundError, RunnerStateError
from ..schemas.run import RunStartRequest, RunState
from .collection_runner import CollectionRunner
from .transport import HttpTransport


logger = logging.getLogger(__name__)


class RunManager:
    """Keeps track of runs and their background tasks."""

    def __init__(self, transport: HttpTransport | None = None):
        self.transport = transport
        self._runners: dict[str, CollectionRunner] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def start(self, payload: RunStartRequest) -> str:
        """
        Create a runner for ``payload`` and schedule it on the running loop.

        Returns:
            The id of the new run
        """
        run_id = str(uuid.uuid4())
        runner = CollectionRunner(
            payload.collection,
            payload.environment_variables,
            transport=self.transport,
        )
        runner.configure(payload.config)
        self._runners[run_id] = runner

        task = asyncio.create_task(runner.run(), name=f"run-{run_id}")
        self._tasks[run_id] = task
        task.add_done_callback(lambda t: self._on_task_done(run_id, t))
        logger.info("Run %s scheduled for collection '%s'", run_id, payload.collection.name)
        return run_id

    def _on_task_done(self, run_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(run_id, None)
        if task.cancelled():
            logger.warning("Run %s was cancelled", run_id)
        elif task.exception() is not None:
            logger.error("Run %s crashed", run_id, exc_info=task.exception())

    def get(self, run_id: str) -> CollectionRunner:
        runner = self._runners.get(run_id)
        if runner is None:
            raise ResourceNotFoundError("Run", run_id)
        return runner

    def list_ids(self) -> list[str]:
        return list(self._runners)

    def snapshot(self, run_id: str) -> RunState:
        return self.state_of(run_id, self.get(run_id))

    @staticmethod
    def state_of(run_id: str, runner: CollectionRunner) -> RunState:
        return RunState(
            run_id=run_id,
            state=runner.state,
            finished=runner.finished,
            current_iteration=runner.current_iteration,
            config=runner.config,
            results=list(runner.results),
            summary=runner.summary(),
            iterations=list(runner.iterations),
        )

    def pause(self, run_id: str) -> RunState:
        return self._control(run_id, "pause")

    def resume(self, run_id: str) -> RunState:
        return self._control(run_id, "resume")

    def stop(self, run_id: str) -> RunState:
        return self._control(run_id, "stop")

    def _control(self, run_id: str, action: str) -> RunState:
        runner = self.get(run_id)
        try:
            getattr(runner, action)()
        except RunnerStateError as exc:
            raise ConflictError(str(exc)) from exc
        return self.snapshot(run_id)

    def remove(self, run_id: str) -> None:
        """Forget a finished run."""
        runner = self.get(run_id)
        if not runner.finished:
            raise ConflictError(f"Run {run_id} is still in progress")
        del self._runners[run_id]

    async def events(self, run_id: str) -> AsyncIterator[RunState]:
        """
        Yield a snapshot now and after every change until the run finishes.
        """
        runner = self.get(run_id)
        queue: asyncio.Queue[RunState] = asyncio.Queue()
        unsubscribe = runner.subscribe(
            lambda r: queue.put_nowait(self.state_of(run_id, r))
        )
        try:
            current = self.state_of(run_id, runner)
            yield current
            if current.finished:
                return
            while True:
                state = await queue.get()
                yield state
                if state.finished:
                    return
        finally:
            unsubscribe()


run_manager = RunManager()


def get_run_manager() -> RunManager:
    """Dependency function for FastAPI to get the run registry."""
    return run_manager
