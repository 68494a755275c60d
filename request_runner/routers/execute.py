"""
Request execution API routes.

Executes a single request definition with its variable context and
records the execution in history.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.execute import ExecuteRequest, ExecuteResult
from ..services.history_service import save_history
from ..services.http_executor import execute_request
from ..services.transport import HttpTransport
from ..services.variable_store import EnvironmentStore


router = APIRouter(prefix="/api/execute", tags=["execute"])


def get_transport() -> HttpTransport:
    """Dependency function for FastAPI to get the HTTP transport."""
    return HttpTransport()


@router.post("", response_model=ExecuteResult)
async def execute_single_request(
    options: ExecuteRequest,
    db: Session = Depends(get_db),
    transport: HttpTransport = Depends(get_transport),
):
    """
    Execute a request definition.

    Transport failures, script errors and HTTP error statuses all come
    back as a regular response; inspect ``status``, ``error_code``,
    ``pre_script_error`` and ``script_error``.

    Returns:
        ExecuteResult with the response and the environment variables as
        they stand after script writes
    """
    environment = EnvironmentStore(options.environment_variables)
    response = await execute_request(options, transport, environment)

    save_history(db=db, options=options, response=response)

    return ExecuteResult(response=response, environment_variables=environment.variables)
