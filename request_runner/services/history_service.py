"""
History service for saving request execution records.

Records are written from the history-resolved request, so secret
variables stay as <<key>> placeholders in what is stored.
"""

from sqlalchemy.orm import Session

from ..models.history import History
from ..schemas.execute import ApiResponse, ExecuteRequest
from .http_executor import build_url
from .variable_substitution import resolve_request_variables


def save_history(
    db: Session,
    options: ExecuteRequest,
    response: ApiResponse,
) -> History:
    """
    Save a request execution to history.

    Args:
        db: Database session
        options: The executed request with its variable context
        response: The response received

    Returns:
        The created history record
    """
    request = resolve_request_variables(
        options.request,
        options.collection_variables,
        options.environment_variables,
    )
    history = History(
        request_id=request.id,
        request_name=request.name,
        method=request.method,
        url=build_url(request.url, [(p.key, p.value) for p in request.params if p.enabled and p.key]),
        request_headers={h.key.strip(): h.value for h in request.headers if h.enabled and h.key.strip()},
        request_body=request.body.raw if request.body.type in ("json", "raw") else None,
        status_code=response.status,
        status_text=response.status_text,
        response_headers=response.headers,
        response_body=response.body,
        response_time_ms=response.time,
        response_size=response.size,
        error_code=response.error_code,
    )
    db.add(history)
    db.commit()
    db.refresh(history)
    return history
