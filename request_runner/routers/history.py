"""
History record API routes.

Execution history is written whenever a single request is executed
through ``/api/execute``; these routes read and prune it.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ResourceNotFoundError
from ..models.history import History
from ..schemas.history import HistoryResponse, HistoryListResponse


router = APIRouter(prefix="/api/history", tags=["history"])


def _get_or_404(db: Session, history_id: int) -> History:
    record = db.get(History, history_id)
    if record is None:
        raise ResourceNotFoundError("History record", history_id)
    return record


@router.get("", response_model=HistoryListResponse)
def list_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """
    Get history records, newest first.

    Args:
        skip: Number of records to skip (for pagination)
        limit: Maximum number of records to return
    """
    total = db.query(History).count()
    items = (
        db.query(History)
        .order_by(History.executed_at.desc(), History.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return HistoryListResponse(items=items, total=total)


@router.get("/{history_id}", response_model=HistoryResponse)
def get_history(history_id: int, db: Session = Depends(get_db)):
    """Get a single history record by ID."""
    return _get_or_404(db, history_id)


@router.delete("/{history_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_history(history_id: int, db: Session = Depends(get_db)):
    """Delete a single history record by ID."""
    db.delete(_get_or_404(db, history_id))
    db.commit()
    return None


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_all_history(db: Session = Depends(get_db)):
    """Clear all history records."""
    db.query(History).delete()
    db.commit()
    return None
