"""
History model for storing executed request records.

Each single execution creates a history entry containing the request
as it was sent (with secret variables left unresolved), the response
details, and timing information.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Text, JSON, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class History(Base):
    """
    SQLAlchemy model for request execution history.

    Attributes:
        id: Unique identifier for the history entry
        request_id: Identifier of the stored request definition, if any
        request_name: Display name of the request
        method: HTTP method used
        url: Target URL (secret variables kept as placeholders)
        request_headers: Headers sent with the request
        request_body: Raw body sent with the request
        status_code: HTTP response status code (0 when nothing was received)
        status_text: HTTP response status text or failure description
        response_headers: Headers received in the response
        response_body: Body received in the response
        response_time_ms: Request execution time in milliseconds
        response_size: Response body size in bytes
        error_code: Transport failure code, if the transport failed
        executed_at: Timestamp when the request was executed
    """
    __tablename__ = "history"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    request_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    method: Mapped[str] = mapped_column(String(10))
    url: Mapped[str] = mapped_column(Text)
    request_headers: Mapped[dict] = mapped_column(JSON, default=dict)
    request_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_code: Mapped[int] = mapped_column(Integer)
    status_text: Mapped[str] = mapped_column(String(100))
    response_headers: Mapped[dict] = mapped_column(JSON, default=dict)
    response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_time_ms: Mapped[int] = mapped_column(Integer)
    response_size: Mapped[int] = mapped_column(Integer)
    error_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    executed_at: Mapped[datetime] = mapped_column(default=_utcnow)
