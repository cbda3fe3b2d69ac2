import uuid
from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, String

def utcnow():
    return datetime.now(timezone.utc)

def new_id() -> str:
    return str(uuid.uuid4())

class UUIDMixin:
    # Stored as text so raw listing statements compare ids the same way on every backend.
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
