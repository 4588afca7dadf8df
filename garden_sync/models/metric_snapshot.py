# garden_sync/models/metric_snapshot.py
from sqlmodel import SQLModel, Field
from datetime import datetime, date
from decimal import Decimal
import uuid
from sqlalchemy import UniqueConstraint

class DailyMetricSnapshot(SQLModel, table=True):
    """One row per (user, UTC day): raw provider metrics, the rewards derived from them and the rewards paid."""

    __table_args__ = (UniqueConstraint("user_id", "snapshot_date", name="uq_snapshot_user_date"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    snapshot_date: date = Field(index=True)
    sessions: int = Field(default=0)
    users: int = Field(default=0)
    revenue: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    payments: int = Field(default=0)
    growth_points_earned: int = Field(default=0)
    seeds_earned: int = Field(default=0)
    # rewards actually paid out for the day; only ever raised, never lowered by a rerun
    growth_points_applied: int = Field(default=0)
    seeds_applied: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
