# garden_sync/models/garden.py
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import UniqueConstraint

# every game-state row carries a version used for compare-and-swap updates

class Garden(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", unique=True, index=True)
    name: str
    grid_size: int = Field(default=10)
    is_public: bool = Field(default=True, index=True)
    total_growth_points: int = Field(default=0)
    rank: Optional[int] = Field(default=None)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class Plant(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("garden_id", "position_x", "position_y", name="uq_plant_position"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    garden_id: uuid.UUID = Field(foreign_key="garden.id", index=True)
    plant_type_id: str = Field(default="default")
    position_x: int
    position_y: int
    growth_stage: int = Field(default=0)  # 0 seed .. 4 full grown
    growth_points: int = Field(default=0)
    version: int = Field(default=1)
    planted_at: datetime = Field(default_factory=datetime.utcnow)
    last_grown_at: Optional[datetime] = Field(default=None)

class CurrencyAccount(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", unique=True, index=True)
    seeds: int = Field(default=0)
    lifetime_seeds: int = Field(default=0)
    version: int = Field(default=1)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
