# garden_sync/schemas/garden_schema.py
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
import uuid
from datetime import datetime

class PlantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    plant_type_id: str
    position_x: int
    position_y: int
    growth_stage: int
    growth_points: int
    planted_at: datetime
    last_grown_at: Optional[datetime] = None

class GardenRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    grid_size: int
    is_public: bool
    total_growth_points: int
    rank: Optional[int] = None

class GardenStateRead(BaseModel):
    garden: GardenRead
    plants: List[PlantRead]
    seeds: int

class PlantCreate(BaseModel):
    position_x: int
    position_y: int

class PlantCreatedRead(BaseModel):
    plant: PlantRead
    seeds: int

class BalanceRead(BaseModel):
    seeds: int
    lifetime_seeds: int
