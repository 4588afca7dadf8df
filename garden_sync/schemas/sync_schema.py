# garden_sync/schemas/sync_schema.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from decimal import Decimal
from typing import List
from datetime import datetime

from garden_sync.services.sync_service import BatchSyncResult, UserSyncResult

CENTS = Decimal("0.01")

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class SyncMetrics(CamelModel):
    sessions: int
    revenue: Decimal  # serialized as a string, e.g. "50.00"
    payments: int

class SyncRewards(CamelModel):
    growth_points_earned: int
    seeds_earned: int
    new_balance: int

class SyncGarden(CamelModel):
    plants_grown: int
    plants_upgraded: int
    new_rank: int

class SyncRead(CamelModel):
    metrics: SyncMetrics
    rewards: SyncRewards
    garden: SyncGarden

    @classmethod
    def from_result(cls, result: UserSyncResult) -> "SyncRead":
        return cls(
            metrics=SyncMetrics(
                sessions=result.metrics.sessions,
                revenue=result.metrics.revenue.quantize(CENTS),
                payments=result.metrics.payments,
            ),
            rewards=SyncRewards(
                growth_points_earned=result.growth_points_earned,
                seeds_earned=result.seeds_earned,
                new_balance=result.new_balance,
            ),
            garden=SyncGarden(
                plants_grown=result.plants_grown,
                plants_upgraded=result.plants_upgraded,
                new_rank=result.new_rank,
            ),
        )

class BatchSyncRead(BaseModel):
    processed: int
    successful: int
    failed: int
    errors: List[str]
    timestamp: datetime

    @classmethod
    def from_result(cls, result: BatchSyncResult) -> "BatchSyncRead":
        return cls(
            processed=result.processed,
            successful=result.successful,
            failed=result.failed,
            errors=result.errors,
            timestamp=result.timestamp,
        )
