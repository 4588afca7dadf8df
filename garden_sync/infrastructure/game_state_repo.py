# garden_sync/infrastructure/game_state_repo.py
from typing import List, Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from garden_sync.models.garden import Garden, Plant, CurrencyAccount
from garden_sync.models.metric_snapshot import DailyMetricSnapshot
from garden_sync.services.errors import PositionOccupied, StaleStateError
import uuid
from datetime import date, datetime

SNAPSHOT_FIELDS = (
    "sessions", "users", "revenue", "payments",
    "growth_points_earned", "seeds_earned", "growth_points_applied", "seeds_applied",
)

APPLIED_FIELDS = ("growth_points_applied", "seeds_applied")

class GameStateRepository:
    """
    Repository for gardens, plants, currency accounts and daily snapshots.
    Writes are flushed, not committed: the caller owns the transaction (one per user sync).
    Row updates are compare-and-swap on `version`.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    # --- gardens ---
    async def get_garden(self, user_id: uuid.UUID) -> Optional[Garden]:
        q = select(Garden).where(Garden.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def create_garden(self, garden: Garden) -> Garden:
        self.session.add(garden)
        await self.session.flush()
        return garden

    async def update_garden(
        self,
        garden: Garden,
        total_growth_points: Optional[int] = None,
        rank: Optional[int] = None
    ) -> Garden:
        values = {"updated_at": datetime.utcnow()}
        if total_growth_points is not None:
            values["total_growth_points"] = total_growth_points
        if rank is not None:
            values["rank"] = rank
        await self._compare_and_swap(Garden, garden, values)
        return garden

    async def count_public_gardens_above(self, total_growth_points: int) -> int:
        q = select(func.count()).select_from(Garden).where(
            Garden.is_public.is_(True),
            Garden.total_growth_points > total_growth_points
        )
        res = await self.session.execute(q)
        return res.scalar_one()

    # --- plants ---
    async def list_plants(self, garden_id: uuid.UUID) -> List[Plant]:
        q = select(Plant).where(Plant.garden_id == garden_id).order_by(Plant.position_y, Plant.position_x)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def get_plant_at(self, garden_id: uuid.UUID, x: int, y: int) -> Optional[Plant]:
        q = select(Plant).where(Plant.garden_id == garden_id, Plant.position_x == x, Plant.position_y == y)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def add_plant(self, plant: Plant) -> Plant:
        self.session.add(plant)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise PositionOccupied(f"position ({plant.position_x}, {plant.position_y}) already occupied") from exc
        return plant

    async def update_plant(self, plant: Plant, growth_points: int, growth_stage: int) -> Plant:
        await self._compare_and_swap(Plant, plant, {
            "growth_points": growth_points,
            "growth_stage": growth_stage,
            "last_grown_at": datetime.utcnow(),
        })
        return plant

    # --- currency ---
    async def get_currency(self, user_id: uuid.UUID) -> Optional[CurrencyAccount]:
        q = select(CurrencyAccount).where(CurrencyAccount.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def create_currency(self, account: CurrencyAccount) -> CurrencyAccount:
        self.session.add(account)
        await self.session.flush()
        return account

    async def update_currency(self, account: CurrencyAccount, seeds: int, lifetime_seeds: int) -> CurrencyAccount:
        await self._compare_and_swap(CurrencyAccount, account, {
            "seeds": seeds,
            "lifetime_seeds": lifetime_seeds,
            "updated_at": datetime.utcnow(),
        })
        return account

    # --- snapshots ---
    async def get_snapshot(self, user_id: uuid.UUID, snapshot_date: date) -> Optional[DailyMetricSnapshot]:
        q = (
            select(DailyMetricSnapshot)
            .where(DailyMetricSnapshot.user_id == user_id, DailyMetricSnapshot.snapshot_date == snapshot_date)
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def upsert_snapshot(self, user_id: uuid.UUID, snapshot_date: date, fields: dict) -> DailyMetricSnapshot:
        """
        Insert the day's snapshot, or overwrite its metric and reward fields if one exists.
        Values are replaced, never added to the stored ones, except the paid-out counters
        (APPLIED_FIELDS) which keep the larger of the stored and the new value.
        """
        values = {name: fields[name] for name in SNAPSHOT_FIELDS if name in fields}
        now = datetime.utcnow()
        insert = self._dialect_insert()
        stmt = insert(DailyMetricSnapshot.__table__).values(
            id=uuid.uuid4(),
            user_id=user_id,
            snapshot_date=snapshot_date,
            created_at=now,
            updated_at=now,
            **values
        )
        table = DailyMetricSnapshot.__table__
        greatest = func.greatest if self.session.bind.dialect.name == "postgresql" else func.max
        set_ = {**values, "updated_at": now}
        for name in APPLIED_FIELDS:
            if name in values:
                set_[name] = greatest(table.c[name], stmt.excluded[name])
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "snapshot_date"],
            set_=set_
        )
        await self.session.execute(stmt)
        return await self.get_snapshot(user_id, snapshot_date)

    def _dialect_insert(self):
        dialect = self.session.bind.dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise RuntimeError(f"snapshot upsert not supported on {dialect}")

    async def _compare_and_swap(self, model, row, values: dict) -> None:
        stmt = (
            update(model)
            .where(model.id == row.id, model.version == row.version)
            .values(version=row.version + 1, **values)
        )
        res = await self.session.execute(stmt)
        if res.rowcount != 1:
            raise StaleStateError(f"{model.__name__} {row.id} was modified concurrently (version {row.version})")
