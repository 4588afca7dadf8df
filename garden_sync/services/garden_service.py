# garden_sync/services/garden_service.py
import os
import uuid
from dataclasses import dataclass

import structlog

from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.models.garden import CurrencyAccount, Garden, Plant
from garden_sync.services.currency_service import CurrencyLedger
from garden_sync.services.errors import GardenNotFound, InvalidAmount, InvalidPosition, PositionOccupied
from garden_sync.services.growth_engine import MAX_GROWTH_STAGE, advance_stage

logger = structlog.get_logger(__name__)

WELCOME_SEEDS = int(os.getenv("WELCOME_SEEDS", "100"))
DEFAULT_GRID_SIZE = int(os.getenv("DEFAULT_GRID_SIZE", "10"))
PLANT_SEED_COST = 1


@dataclass
class GrowthResult:
    plants_grown: int = 0
    plants_upgraded: int = 0


class GardenGrowthApplier:
    def __init__(self, repo: GameStateRepository):
        self.repo = repo

    async def apply_growth(self, user_id: uuid.UUID, growth_points: int) -> GrowthResult:
        """
        Split `growth_points` evenly (floor division) over the garden's plants.

        Points are not banked: an empty garden gets nothing and keeps its total.
        Plants at the last stage are skipped and their share is not handed to the others;
        the division remainder is dropped as well. The garden total still grows by the full amount.
        """
        if growth_points < 0:
            raise InvalidAmount(growth_points)
        garden = await self.repo.get_garden(user_id)
        if not garden:
            raise GardenNotFound(user_id)

        plants = await self.repo.list_plants(garden.id)
        if not plants:
            logger.info("growth_skipped_no_plants", user_id=str(user_id), garden_id=str(garden.id))
            return GrowthResult()

        per_plant = growth_points // len(plants)
        result = GrowthResult()
        for plant in plants:
            if plant.growth_stage >= MAX_GROWTH_STAGE:
                continue
            new_points = plant.growth_points + per_plant
            new_stage = advance_stage(plant.growth_stage, new_points)
            if new_stage != plant.growth_stage:
                result.plants_upgraded += 1
            await self.repo.update_plant(plant, new_points, new_stage)
            result.plants_grown += 1

        await self.repo.update_garden(garden, total_growth_points=garden.total_growth_points + growth_points)
        logger.info(
            "growth_applied",
            user_id=str(user_id),
            growth_points=growth_points,
            per_plant=per_plant,
            plants_grown=result.plants_grown,
            plants_upgraded=result.plants_upgraded,
        )
        return result


class RankCalculator:
    def __init__(self, repo: GameStateRepository):
        self.repo = repo

    async def recompute_rank(self, user_id: uuid.UUID) -> int:
        """1 + number of public gardens strictly ahead; equal totals share a rank."""
        garden = await self.repo.get_garden(user_id)
        if not garden:
            raise GardenNotFound(user_id)

        rank = await self.repo.count_public_gardens_above(garden.total_growth_points) + 1
        await self.repo.update_garden(garden, rank=rank)
        return rank


class PlantingService:
    def __init__(self, repo: GameStateRepository):
        self.repo = repo
        self.ledger = CurrencyLedger(repo)

    async def plant_seed(self, user_id: uuid.UUID, position_x: int, position_y: int):
        garden = await self.repo.get_garden(user_id)
        if not garden:
            raise GardenNotFound(user_id)
        if not (0 <= position_x < garden.grid_size and 0 <= position_y < garden.grid_size):
            raise InvalidPosition(f"position ({position_x}, {position_y}) is outside the {garden.grid_size}x{garden.grid_size} grid")
        if await self.repo.get_plant_at(garden.id, position_x, position_y):
            raise PositionOccupied(f"position ({position_x}, {position_y}) already occupied")

        remaining = await self.ledger.spend_seeds(user_id, PLANT_SEED_COST)
        plant = await self.repo.add_plant(Plant(garden_id=garden.id, position_x=position_x, position_y=position_y))
        await self.repo.commit()
        logger.info("seed_planted", user_id=str(user_id), plant_id=str(plant.id), x=position_x, y=position_y)
        return plant, remaining


async def provision_game_state(repo: GameStateRepository, user_id: uuid.UUID, username: str) -> Garden:
    """Starting garden and welcome seeds for a new user. Flushed only; the caller commits."""
    garden = await repo.create_garden(Garden(user_id=user_id, name=f"{username}'s garden", grid_size=DEFAULT_GRID_SIZE))
    await repo.create_currency(CurrencyAccount(user_id=user_id, seeds=WELCOME_SEEDS, lifetime_seeds=WELCOME_SEEDS))
    return garden
