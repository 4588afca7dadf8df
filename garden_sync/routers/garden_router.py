# garden_sync/routers/garden_router.py
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from garden_sync.dependencies.auth import get_current_user
from garden_sync.dependencies.db import get_session_dep
from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.routers.error_mapping import to_http_exception
from garden_sync.schemas.garden_schema import GardenRead, GardenStateRead, PlantCreate, PlantCreatedRead, PlantRead
from garden_sync.services.currency_service import CurrencyLedger
from garden_sync.services.errors import GardenSyncError
from garden_sync.services.garden_service import PlantingService

router = APIRouter(prefix="/garden", tags=["garden"])

@router.get("/state", response_model=GardenStateRead)
async def garden_state(session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    repo = GameStateRepository(session)
    garden = await repo.get_garden(current_user.id)
    if not garden:
        raise HTTPException(status_code=404, detail="Garden not found")
    plants = await repo.list_plants(garden.id)
    try:
        seeds = await CurrencyLedger(repo).get_balance(current_user.id)
    except GardenSyncError as exc:
        raise to_http_exception(exc)
    return GardenStateRead(
        garden=GardenRead.model_validate(garden),
        plants=[PlantRead.model_validate(p) for p in plants],
        seeds=seeds,
    )

@router.post("/plants", response_model=PlantCreatedRead, status_code=201)
async def plant_seed(payload: PlantCreate, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PlantingService(GameStateRepository(session))
    try:
        plant, remaining = await svc.plant_seed(current_user.id, payload.position_x, payload.position_y)
    except GardenSyncError as exc:
        raise to_http_exception(exc)
    return PlantCreatedRead(plant=PlantRead.model_validate(plant), seeds=remaining)
