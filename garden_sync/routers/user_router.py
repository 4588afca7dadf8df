# garden_sync/routers/user_router.py
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from garden_sync.dependencies.auth import get_current_user
from garden_sync.dependencies.db import get_session_dep
from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.UAA.schemas import UserProfile, UserRead

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/me", response_model=UserProfile)
async def me(current_user = Depends(get_current_user), session: AsyncSession = Depends(get_session_dep)):
    repo = GameStateRepository(session)
    garden = await repo.get_garden(current_user.id)
    account = await repo.get_currency(current_user.id)
    return UserProfile(
        **UserRead.model_validate(current_user).model_dump(),
        garden_rank=garden.rank if garden else None,
        seeds=account.seeds if account else 0,
    )
