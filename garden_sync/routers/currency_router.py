# garden_sync/routers/currency_router.py
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from garden_sync.dependencies.auth import get_current_user
from garden_sync.dependencies.db import get_session_dep
from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.schemas.garden_schema import BalanceRead

router = APIRouter(prefix="/currency", tags=["currency"])

@router.get("/balance", response_model=BalanceRead)
async def balance(session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    account = await GameStateRepository(session).get_currency(current_user.id)
    if not account:
        raise HTTPException(status_code=404, detail="Currency account not found")
    return {"seeds": account.seeds, "lifetime_seeds": account.lifetime_seeds}
