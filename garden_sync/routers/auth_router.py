# garden_sync/routers/auth_router.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from ..dependencies.db import get_session_dep
from ..UAA.repository import UserRepository
from ..UAA.services import UserService, AuthenticationError
from ..UAA.schemas import UserCreate, UserLogin, Token
from ..UAA import utils

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=dict, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, session: AsyncSession = Depends(get_session_dep)):
    svc = UserService(UserRepository(session), session)
    try:
        created = await svc.register_user(user_in)
    except ValueError as e:
        logger.info("register_validation_failed", error=str(e), email=user_in.email)
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": str(created.id), "email": created.email, "username": created.username}

@router.post("/login", response_model=Token)
async def login(form_data: UserLogin, session: AsyncSession = Depends(get_session_dep)):
    """
    Expects JSON: {"email": "...", "password": "..."}
    Returns a bearer access token; there is no refresh token, log in again once it expires.
    """
    svc = UserService(UserRepository(session), session)
    try:
        user = await svc.authenticate_user(form_data.email, form_data.password)
    except AuthenticationError as e:
        # do not reveal whether the email exists
        logger.warning("login_failed", reason=str(e), email=form_data.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    access = svc.issue_token(user)
    return {"access_token": access["token"], "token_type": "bearer", "expires_in": utils.ACCESS_TOKEN_EXPIRE_MINUTES * 60}
