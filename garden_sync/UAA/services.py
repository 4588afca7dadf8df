# garden_sync/UAA/services.py
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.exc import IntegrityError
import structlog

from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.services.garden_service import provision_game_state
from .models import User
from .repository import UserRepository
from .schemas import UserCreate
from . import utils

logger = structlog.get_logger(__name__)

class AuthenticationError(Exception):
    pass

class UserService:
    def __init__(self, repo: UserRepository, session: AsyncSession):
        self.repo = repo
        self.session = session

    async def register_user(self, user_in: UserCreate) -> User:
        """
        Create the user together with an empty garden and the welcome seeds.
        All three rows land in one commit; a user never exists without a garden.
        """
        utils.assert_password_policy(user_in.password)
        utils.assert_username_policy(user_in.username)
        if await self.repo.get_by_email(user_in.email):
            logger.debug("register_email_exists", email=user_in.email)
            raise ValueError("email already registered")
        if await self.repo.get_by_username(user_in.username):
            logger.debug("register_username_exists", username=user_in.username)
            raise ValueError("username already taken")

        user = User(email=user_in.email, username=user_in.username, hashed_password=utils.hash_password(user_in.password))
        try:
            await self.repo.add(user)
            garden = await provision_game_state(GameStateRepository(self.session), user.id, user.username)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("register_conflict", email=user_in.email, error=str(e))
            raise ValueError("email or username already registered") from e

        logger.info("user_registered", user_id=str(user.id), email=user.email, garden_id=str(garden.id))
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        user = await self.repo.get_by_email(email)
        if not user:
            logger.debug("auth_failed_unknown_email", email=email)
            raise AuthenticationError("invalid credentials")
        if not user.is_active:
            logger.info("auth_failed_inactive_user", user_id=str(user.id))
            raise AuthenticationError("invalid credentials")
        if not utils.verify_password(password, user.hashed_password):
            logger.info("auth_failed_wrong_password", user_id=str(user.id))
            raise AuthenticationError("invalid credentials")

        await self.repo.update_last_login(user)
        logger.info("auth_success", user_id=str(user.id), email=user.email)
        return user

    def issue_token(self, user: User) -> dict:
        access = utils.create_access_token(str(user.id))
        logger.info("token_issued", user_id=str(user.id), jti=access["jti"])
        return access
