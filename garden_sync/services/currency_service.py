# garden_sync/services/currency_service.py
import uuid
import structlog

from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.models.garden import CurrencyAccount
from garden_sync.services.errors import AccountNotFound, InsufficientFunds, InvalidAmount

logger = structlog.get_logger(__name__)


class CurrencyLedger:
    """
    Seed balance of a user. `seeds` is spendable and never negative,
    `lifetime_seeds` counts everything ever earned and only grows.
    """

    def __init__(self, repo: GameStateRepository):
        self.repo = repo

    async def _account(self, user_id: uuid.UUID) -> CurrencyAccount:
        account = await self.repo.get_currency(user_id)
        if not account:
            raise AccountNotFound(user_id)
        return account

    async def get_balance(self, user_id: uuid.UUID) -> int:
        account = await self._account(user_id)
        return account.seeds

    async def add_seeds(self, user_id: uuid.UUID, amount: int) -> int:
        if amount <= 0:
            raise InvalidAmount(amount)
        account = await self._account(user_id)

        new_seeds = account.seeds + amount
        await self.repo.update_currency(account, new_seeds, account.lifetime_seeds + amount)
        logger.info("seeds_added", user_id=str(user_id), amount=amount, balance=new_seeds)
        return new_seeds

    async def spend_seeds(self, user_id: uuid.UUID, amount: int) -> int:
        if amount <= 0:
            raise InvalidAmount(amount)
        account = await self._account(user_id)
        if account.seeds < amount:
            raise InsufficientFunds(user_id, account.seeds, amount)

        new_seeds = account.seeds - amount
        await self.repo.update_currency(account, new_seeds, account.lifetime_seeds)
        logger.info("seeds_spent", user_id=str(user_id), amount=amount, balance=new_seeds)
        return new_seeds
