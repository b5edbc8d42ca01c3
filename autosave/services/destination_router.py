# services/destination_router.py

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional

from ..config import Settings
from ..db.enums import DestinationType
from .exceptions import DestinationUnavailableError, NotFoundError
from .repository import AutoSaveRepository

logger = logging.getLogger(__name__)


class VaultGateway(ABC):
    """Investment vault contribution mechanism (owned by the vault subsystem)."""

    @abstractmethod
    async def contribute(self, vault_id: str, amount: Decimal, reference: str) -> None:
        """Raise DestinationUnavailableError on failure; `reference` dedupes retries."""


class StockGateway(ABC):
    """Single-stock purchase mechanism (owned by the trading subsystem)."""

    @abstractmethod
    async def purchase(self, symbol: str, amount: Decimal, reference: str) -> None:
        """Raise DestinationUnavailableError on failure; `reference` dedupes retries."""


class UnconfiguredGateway(VaultGateway, StockGateway):
    """Default until a deployment wires the real vault/trading clients."""

    async def contribute(self, vault_id: str, amount: Decimal, reference: str) -> None:
        raise DestinationUnavailableError(DestinationType.INVESTMENT_VAULT.value, vault_id, "no vault gateway configured")

    async def purchase(self, symbol: str, amount: Decimal, reference: str) -> None:
        raise DestinationUnavailableError(DestinationType.SPECIFIC_STOCK.value, symbol, "no stock gateway configured")


class DestinationRouter:
    """
    Sends a siphoned amount to its destination. Each call is bounded by a
    timeout; timeouts and DestinationUnavailableError are retried with
    exponential backoff, always with the same reference so the destination
    can drop duplicates. A missing destination is not retried.
    """

    def __init__(
        self,
        repository: AutoSaveRepository,
        vault_gateway: Optional[VaultGateway] = None,
        stock_gateway: Optional[StockGateway] = None,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
    ):
        self.repository = repository
        self.vault_gateway = vault_gateway or UnconfiguredGateway()
        self.stock_gateway = stock_gateway or UnconfiguredGateway()
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

        self._handlers: Dict[DestinationType, Callable[[str, Decimal, str, Optional[str]], Awaitable[None]]] = {
            DestinationType.SAVINGS_ACCOUNT: self._credit_savings_account,
            DestinationType.INVESTMENT_VAULT: self._contribute_to_vault,
            DestinationType.SPECIFIC_STOCK: self._purchase_stock,
        }

    @classmethod
    def from_settings(
        cls,
        repository: AutoSaveRepository,
        settings: Settings,
        vault_gateway: Optional[VaultGateway] = None,
        stock_gateway: Optional[StockGateway] = None,
    ) -> "DestinationRouter":
        return cls(
            repository,
            vault_gateway=vault_gateway,
            stock_gateway=stock_gateway,
            timeout_seconds=settings.destination_timeout_seconds,
            max_attempts=settings.destination_max_attempts,
            backoff_seconds=settings.destination_retry_backoff_seconds,
        )

    async def route(
        self,
        destination_type: DestinationType,
        destination_id: str,
        amount: Decimal,
        reference: str,
        owner_id: Optional[str] = None,
    ) -> None:
        """`owner_id`, when given, must own a savings-account destination."""
        destination_type = DestinationType(destination_type)
        handler = self._handlers[destination_type]

        attempt = 0
        while True:
            attempt += 1
            try:
                await asyncio.wait_for(handler(destination_id, amount, reference, owner_id), timeout=self.timeout_seconds)
                logger.info(
                    "Routed %s to %s:%s (reference %s, attempt %d)",
                    amount, destination_type.value, destination_id, reference, attempt,
                )
                return
            except NotFoundError:
                raise
            except (asyncio.TimeoutError, DestinationUnavailableError) as exc:
                reason = str(exc) or "timed out"
                if attempt >= self.max_attempts:
                    logger.error(
                        "Giving up on %s:%s for reference %s after %d attempt(s): %s",
                        destination_type.value, destination_id, reference, attempt, reason,
                    )
                    if isinstance(exc, DestinationUnavailableError):
                        raise
                    raise DestinationUnavailableError(destination_type.value, destination_id, reason) from exc

                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Destination %s:%s failed (attempt %d/%d), retrying in %.2fs: %s",
                    destination_type.value, destination_id, attempt, self.max_attempts, delay, reason,
                )
                await asyncio.sleep(delay)

    # ----------------------------------------------------------------------
    # DESTINATION HANDLERS
    # ----------------------------------------------------------------------
    async def _credit_savings_account(
        self, account_id: str, amount: Decimal, reference: str, owner_id: Optional[str]
    ) -> None:
        account = await self.repository.get_savings_account(account_id)
        if account is None or not account.is_active or (owner_id is not None and account.user_id != owner_id):
            raise NotFoundError("Savings account", account_id)

        applied = await self.repository.credit_savings_account(account_id, amount, reference)
        if not applied:
            logger.info("Credit %s to savings account %s was already applied", reference, account_id)

    async def _contribute_to_vault(self, vault_id: str, amount: Decimal, reference: str, owner_id: Optional[str]) -> None:
        await self.vault_gateway.contribute(vault_id, amount, reference)

    async def _purchase_stock(self, symbol: str, amount: Decimal, reference: str, owner_id: Optional[str]) -> None:
        await self.stock_gateway.purchase(symbol, amount, reference)
