"""
Tests for routing siphoned amounts to savings accounts, vaults and stocks.
"""

import asyncio
from decimal import Decimal

import pytest

from autosave.db.enums import DestinationType
from autosave.models import SavingsAccount
from autosave.services.destination_router import DestinationRouter
from autosave.services.exceptions import DestinationUnavailableError, NotFoundError
from autosave.tests.fakes import InMemoryRepository, RecordingGateway


def create_account(repository: InMemoryRepository, is_active: bool = True) -> SavingsAccount:
    account = SavingsAccount(user_id="user_1", name="Rainy day", is_active=is_active)
    repository.accounts[account.id] = account
    return account


class TestSavingsAccountCredit:

    def test_credit_updates_balance_and_deposits(self):
        repository = InMemoryRepository()
        account = create_account(repository)
        router = DestinationRouter(repository)

        asyncio.run(router.route(DestinationType.SAVINGS_ACCOUNT, account.id, Decimal("2.50"), reference="ru_1"))

        assert account.balance == Decimal("2.50")
        assert account.total_deposits == Decimal("2.50")
        assert account.last_activity is not None

    def test_repeated_reference_credits_once(self):
        repository = InMemoryRepository()
        account = create_account(repository)
        router = DestinationRouter(repository)

        async def scenario():
            await router.route(DestinationType.SAVINGS_ACCOUNT, account.id, Decimal("3"), reference="ru_1")
            await router.route(DestinationType.SAVINGS_ACCOUNT, account.id, Decimal("3"), reference="ru_1")

        asyncio.run(scenario())
        assert account.balance == Decimal("3")

    def test_missing_account_not_found(self):
        router = DestinationRouter(InMemoryRepository())
        with pytest.raises(NotFoundError):
            asyncio.run(router.route(DestinationType.SAVINGS_ACCOUNT, "missing", Decimal("1"), reference="ru_1"))

    def test_inactive_account_not_found(self):
        repository = InMemoryRepository()
        account = create_account(repository, is_active=False)
        router = DestinationRouter(repository)
        with pytest.raises(NotFoundError):
            asyncio.run(router.route(DestinationType.SAVINGS_ACCOUNT, account.id, Decimal("1"), reference="ru_1"))

    def test_account_of_another_user_not_credited(self):
        repository = InMemoryRepository()
        account = create_account(repository)
        router = DestinationRouter(repository)

        with pytest.raises(NotFoundError):
            asyncio.run(router.route(
                DestinationType.SAVINGS_ACCOUNT, account.id, Decimal("1"), reference="ru_1", owner_id="user_2"
            ))
        assert account.balance == Decimal("0")


class TestGatewayRouting:

    def test_vault_contribution(self):
        gateway = RecordingGateway()
        router = DestinationRouter(InMemoryRepository(), vault_gateway=gateway)

        asyncio.run(router.route(DestinationType.INVESTMENT_VAULT, "vault_9", Decimal("4"), reference="ru_1"))

        assert gateway.attempts == [("vault_9", Decimal("4"), "ru_1")]

    def test_stock_purchase(self):
        gateway = RecordingGateway()
        router = DestinationRouter(InMemoryRepository(), stock_gateway=gateway)

        asyncio.run(router.route("specific_stock", "MTNGH", Decimal("1.25"), reference="ru_2"))

        assert gateway.applied == {"ru_2": Decimal("1.25")}

    def test_transient_failure_retried_with_same_reference(self):
        gateway = RecordingGateway(failures=2)
        router = DestinationRouter(InMemoryRepository(), vault_gateway=gateway, max_attempts=3, backoff_seconds=0)

        asyncio.run(router.route(DestinationType.INVESTMENT_VAULT, "vault_1", Decimal("4"), reference="ru_1"))

        assert len(gateway.attempts) == 3
        assert {reference for _, _, reference in gateway.attempts} == {"ru_1"}
        assert gateway.applied == {"ru_1": Decimal("4")}

    def test_gives_up_after_max_attempts(self):
        gateway = RecordingGateway(failures=5)
        router = DestinationRouter(InMemoryRepository(), vault_gateway=gateway, max_attempts=2, backoff_seconds=0)

        with pytest.raises(DestinationUnavailableError):
            asyncio.run(router.route(DestinationType.INVESTMENT_VAULT, "vault_1", Decimal("4"), reference="ru_1"))
        assert len(gateway.attempts) == 2

    def test_timeout_surfaces_as_unavailable(self):
        gateway = RecordingGateway(hang=True)
        router = DestinationRouter(
            InMemoryRepository(), stock_gateway=gateway, timeout_seconds=0.01, max_attempts=2, backoff_seconds=0
        )

        with pytest.raises(DestinationUnavailableError) as exc_info:
            asyncio.run(router.route(DestinationType.SPECIFIC_STOCK, "MTNGH", Decimal("4"), reference="ru_1"))
        assert "timed out" in exc_info.value.detail
        assert len(gateway.attempts) == 2

    def test_unconfigured_gateway_is_unavailable(self):
        router = DestinationRouter(InMemoryRepository(), max_attempts=1)
        with pytest.raises(DestinationUnavailableError):
            asyncio.run(router.route(DestinationType.INVESTMENT_VAULT, "vault_1", Decimal("4"), reference="ru_1"))
