"""
Tests for ledger operations.

Test strategy:
1. Every operation is exercised through LedgerService against the
   in-memory store
2. Failures are checked for their error kind AND for leaving the
   store untouched
3. Notification messages are checked where the wording matters
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import (
    DINING,
    GROCERIES,
    SALARY,
    SAVINGS,
    TRANSFER,
    balance_of,
    open_account,
)
from moneyx.models import (
    AccountType,
    ErrorKind,
    MessageKind,
    NotificationSettings,
    RecurrenceType,
    TransactionType,
)


async def add_expense(ledger, account_id, amount, category_id=GROCERIES, **extra):
    result = await ledger.add_transaction(
        amount=amount,
        description="Test expense",
        category_id=category_id,
        account_id=account_id,
        type=TransactionType.EXPENSE,
        **extra,
    )
    assert result.success, result.message
    return result.entity_id


class TestAccounts:
    """Tests for account operations."""

    @pytest.mark.asyncio
    async def test_add_account_binds_active_user(self, ledger, sink):
        """New accounts belong to the signed-in user."""
        result = await ledger.add_account("Wallet", AccountType.CASH, "250.50")

        account = ledger.snapshot().account(result.entity_id)
        assert result.success
        assert account.user_id == "user-123"
        assert account.balance == Decimal("250.50")
        assert sink.last.title == "Account added"
        assert sink.last.description == "Wallet has been added successfully"

    @pytest.mark.asyncio
    async def test_add_account_rejects_blank_name(self, ledger):
        """Blank names fail validation and nothing is stored."""
        result = await ledger.add_account("   ", AccountType.CASH, 0)

        assert result.error == ErrorKind.INVALID_INPUT
        assert ledger.snapshot().accounts == ()

    @pytest.mark.asyncio
    async def test_update_account_merges_fields(self, ledger):
        """Only the given fields change."""
        account_id = await open_account(ledger, "Main", 100)

        result = await ledger.update_account(account_id, name="Main Checking", color="#22c55e")

        account = ledger.snapshot().account(account_id)
        assert result.success
        assert account.name == "Main Checking"
        assert account.color == "#22c55e"
        assert account.balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_update_unknown_account(self, ledger):
        """Unknown ids report NOT_FOUND."""
        result = await ledger.update_account("acc-missing", name="X")
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_account_cannot_change_owner(self, ledger):
        """Ownership is fixed at creation."""
        account_id = await open_account(ledger, "Main", 100)

        result = await ledger.update_account(account_id, user_id="someone-else")

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert ledger.snapshot().account(account_id).user_id == "user-123"

    @pytest.mark.asyncio
    async def test_delete_account_with_transactions_is_blocked(self, ledger, sink):
        """Accounts referenced by transactions cannot be deleted."""
        account_id = await open_account(ledger, "Main", 100)
        await add_expense(ledger, account_id, -10)

        result = await ledger.delete_account(account_id)

        assert result.error == ErrorKind.REFERENTIAL_INTEGRITY
        assert ledger.snapshot().account(account_id) is not None
        assert sink.last.kind == MessageKind.ERROR
        assert sink.last.title == "Cannot delete account"

    @pytest.mark.asyncio
    async def test_delete_account_with_transfer_is_blocked(self, ledger):
        """Transfer legs count as transactions on both accounts."""
        source = await open_account(ledger, "A", 500)
        target = await open_account(ledger, "B", 0)
        await ledger.transfer_between_accounts(source, target, 100)

        assert (await ledger.delete_account(target)).error == ErrorKind.REFERENTIAL_INTEGRITY

    @pytest.mark.asyncio
    async def test_delete_unused_account(self, ledger):
        """An account with no transactions is removed."""
        account_id = await open_account(ledger, "Old", 0)

        result = await ledger.delete_account(account_id)

        assert result.success
        assert ledger.snapshot().account(account_id) is None

    @pytest.mark.asyncio
    async def test_update_with_unknown_field_is_rejected(self, ledger):
        """A misspelled field fails instead of silently changing nothing."""
        account_id = await open_account(ledger, "Main", 100)

        result = await ledger.update_account(account_id, nmae="Renamed")

        assert result.error == ErrorKind.INVALID_INPUT
        assert ledger.snapshot().account(account_id).name == "Main"


class TestTransactions:
    """Tests for transaction posting rules."""

    @pytest.mark.asyncio
    async def test_expense_then_delete_restores_balance(self, ledger):
        """A=100, expense -40 -> 60; deleting it -> 100."""
        account_id = await open_account(ledger, "A", 100)

        transaction_id = await add_expense(ledger, account_id, -40)
        assert balance_of(ledger, account_id) == Decimal("60")

        result = await ledger.delete_transaction(transaction_id)
        assert result.success
        assert balance_of(ledger, account_id) == Decimal("100")
        assert ledger.snapshot().transaction(transaction_id) is None

    @pytest.mark.asyncio
    async def test_expense_sign_does_not_matter(self, ledger):
        """Expenses subtract their magnitude even if entered positive."""
        account_id = await open_account(ledger, "A", 100)
        await add_expense(ledger, account_id, 25)
        assert balance_of(ledger, account_id) == Decimal("75")

    @pytest.mark.asyncio
    async def test_income_adds_amount(self, ledger):
        account_id = await open_account(ledger, "A", 100)

        await ledger.add_transaction(
            amount=Decimal("3500"),
            description="Salary deposit",
            category_id=SALARY,
            account_id=account_id,
            type=TransactionType.INCOME,
        )

        assert balance_of(ledger, account_id) == Decimal("3600")

    @pytest.mark.asyncio
    async def test_balance_conservation(self, ledger):
        """Final balance = initial + income - |expenses| of surviving transactions."""
        account_id = await open_account(ledger, "A", 1000)
        kept = []
        for amount, kind, category in [
            (200, TransactionType.INCOME, SALARY),
            (-75, TransactionType.EXPENSE, GROCERIES),
            (-30, TransactionType.EXPENSE, DINING),
            (50, TransactionType.INCOME, SALARY),
        ]:
            result = await ledger.add_transaction(
                amount=amount,
                description="Entry",
                category_id=category,
                account_id=account_id,
                type=kind,
            )
            kept.append((result.entity_id, amount))

        # Drop the dining expense and the second income
        await ledger.delete_transaction(kept[2][0])
        await ledger.delete_transaction(kept[3][0])

        assert balance_of(ledger, account_id) == Decimal("1000") + 200 - 75

    @pytest.mark.asyncio
    async def test_add_transaction_unknown_account(self, ledger):
        """Posting to a missing account fails without storing the record."""
        result = await ledger.add_transaction(
            amount=-10,
            description="Lost",
            category_id=GROCERIES,
            account_id="acc-missing",
            type=TransactionType.EXPENSE,
        )

        assert result.error == ErrorKind.NOT_FOUND
        assert ledger.snapshot().transactions == ()

    @pytest.mark.asyncio
    async def test_add_transaction_unknown_category(self, ledger):
        account_id = await open_account(ledger, "A", 100)

        result = await ledger.add_transaction(
            amount=-10,
            description="Lost",
            category_id="cat-missing",
            account_id=account_id,
            type=TransactionType.EXPENSE,
        )

        assert result.error == ErrorKind.NOT_FOUND
        assert balance_of(ledger, account_id) == Decimal("100")

    @pytest.mark.asyncio
    async def test_add_transaction_malformed_amount(self, ledger):
        account_id = await open_account(ledger, "A", 100)

        result = await ledger.add_transaction(
            amount="twelve",
            description="Bad",
            category_id=GROCERIES,
            account_id=account_id,
            type=TransactionType.EXPENSE,
        )

        assert result.error == ErrorKind.INVALID_INPUT
        assert balance_of(ledger, account_id) == Decimal("100")

    @pytest.mark.asyncio
    async def test_update_amount_reposts_difference(self, ledger):
        """Editing the amount reverses the old effect and applies the new one."""
        account_id = await open_account(ledger, "A", 100)
        transaction_id = await add_expense(ledger, account_id, -40)

        result = await ledger.update_transaction(transaction_id, amount=-50)

        assert result.success
        assert balance_of(ledger, account_id) == Decimal("50")

    @pytest.mark.asyncio
    async def test_update_moves_transaction_between_accounts(self, ledger):
        first = await open_account(ledger, "A", 100)
        second = await open_account(ledger, "B", 100)
        transaction_id = await add_expense(ledger, first, -40)

        await ledger.update_transaction(transaction_id, account_id=second)

        assert balance_of(ledger, first) == Decimal("100")
        assert balance_of(ledger, second) == Decimal("60")

    @pytest.mark.asyncio
    async def test_update_type_flips_effect(self, ledger):
        """An expense re-typed as income swings the balance by twice the amount."""
        account_id = await open_account(ledger, "A", 100)
        transaction_id = await add_expense(ledger, account_id, -40)

        await ledger.update_transaction(
            transaction_id, type=TransactionType.INCOME, amount=40, category_id=SALARY
        )

        assert balance_of(ledger, account_id) == Decimal("140")

    @pytest.mark.asyncio
    async def test_update_description_keeps_balance(self, ledger):
        account_id = await open_account(ledger, "A", 100)
        transaction_id = await add_expense(ledger, account_id, -40)

        await ledger.update_transaction(transaction_id, description="Weekly shop")

        assert ledger.snapshot().transaction(transaction_id).description == "Weekly shop"
        assert balance_of(ledger, account_id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_update_to_unknown_category_changes_nothing(self, ledger):
        account_id = await open_account(ledger, "A", 100)
        transaction_id = await add_expense(ledger, account_id, -40)

        result = await ledger.update_transaction(transaction_id, category_id="cat-missing", amount=-90)

        assert result.error == ErrorKind.NOT_FOUND
        assert ledger.snapshot().transaction(transaction_id).amount == Decimal("-40")
        assert balance_of(ledger, account_id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_delete_unknown_transaction(self, ledger):
        assert (await ledger.delete_transaction("trans-missing")).error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_with_unknown_field_is_rejected(self, ledger):
        account_id = await open_account(ledger, "A", 100)
        transaction_id = await add_expense(ledger, account_id, -40)

        result = await ledger.update_transaction(transaction_id, amout=-90)

        assert result.error == ErrorKind.INVALID_INPUT
        assert balance_of(ledger, account_id) == Decimal("60")

    @pytest.mark.asyncio
    async def test_regular_transaction_cannot_join_a_transfer(self, ledger):
        source = await open_account(ledger, "A", 500)
        target = await open_account(ledger, "B", 0)
        transfer_id = (await ledger.transfer_between_accounts(source, target, 100)).entity_id
        transaction_id = await add_expense(ledger, source, -40)

        result = await ledger.update_transaction(transaction_id, transfer_id=transfer_id)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert ledger.snapshot().transaction(transaction_id).transfer_id is None
        assert len(ledger.snapshot().transfer_legs(transfer_id)) == 2

    @pytest.mark.asyncio
    async def test_update_to_unknown_counter_account(self, ledger):
        account_id = await open_account(ledger, "A", 100)
        transaction_id = await add_expense(ledger, account_id, -40)

        result = await ledger.update_transaction(
            transaction_id,
            type=TransactionType.TRANSFER,
            counter_account_id="acc-missing",
        )

        assert result.error == ErrorKind.NOT_FOUND
        assert ledger.snapshot().transaction(transaction_id).type == TransactionType.EXPENSE
        assert balance_of(ledger, account_id) == Decimal("60")


class TestTransfers:
    """Tests for transfer_between_accounts."""

    @pytest.mark.asyncio
    async def test_transfer_with_fee(self, ledger, sink):
        """A=500, B=200, transfer 100 with fee 5 -> A=395, B=300."""
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200, AccountType.SAVINGS)

        result = await ledger.transfer_between_accounts(source, target, 100, 5)

        assert result.success
        assert balance_of(ledger, source) == Decimal("395")
        assert balance_of(ledger, target) == Decimal("300")
        assert sink.last.title == "Transfer completed"

    @pytest.mark.asyncio
    async def test_transfer_is_zero_sum_minus_fee(self, ledger):
        source = await open_account(ledger, "A", "812.40")
        target = await open_account(ledger, "B", "-75.10")
        before = balance_of(ledger, source) + balance_of(ledger, target)

        await ledger.transfer_between_accounts(source, target, "300.25", "2.75")

        after = balance_of(ledger, source) + balance_of(ledger, target)
        assert after == before - Decimal("2.75")

    @pytest.mark.asyncio
    async def test_transfer_records_linked_legs(self, ledger):
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)

        result = await ledger.transfer_between_accounts(source, target, 100, 5)

        legs = ledger.snapshot().transfer_legs(result.entity_id)
        outgoing = next(t for t in legs if t.account_id == source)
        incoming = next(t for t in legs if t.account_id == target)
        assert len(legs) == 2
        assert outgoing.amount == Decimal("-105")
        assert outgoing.fee == Decimal("5")
        assert outgoing.description == "Transfer to Savings (includes ₹5.00 fee)"
        assert incoming.amount == Decimal("100")
        assert incoming.description == "Transfer from Main"
        assert {t.category_id for t in legs} == {TRANSFER}
        assert {t.type for t in legs} == {TransactionType.TRANSFER}

    @pytest.mark.asyncio
    async def test_custom_description_used_for_both_legs(self, ledger):
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)

        result = await ledger.transfer_between_accounts(source, target, 50, description="Rent pot")

        legs = ledger.snapshot().transfer_legs(result.entity_id)
        assert {t.description for t in legs} == {"Rent pot"}

    @pytest.mark.asyncio
    async def test_insufficient_funds_changes_nothing(self, ledger, sink):
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)

        result = await ledger.transfer_between_accounts(source, target, 500, 1)

        assert result.error == ErrorKind.INSUFFICIENT_FUNDS
        assert balance_of(ledger, source) == Decimal("500")
        assert balance_of(ledger, target) == Decimal("200")
        assert ledger.snapshot().transactions == ()
        assert sink.last.title == "Transfer failed"
        assert sink.last.description == "Insufficient funds in the source account"

    @pytest.mark.asyncio
    async def test_transfer_unknown_account(self, ledger):
        source = await open_account(ledger, "Main", 500)
        result = await ledger.transfer_between_accounts(source, "acc-missing", 10)
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_transfer_to_same_account(self, ledger):
        source = await open_account(ledger, "Main", 500)
        result = await ledger.transfer_between_accounts(source, source, 10)
        assert result.error == ErrorKind.PRECONDITION_FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,fee", [(0, 0), (-10, 0), (10, -1)])
    async def test_transfer_rejects_non_positive_amounts(self, ledger, amount, fee):
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)

        result = await ledger.transfer_between_accounts(source, target, amount, fee)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert balance_of(ledger, source) == Decimal("500")

    @pytest.mark.asyncio
    async def test_deleting_one_leg_reverses_both(self, ledger):
        """Deleting either leg removes the transfer and restores both balances, fee included."""
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)
        result = await ledger.transfer_between_accounts(source, target, 100, 5)
        incoming = next(
            t for t in ledger.snapshot().transfer_legs(result.entity_id) if t.account_id == target
        )

        deleted = await ledger.delete_transaction(incoming.id)

        assert deleted.success
        assert ledger.snapshot().transfer_legs(result.entity_id) == []
        assert balance_of(ledger, source) == Decimal("500")
        assert balance_of(ledger, target) == Decimal("200")

    @pytest.mark.asyncio
    async def test_transfer_leg_amount_cannot_be_edited(self, ledger):
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)
        result = await ledger.transfer_between_accounts(source, target, 100)
        leg = ledger.snapshot().transfer_legs(result.entity_id)[0]

        edit = await ledger.update_transaction(leg.id, amount=-1)

        assert edit.error == ErrorKind.PRECONDITION_FAILED
        assert balance_of(ledger, source) == Decimal("400")

    @pytest.mark.asyncio
    async def test_transfer_leg_description_can_be_edited(self, ledger):
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 200)
        result = await ledger.transfer_between_accounts(source, target, 100)
        leg = ledger.snapshot().transfer_legs(result.entity_id)[0]

        edit = await ledger.update_transaction(leg.id, description="Monthly top-up")

        assert edit.success
        assert ledger.snapshot().transaction(leg.id).description == "Monthly top-up"

    @pytest.mark.asyncio
    async def test_concurrent_transfers_cannot_overdraw(self, ledger):
        """Operations are serialized, so only one of two 300 transfers from 500 succeeds."""
        source = await open_account(ledger, "Main", 500)
        target = await open_account(ledger, "Savings", 0)

        results = await asyncio.gather(
            ledger.transfer_between_accounts(source, target, 300),
            ledger.transfer_between_accounts(source, target, 300),
        )

        assert sorted(r.success for r in results) == [False, True]
        assert balance_of(ledger, source) == Decimal("200")
        assert balance_of(ledger, target) == Decimal("300")


class TestSavingsGoals:
    """Tests for savings goals and funding."""

    @pytest.mark.asyncio
    async def test_fund_goal_scenario(self, ledger, sink):
        """Goal 1000/200, A=150: fund 150 -> 350 and A=0; fund 1 more fails."""
        account_id = await open_account(ledger, "A", 150)
        reserve = await open_account(ledger, "Reserve", 200)
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id
        await ledger.fund_savings_goal(goal_id, reserve, 200)

        result = await ledger.fund_savings_goal(goal_id, account_id, 150)

        assert result.success
        assert ledger.snapshot().savings_goal(goal_id).current_amount == Decimal("350")
        assert balance_of(ledger, account_id) == Decimal("0")
        assert sink.last.title == "Goal funded"

        before = ledger.snapshot()
        failed = await ledger.fund_savings_goal(goal_id, account_id, 1)

        assert failed.error == ErrorKind.INSUFFICIENT_FUNDS
        assert ledger.snapshot().savings_goal(goal_id).current_amount == Decimal("350")
        assert balance_of(ledger, account_id) == Decimal("0")
        assert ledger.snapshot().transactions == before.transactions

    @pytest.mark.asyncio
    async def test_funding_records_contribution_expense(self, ledger):
        account_id = await open_account(ledger, "A", 500)
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id

        await ledger.fund_savings_goal(goal_id, account_id, 120)

        (contribution,) = ledger.snapshot().transactions
        assert contribution.type == TransactionType.EXPENSE
        assert contribution.amount == Decimal("-120")
        assert contribution.description == "Contribution to Vacation goal"
        assert contribution.category_id == SAVINGS
        assert contribution.goal_id == goal_id

    @pytest.mark.asyncio
    async def test_over_funding_is_allowed(self, ledger):
        account_id = await open_account(ledger, "A", 500)
        goal_id = (await ledger.add_savings_goal("Laptop", 100)).entity_id

        await ledger.fund_savings_goal(goal_id, account_id, 150)

        goal = ledger.snapshot().savings_goal(goal_id)
        assert goal.current_amount == Decimal("150")
        assert goal.progress_percent == 150.0

    @pytest.mark.asyncio
    async def test_fund_unknown_goal(self, ledger, sink):
        account_id = await open_account(ledger, "A", 500)

        result = await ledger.fund_savings_goal("goal-missing", account_id, 10)

        assert result.error == ErrorKind.NOT_FOUND
        assert sink.last.title == "Funding failed"
        assert balance_of(ledger, account_id) == Decimal("500")

    @pytest.mark.asyncio
    async def test_progress_cannot_be_edited_directly(self, ledger):
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id

        result = await ledger.update_savings_goal(goal_id, current_amount=999)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert ledger.snapshot().savings_goal(goal_id).current_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_update_and_delete_goal(self, ledger):
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id

        await ledger.update_savings_goal(goal_id, target_amount=1500, target_date=date(2026, 12, 31))
        goal = ledger.snapshot().savings_goal(goal_id)
        assert goal.target_amount == Decimal("1500")
        assert goal.target_date == date(2026, 12, 31)

        assert (await ledger.delete_savings_goal(goal_id)).success
        assert ledger.snapshot().savings_goal(goal_id) is None

    @pytest.mark.asyncio
    async def test_deleting_contribution_takes_it_off_the_goal(self, ledger, sink):
        """Refunding the account also reverses the goal's progress."""
        account_id = await open_account(ledger, "A", 500)
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id
        await ledger.fund_savings_goal(goal_id, account_id, 200)
        (contribution,) = ledger.snapshot().transactions

        result = await ledger.delete_transaction(contribution.id)

        assert result.success
        assert balance_of(ledger, account_id) == Decimal("500")
        assert ledger.snapshot().savings_goal(goal_id).current_amount == Decimal("0")
        assert sink.last.description == "Contribution removed from your Vacation goal"

    @pytest.mark.asyncio
    async def test_contribution_amount_cannot_be_edited(self, ledger):
        account_id = await open_account(ledger, "A", 500)
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id
        await ledger.fund_savings_goal(goal_id, account_id, 200)
        (contribution,) = ledger.snapshot().transactions

        result = await ledger.update_transaction(contribution.id, amount=-50)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert balance_of(ledger, account_id) == Decimal("300")
        assert ledger.snapshot().savings_goal(goal_id).current_amount == Decimal("200")

    @pytest.mark.asyncio
    async def test_contribution_description_can_be_edited(self, ledger):
        account_id = await open_account(ledger, "A", 500)
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id
        await ledger.fund_savings_goal(goal_id, account_id, 200)
        (contribution,) = ledger.snapshot().transactions

        result = await ledger.update_transaction(contribution.id, description="Summer trip")

        assert result.success
        assert ledger.snapshot().transaction(contribution.id).goal_id == goal_id
        assert ledger.snapshot().savings_goal(goal_id).current_amount == Decimal("200")

    @pytest.mark.asyncio
    async def test_goal_link_cannot_be_added_by_editing(self, ledger):
        account_id = await open_account(ledger, "A", 500)
        goal_id = (await ledger.add_savings_goal("Vacation", 1000)).entity_id
        transaction_id = await add_expense(ledger, account_id, -40)

        result = await ledger.update_transaction(transaction_id, goal_id=goal_id)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert ledger.snapshot().transaction(transaction_id).goal_id is None


class TestBills:
    """Tests for bills and paying them."""

    @pytest.mark.asyncio
    async def test_pay_recurring_bill(self, ledger):
        """Paying posts the expense, flips the flag and schedules the next occurrence."""
        account_id = await open_account(ledger, "Main", 1000)
        bill_id = (await ledger.add_bill(
            "Internet", 75, date(2025, 1, 31),
            is_recurring=True,
            recurrence=RecurrenceType.MONTHLY,
            category_id=GROCERIES,
            account_id=account_id,
        )).entity_id

        result = await ledger.pay_bill(bill_id, paid_on=datetime(2025, 1, 30, 9, 0))

        snapshot = ledger.snapshot()
        paid = snapshot.bill(bill_id)
        payment = snapshot.transaction(paid.paid_transaction_id)
        upcoming = [b for b in snapshot.bills if b.id != bill_id]
        assert result.success
        assert paid.is_paid
        assert payment.amount == Decimal("-75")
        assert payment.date == datetime(2025, 1, 30, 9, 0)
        assert balance_of(ledger, account_id) == Decimal("925")
        assert len(upcoming) == 1
        assert upcoming[0].due_date == date(2025, 2, 28)
        assert not upcoming[0].is_paid

    @pytest.mark.asyncio
    async def test_pay_bill_twice(self, ledger):
        account_id = await open_account(ledger, "Main", 1000)
        bill_id = (await ledger.add_bill(
            "Phone", 85, date(2025, 5, 18), category_id=GROCERIES, account_id=account_id
        )).entity_id
        await ledger.pay_bill(bill_id)

        result = await ledger.pay_bill(bill_id)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert balance_of(ledger, account_id) == Decimal("915")

    @pytest.mark.asyncio
    async def test_pay_bill_without_account_leaves_it_unpaid(self, ledger):
        bill_id = (await ledger.add_bill("Phone", 85, date(2025, 5, 18))).entity_id

        result = await ledger.pay_bill(bill_id)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert not ledger.snapshot().bill(bill_id).is_paid
        assert ledger.snapshot().transactions == ()

    @pytest.mark.asyncio
    async def test_pay_bill_from_explicit_account(self, ledger):
        first = await open_account(ledger, "Main", 1000)
        second = await open_account(ledger, "Card", 0, AccountType.CREDIT)
        bill_id = (await ledger.add_bill(
            "Electric", 125, date(2025, 5, 20), category_id=GROCERIES, account_id=first
        )).entity_id

        await ledger.pay_bill(bill_id, account_id=second)

        assert balance_of(ledger, first) == Decimal("1000")
        assert balance_of(ledger, second) == Decimal("-125")

    @pytest.mark.asyncio
    async def test_bill_with_unknown_category(self, ledger):
        result = await ledger.add_bill("Gym", 40, date(2025, 5, 1), category_id="cat-missing")
        assert result.error == ErrorKind.NOT_FOUND
        assert ledger.snapshot().bills == ()

    @pytest.mark.asyncio
    async def test_paid_flag_only_changes_through_payment(self, ledger):
        bill_id = (await ledger.add_bill("Gym", 40, date(2025, 5, 1))).entity_id

        result = await ledger.update_bill(bill_id, is_paid=True)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert not ledger.snapshot().bill(bill_id).is_paid

    @pytest.mark.asyncio
    async def test_update_and_delete_bill(self, ledger, sink):
        bill_id = (await ledger.add_bill("Gym", 40, date(2025, 5, 1))).entity_id

        await ledger.update_bill(bill_id, amount=45, name="Gym membership")
        assert ledger.snapshot().bill(bill_id).amount == Decimal("45")

        await ledger.delete_bill(bill_id)
        assert ledger.snapshot().bill(bill_id) is None
        assert sink.last.description == "Gym membership has been removed from your bills"

    @pytest.mark.asyncio
    async def test_deleting_payment_reopens_bill(self, ledger, sink):
        account_id = await open_account(ledger, "Main", 500)
        bill_id = (await ledger.add_bill(
            "Phone", 100, date(2025, 5, 18), category_id=GROCERIES, account_id=account_id
        )).entity_id
        await ledger.pay_bill(bill_id)
        payment_id = ledger.snapshot().bill(bill_id).paid_transaction_id

        result = await ledger.delete_transaction(payment_id)

        bill = ledger.snapshot().bill(bill_id)
        assert result.success
        assert balance_of(ledger, account_id) == Decimal("500")
        assert not bill.is_paid
        assert bill.paid_transaction_id is None
        assert sink.last.description == "Payment removed; Phone is unpaid again"
        assert (await ledger.pay_bill(bill_id)).success


class TestCategories:
    """Tests for categories and their references."""

    @pytest.mark.asyncio
    async def test_category_change_visible_on_every_transaction(self, ledger):
        """Updating a category shows on all referencing transactions and no others."""
        account_id = await open_account(ledger, "A", 500)
        await add_expense(ledger, account_id, -10, GROCERIES)
        await add_expense(ledger, account_id, -20, GROCERIES)
        await add_expense(ledger, account_id, -30, DINING)

        result = await ledger.update_category(GROCERIES, color="#0ea5e9", name="Food")

        views = ledger.snapshot().transaction_views()
        groceries = [v for v in views if v.transaction.category_id == GROCERIES]
        dining = [v for v in views if v.transaction.category_id == DINING]
        assert result.success
        assert [(v.category_name, v.category_color) for v in groceries] == [("Food", "#0ea5e9")] * 2
        assert dining[0].category_name == "Dining"

    @pytest.mark.asyncio
    async def test_delete_category_in_use(self, ledger, sink):
        account_id = await open_account(ledger, "A", 500)
        await add_expense(ledger, account_id, -10, DINING)

        result = await ledger.delete_category(DINING)

        assert result.error == ErrorKind.REFERENTIAL_INTEGRITY
        assert ledger.snapshot().category(DINING) is not None
        assert sink.last.title == "Cannot delete category"

    @pytest.mark.asyncio
    async def test_delete_category_used_by_bill(self, ledger):
        await ledger.add_bill("Takeaway club", 20, date(2025, 5, 1), category_id=DINING)
        assert (await ledger.delete_category(DINING)).error == ErrorKind.REFERENTIAL_INTEGRITY

    @pytest.mark.asyncio
    async def test_delete_unused_category(self, ledger):
        result = await ledger.delete_category(DINING)
        assert result.success
        assert ledger.snapshot().category(DINING) is None

    @pytest.mark.asyncio
    async def test_add_category_with_taken_id(self, ledger):
        result = await ledger.add_category("Food again", "expense", category_id=GROCERIES)
        assert result.error == ErrorKind.PRECONDITION_FAILED

    @pytest.mark.asyncio
    async def test_add_category_rejects_bad_colour(self, ledger):
        result = await ledger.add_category("Pets", "expense", color="orange")
        assert result.error == ErrorKind.INVALID_INPUT


class TestNotificationsAndPreferences:
    """Tests for notifications and preferences."""

    @pytest.mark.asyncio
    async def test_mark_notification_as_read_is_silent(self, seeded_ledger, sink):
        result = await seeded_ledger.mark_notification_as_read("notif-1")

        assert result.success
        assert seeded_ledger.snapshot().notification("notif-1").read
        assert sink.messages == []

    @pytest.mark.asyncio
    async def test_mark_unknown_notification(self, seeded_ledger):
        result = await seeded_ledger.mark_notification_as_read("notif-missing")
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_partial_notification_update_keeps_other_toggles(self, ledger):
        result = await ledger.update_preferences(notifications={"weekly_summary": True})

        toggles = ledger.snapshot().preferences.notifications
        assert result.success
        assert toggles == NotificationSettings(weekly_summary=True)
        assert toggles.bill_reminders is True

    @pytest.mark.asyncio
    async def test_top_level_preferences_replaced(self, ledger):
        await ledger.update_preferences(currency="USD", dark_mode=True)

        preferences = ledger.snapshot().preferences
        assert preferences.currency == "USD"
        assert preferences.dark_mode is True
        assert preferences.date_format == "MM/DD/YYYY"

    @pytest.mark.asyncio
    async def test_unknown_preference_rejected(self, ledger):
        result = await ledger.update_preferences(theme="solarized")
        assert result.error == ErrorKind.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_notifications_must_be_a_mapping(self, ledger):
        result = await ledger.update_preferences(notifications=None)

        assert result.error == ErrorKind.INVALID_INPUT
        assert ledger.snapshot().preferences.notifications == NotificationSettings()


class TestBudgets:
    """Tests for budget operations."""

    @pytest.mark.asyncio
    async def test_set_budget_computes_spent(self, ledger):
        account_id = await open_account(ledger, "A", 1000)
        await add_expense(ledger, account_id, -40, GROCERIES, date=datetime(2025, 5, 3))
        await add_expense(ledger, account_id, -15, GROCERIES, date=datetime(2025, 4, 30))

        result = await ledger.set_budget(5, 2025, {GROCERIES: 300, DINING: 100})

        budget = ledger.snapshot().budget(result.entity_id)
        spent = {line.category_id: line.spent for line in budget.categories}
        assert spent == {GROCERIES: Decimal("40"), DINING: Decimal("0")}
        assert budget.total_allocated == Decimal("400")

    @pytest.mark.asyncio
    async def test_set_budget_replaces_same_month(self, ledger):
        first = await ledger.set_budget(5, 2025, {GROCERIES: 300})
        second = await ledger.set_budget(5, 2025, {DINING: 50})

        assert first.entity_id == second.entity_id
        assert len(ledger.snapshot().budgets) == 1
        assert ledger.snapshot().budgets[0].categories[0].category_id == DINING

    @pytest.mark.asyncio
    async def test_refresh_budget_picks_up_new_expenses(self, ledger):
        account_id = await open_account(ledger, "A", 1000)
        budget_id = (await ledger.set_budget(5, 2025, {DINING: 100})).entity_id
        await add_expense(ledger, account_id, -45, DINING, date=datetime(2025, 5, 2))

        await ledger.refresh_budget(budget_id)

        assert ledger.snapshot().budget(budget_id).categories[0].spent == Decimal("45")

    @pytest.mark.asyncio
    async def test_budget_for_unknown_category(self, ledger):
        result = await ledger.set_budget(5, 2025, {"cat-missing": 10})
        assert result.error == ErrorKind.NOT_FOUND


class TestSessionAndFailures:
    """Tests for session transitions and failure handling."""

    @pytest.mark.asyncio
    async def test_no_active_user(self, ledger, sink):
        await ledger.session.logout()

        result = await ledger.add_account("Wallet", AccountType.CASH, 0)

        assert result.error == ErrorKind.PRECONDITION_FAILED
        assert sink.last.kind == MessageKind.ERROR

    @pytest.mark.asyncio
    async def test_logout_wipes_store(self, seeded_ledger):
        await seeded_ledger.update_preferences(currency="USD")

        await seeded_ledger.session.logout()

        snapshot = seeded_ledger.snapshot()
        assert snapshot.accounts == ()
        assert snapshot.transactions == ()
        assert snapshot.categories == ()
        assert snapshot.preferences.currency == "INR"

    @pytest.mark.asyncio
    async def test_login_seeds_demo_data(self, seeded_ledger):
        snapshot = seeded_ledger.snapshot()
        assert len(snapshot.accounts) == 4
        assert len(snapshot.transactions) == 7
        assert len(snapshot.categories) == 12
        assert {a.user_id for a in snapshot.accounts} == {"user-123"}

    @pytest.mark.asyncio
    async def test_demo_account_with_history_cannot_be_deleted(self, seeded_ledger):
        result = await seeded_ledger.delete_account("acc-1")
        assert result.error == ErrorKind.REFERENTIAL_INTEGRITY

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_change_result(self, ledger):
        class BrokenSink:
            async def publish(self, message):
                raise RuntimeError("toast service down")

        ledger._sink = BrokenSink()

        result = await ledger.add_account("Wallet", AccountType.CASH, 10)

        assert result.success
        assert ledger.snapshot().account(result.entity_id) is not None
