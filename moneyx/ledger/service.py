"""
Ledger Service

Every mutation of the ledger goes through this class. Each operation:
1. Takes one snapshot of the store
2. Checks every precondition against that snapshot (nothing is written yet)
3. Builds a ChangeSet with all the records it touches
4. Commits the ChangeSet as a single unit
5. Publishes a success or error message to the notification sink

DESIGN DECISION: Operations never raise to the caller. Rule violations
are raised internally as LedgerError subclasses while the change set is
planned, then turned into a failed LedgerResult. Because nothing is
written until the commit, a failure at any step leaves the store exactly
as it was.

DESIGN DECISION: Account balances are adjusted incrementally, in the
same commit as the records that justify them. They are never recomputed
from transaction history.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from moneyx.config import LedgerSettings, get_settings
from moneyx.ledger.errors import (
    InsufficientFundsError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    PreconditionFailedError,
    ReferentialIntegrityError,
)
from moneyx.models.ledger import (
    Account,
    AccountType,
    Bill,
    Budget,
    BudgetCategory,
    Category,
    CategoryType,
    Notification,
    RecurrenceType,
    SavingsGoal,
    Transaction,
    TransactionType,
    UserPreferences,
    merge_fields,
    new_id,
)
from moneyx.models.results import ErrorKind, LedgerMessage, LedgerResult, MessageKind
from moneyx.models.snapshot import LedgerSnapshot
from moneyx.notifications.sink import (
    InMemoryNotificationSink,
    NotificationSinkInterface,
    StructlogNotificationSink,
)
from moneyx.queries.aggregations import expense_totals_by_category
from moneyx.queries.formatting import format_currency
from moneyx.session import SessionProvider
from moneyx.store.interface import (
    ChangeSet,
    ConcurrentModificationError,
    EntityNotFoundError,
    LedgerStoreInterface,
)
from moneyx.store.memory import InMemoryLedgerStore
from moneyx.store.mock_data import build_mock_snapshot


logger = structlog.get_logger("moneyx.ledger")

Amount = Union[Decimal, int, float, str]

DEFAULT_TRANSFER_DESCRIPTION = "Transfer between accounts"

# Fields no update operation may touch
_IMMUTABLE_FIELDS = {"id", "user_id"}

# Transfer legs are corrected by delete + redo, never edited in place
_TRANSFER_LOCKED_FIELDS = {"amount", "account_id", "type", "counter_account_id", "fee", "transfer_id"}

# Goal contributions are corrected by delete + re-fund
_CONTRIBUTION_LOCKED_FIELDS = {"amount", "account_id", "type"}


@dataclass
class _Plan:
    """What a successful operation commits and reports."""

    changes: ChangeSet
    title: str
    description: str
    entity_id: Optional[str] = None


@dataclass
class _Postings:
    """
    Balance adjustments accumulated while planning one operation.

    Several postings to the same account (e.g. moving a transaction
    between accounts) stack on the same pending Account copy.
    """

    snapshot: LedgerSnapshot
    pending: dict[str, Account] = field(default_factory=dict)

    def post(self, account_id: str, delta: Decimal) -> None:
        account = self.pending.get(account_id) or self.snapshot.account(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        self.pending[account_id] = account.model_copy(update={"balance": account.balance + delta})

    def accounts(self) -> list[Account]:
        return list(self.pending.values())


def _to_amount(value: Amount, name: str = "amount") -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidInputError(f"{name} must be a finite number")
    return result


def _reject_fields(fields: dict[str, Any], forbidden: Iterable[str], message: str) -> None:
    blocked = sorted(set(fields) & set(forbidden))
    if blocked:
        raise PreconditionFailedError(f"{message}: {', '.join(blocked)}")


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "value"
    return f"Invalid {location}: {first.get('msg', 'invalid value')}"


class LedgerService:
    """
    Ledger operations for the signed-in user.

    All operations are serialized by one asyncio.Lock. The store's
    compare-and-swap on its version catches anything that still slips
    past (e.g. a session switch between snapshot and commit).
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        session: SessionProvider,
        sink: Optional[NotificationSinkInterface] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._session = session
        self._sink = sink or StructlogNotificationSink()
        self._settings = settings or get_settings().ledger
        self._lock = asyncio.Lock()

    @property
    def store(self) -> LedgerStoreInterface:
        return self._store

    @property
    def session(self) -> SessionProvider:
        return self._session

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    def snapshot(self) -> LedgerSnapshot:
        """Current read-only state for aggregations and display."""
        return self._store.snapshot()

    def default_preferences(self) -> UserPreferences:
        return UserPreferences(
            currency=self._settings.default_currency,
            date_format=self._settings.default_date_format,
        )

    # =========================================================================
    # SESSION HOOK
    # =========================================================================

    async def handle_session_change(self, user_id: Optional[str]) -> None:
        """
        React to sign-in and sign-out.

        Sign-in loads the demo dataset (or an empty ledger when seeding is
        disabled); sign-out wipes every collection and restores default
        preferences.
        """
        async with self._lock:
            if user_id is None:
                await self._store.reset(self.default_preferences())
                logger.info("ledger_reset")
                return

            if self._settings.seed_mock_data:
                snapshot = build_mock_snapshot(user_id, preferences=self.default_preferences())
            else:
                snapshot = LedgerSnapshot(user_id=user_id, preferences=self.default_preferences())
            await self._store.load(snapshot)
            logger.info("ledger_loaded", user_id=user_id, seeded=self._settings.seed_mock_data)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def add_account(
        self,
        name: str,
        type: Union[AccountType, str],
        balance: Amount = 0,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> LedgerResult:
        """Create an account for the signed-in user with an opening balance."""
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            account = Account(
                name=name,
                type=type,
                balance=_to_amount(balance, "balance"),
                user_id=self._session.current_user_id,
                color=color,
                icon=icon,
            )
            return _Plan(
                ChangeSet(snapshot.version).put(account),
                "Account added",
                f"{account.name} has been added successfully",
                account.id,
            )

        return await self._run(
            "add_account", plan,
            "Failed to add account", "An error occurred while adding the account",
        )

    async def update_account(self, account_id: str, **fields: Any) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            _reject_fields(fields, _IMMUTABLE_FIELDS, "These account fields cannot be changed")
            account = self._require(snapshot.account(account_id), f"Account {account_id} not found")
            updated = merge_fields(account, fields)
            return _Plan(
                ChangeSet(snapshot.version).put(updated),
                "Account updated",
                f"{updated.name} has been updated",
                updated.id,
            )

        return await self._run(
            "update_account", plan,
            "Failed to update account", "An error occurred while updating the account",
        )

    async def delete_account(self, account_id: str) -> LedgerResult:
        """Remove an account that no transaction or bill refers to."""
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            account = self._require(snapshot.account(account_id), f"Account {account_id} not found")
            if any(
                t.account_id == account_id or t.counter_account_id == account_id
                for t in snapshot.transactions
            ):
                raise ReferentialIntegrityError(
                    "This account has transactions linked to it. Delete the transactions "
                    "first or move them to another account.",
                    title="Cannot delete account",
                )
            if any(b.account_id == account_id for b in snapshot.bills):
                raise ReferentialIntegrityError(
                    "This account is the payment account of one or more bills. "
                    "Change those bills first.",
                    title="Cannot delete account",
                )
            return _Plan(
                ChangeSet(snapshot.version).remove(Account, account_id),
                "Account deleted",
                f"{account.name} has been removed",
                account_id,
            )

        return await self._run(
            "delete_account", plan,
            "Failed to delete account", "An error occurred while deleting the account",
        )

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(
        self,
        amount: Amount,
        description: str,
        category_id: str,
        account_id: str,
        type: Union[TransactionType, str],
        date: Optional[datetime] = None,
        is_recurring: bool = False,
        tags: Optional[list[str]] = None,
        counter_account_id: Optional[str] = None,
    ) -> LedgerResult:
        """
        Record a transaction and post it to its account in one commit.

        Income adds the amount, expense subtracts its magnitude. A transfer
        posted here only moves its own leg; use transfer_between_accounts
        to move money between two accounts.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            self._require(snapshot.account(account_id), f"Account {account_id} not found")
            self._require(snapshot.category(category_id), f"Category {category_id} not found")
            if counter_account_id:
                self._require(
                    snapshot.account(counter_account_id),
                    f"Account {counter_account_id} not found",
                )

            data: dict[str, Any] = {
                "amount": _to_amount(amount),
                "description": description,
                "category_id": category_id,
                "account_id": account_id,
                "type": type,
                "is_recurring": is_recurring,
                "tags": tags or [],
                "counter_account_id": counter_account_id,
            }
            if date is not None:
                data["date"] = date
            transaction = Transaction(**data)

            postings = _Postings(snapshot)
            postings.post(account_id, transaction.balance_effect())
            return _Plan(
                ChangeSet(snapshot.version).put(transaction, *postings.accounts()),
                "Transaction added",
                "Transaction has been recorded successfully",
                transaction.id,
            )

        return await self._run(
            "add_transaction", plan,
            "Failed to add transaction", "An error occurred while adding the transaction",
        )

    async def update_transaction(self, transaction_id: str, **fields: Any) -> LedgerResult:
        """
        Edit a transaction, keeping account balances consistent.

        The old record's balance effect is reversed on its account and the
        new record's effect applied to its (possibly different) account,
        in the same commit.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            _reject_fields(fields, _IMMUTABLE_FIELDS, "These transaction fields cannot be changed")
            old = self._require(
                snapshot.transaction(transaction_id),
                f"Transaction {transaction_id} not found",
            )
            if "amount" in fields:
                fields["amount"] = _to_amount(fields["amount"])

            if old.transfer_id:
                if self._changed(old, fields, _TRANSFER_LOCKED_FIELDS):
                    raise PreconditionFailedError(
                        "Amount, account and type of a transfer cannot be edited. "
                        "Delete the transfer and record it again."
                    )
            elif fields.get("transfer_id"):
                raise PreconditionFailedError("Only transfers can carry a transfer id")

            if fields.get("goal_id", old.goal_id) != old.goal_id:
                raise PreconditionFailedError("Goal links are set by funding a goal")
            if old.goal_id and self._changed(old, fields, _CONTRIBUTION_LOCKED_FIELDS):
                raise PreconditionFailedError(
                    "Amount, account and type of a goal contribution cannot be edited. "
                    "Delete the contribution and fund the goal again."
                )

            new = merge_fields(old, fields)
            self._require(snapshot.account(new.account_id), f"Account {new.account_id} not found")
            if new.counter_account_id:
                self._require(
                    snapshot.account(new.counter_account_id),
                    f"Account {new.counter_account_id} not found",
                )
            self._require(snapshot.category(new.category_id), f"Category {new.category_id} not found")

            postings = _Postings(snapshot)
            postings.post(old.account_id, -old.balance_effect())
            postings.post(new.account_id, new.balance_effect())
            return _Plan(
                ChangeSet(snapshot.version).put(new, *postings.accounts()),
                "Transaction updated",
                "Transaction has been updated successfully",
                new.id,
            )

        return await self._run(
            "update_transaction", plan,
            "Failed to update transaction", "An error occurred while updating the transaction",
        )

    async def delete_transaction(self, transaction_id: str) -> LedgerResult:
        """
        Remove a transaction and reverse its balance effect.

        Deleting either leg of a transfer removes both legs and reverses
        both accounts, which also returns the fee to the source account.
        Deleting a goal contribution takes the amount back off the goal,
        and deleting a bill payment reopens the bill, in the same commit.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            transaction = self._require(
                snapshot.transaction(transaction_id),
                f"Transaction {transaction_id} not found",
            )
            if transaction.transfer_id:
                records = snapshot.transfer_legs(transaction.transfer_id)
                description = "Both sides of the transfer have been removed"
            else:
                records = [transaction]
                description = "Transaction has been removed successfully"

            changes = ChangeSet(snapshot.version)
            postings = _Postings(snapshot)
            for record in records:
                postings.post(record.account_id, -record.balance_effect())
                changes.remove(Transaction, record.id)
            changes.put(*postings.accounts())

            goal = snapshot.savings_goal(transaction.goal_id) if transaction.goal_id else None
            if goal is not None:
                remaining = max(goal.current_amount - abs(transaction.amount), Decimal("0"))
                changes.put(goal.model_copy(update={"current_amount": remaining}))
                description = f"Contribution removed from your {goal.name} goal"

            removed = {record.id for record in records}
            for bill in snapshot.bills:
                if bill.paid_transaction_id in removed:
                    changes.put(bill.model_copy(update={"is_paid": False, "paid_transaction_id": None}))
                    description = f"Payment removed; {bill.name} is unpaid again"
            return _Plan(changes, "Transaction deleted", description, transaction_id)

        return await self._run(
            "delete_transaction", plan,
            "Failed to delete transaction", "An error occurred while deleting the transaction",
        )

    async def transfer_between_accounts(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Amount,
        fee: Amount = 0,
        description: str = DEFAULT_TRANSFER_DESCRIPTION,
    ) -> LedgerResult:
        """
        Move money between two of the user's accounts.

        The source pays `amount + fee`, the destination receives `amount`.
        The fee leaves the ledger entirely. Both legs share a transfer id.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            source = snapshot.account(from_account_id)
            target = snapshot.account(to_account_id)
            if source is None or target is None:
                raise NotFoundError("One or both accounts not found")
            if from_account_id == to_account_id:
                raise PreconditionFailedError("Choose two different accounts")

            value = _to_amount(amount)
            charge = _to_amount(fee, "fee")
            if value <= 0:
                raise PreconditionFailedError("Transfer amount must be greater than zero")
            if charge < 0:
                raise PreconditionFailedError("Transfer fee cannot be negative")
            if source.balance < value + charge:
                raise InsufficientFundsError("Insufficient funds in the source account")

            category = self._transfer_category(snapshot)
            currency = snapshot.preferences.currency
            if description == DEFAULT_TRANSFER_DESCRIPTION:
                out_description = f"Transfer to {target.name}"
                if charge > 0:
                    out_description += f" (includes {format_currency(charge, currency)} fee)"
                in_description = f"Transfer from {source.name}"
            else:
                out_description = in_description = description

            transfer_id = new_id("transfer")
            now = datetime.now()
            outgoing = Transaction(
                date=now,
                amount=-(value + charge),
                description=out_description,
                category_id=category.id,
                account_id=source.id,
                type=TransactionType.TRANSFER,
                counter_account_id=target.id,
                fee=charge if charge > 0 else None,
                transfer_id=transfer_id,
            )
            incoming = Transaction(
                date=now,
                amount=value,
                description=in_description,
                category_id=category.id,
                account_id=target.id,
                type=TransactionType.TRANSFER,
                counter_account_id=source.id,
                transfer_id=transfer_id,
            )

            postings = _Postings(snapshot)
            postings.post(source.id, outgoing.balance_effect())
            postings.post(target.id, incoming.balance_effect())
            return _Plan(
                ChangeSet(snapshot.version).put(outgoing, incoming, *postings.accounts()),
                "Transfer completed",
                f"Successfully transferred {format_currency(value, currency)} "
                f"from {source.name} to {target.name}",
                transfer_id,
            )

        return await self._run(
            "transfer_between_accounts", plan,
            "Transfer failed", "An error occurred while processing the transfer",
        )

    # =========================================================================
    # SAVINGS GOALS
    # =========================================================================

    async def add_savings_goal(
        self,
        name: str,
        target_amount: Amount,
        target_date: Optional[date] = None,
        color: Optional[str] = None,
    ) -> LedgerResult:
        """Create a goal. Progress starts at zero and only grows by funding."""
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            goal = SavingsGoal(
                name=name,
                target_amount=_to_amount(target_amount, "target_amount"),
                target_date=target_date,
                color=color,
            )
            return _Plan(
                ChangeSet(snapshot.version).put(goal),
                "Savings goal added",
                f"{goal.name} goal has been created successfully",
                goal.id,
            )

        return await self._run(
            "add_savings_goal", plan,
            "Failed to add savings goal", "An error occurred while adding the savings goal",
        )

    async def update_savings_goal(self, goal_id: str, **fields: Any) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            _reject_fields(fields, _IMMUTABLE_FIELDS, "These goal fields cannot be changed")
            _reject_fields(
                fields, {"current_amount"},
                "Goal progress only changes by funding the goal",
            )
            goal = self._require(snapshot.savings_goal(goal_id), f"Savings goal {goal_id} not found")
            updated = merge_fields(goal, fields)
            return _Plan(
                ChangeSet(snapshot.version).put(updated),
                "Savings goal updated",
                f"{updated.name} has been updated",
                updated.id,
            )

        return await self._run(
            "update_savings_goal", plan,
            "Failed to update savings goal", "An error occurred while updating the savings goal",
        )

    async def delete_savings_goal(self, goal_id: str) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            goal = self._require(snapshot.savings_goal(goal_id), f"Savings goal {goal_id} not found")
            return _Plan(
                ChangeSet(snapshot.version).remove(SavingsGoal, goal_id),
                "Savings goal deleted",
                f"{goal.name} has been removed",
                goal_id,
            )

        return await self._run(
            "delete_savings_goal", plan,
            "Failed to delete savings goal", "An error occurred while deleting the savings goal",
        )

    async def fund_savings_goal(self, goal_id: str, account_id: str, amount: Amount) -> LedgerResult:
        """
        Move money from an account into a savings goal.

        One commit records the contribution as an expense, debits the
        account and raises the goal's progress by the same amount.
        Funding past the target is allowed.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            goal = snapshot.savings_goal(goal_id)
            account = snapshot.account(account_id)
            if goal is None or account is None:
                raise NotFoundError("Goal or account not found")

            value = _to_amount(amount)
            if value <= 0:
                raise PreconditionFailedError("Contribution must be greater than zero")
            if account.balance < value:
                raise InsufficientFundsError("Insufficient funds in the selected account")

            category = self._savings_category(snapshot)
            contribution = Transaction(
                amount=-value,
                description=f"Contribution to {goal.name} goal",
                category_id=category.id,
                account_id=account.id,
                type=TransactionType.EXPENSE,
                goal_id=goal.id,
            )
            postings = _Postings(snapshot)
            postings.post(account.id, contribution.balance_effect())
            funded = goal.model_copy(update={"current_amount": goal.current_amount + value})
            return _Plan(
                ChangeSet(snapshot.version).put(contribution, funded, *postings.accounts()),
                "Goal funded",
                f"Added {format_currency(value, snapshot.preferences.currency)} "
                f"to your {goal.name} goal",
                goal.id,
            )

        return await self._run(
            "fund_savings_goal", plan,
            "Funding failed", "An error occurred while funding the goal",
        )

    # =========================================================================
    # BILLS
    # =========================================================================

    async def add_bill(
        self,
        name: str,
        amount: Amount,
        due_date: date,
        is_recurring: bool = False,
        recurrence: Optional[Union[RecurrenceType, str]] = None,
        category_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            bill = Bill(
                name=name,
                amount=_to_amount(amount),
                due_date=due_date,
                is_recurring=is_recurring,
                recurrence=recurrence,
                category_id=category_id,
                account_id=account_id,
            )
            self._check_bill_references(snapshot, bill)
            return _Plan(
                ChangeSet(snapshot.version).put(bill),
                "Bill added",
                f"{bill.name} has been added to your bills",
                bill.id,
            )

        return await self._run(
            "add_bill", plan,
            "Failed to add bill", "An error occurred while adding the bill",
        )

    async def update_bill(self, bill_id: str, **fields: Any) -> LedgerResult:
        """Edit a bill. Settling it goes through pay_bill."""
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            _reject_fields(fields, _IMMUTABLE_FIELDS, "These bill fields cannot be changed")
            _reject_fields(
                fields, {"is_paid", "paid_transaction_id"},
                "Use pay_bill to settle a bill",
            )
            bill = self._require(snapshot.bill(bill_id), f"Bill {bill_id} not found")
            updated = merge_fields(bill, fields)
            self._check_bill_references(snapshot, updated)
            return _Plan(
                ChangeSet(snapshot.version).put(updated),
                "Bill updated",
                f"{updated.name} has been updated",
                updated.id,
            )

        return await self._run(
            "update_bill", plan,
            "Failed to update bill", "An error occurred while updating the bill",
        )

    async def delete_bill(self, bill_id: str) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            bill = self._require(snapshot.bill(bill_id), f"Bill {bill_id} not found")
            return _Plan(
                ChangeSet(snapshot.version).remove(Bill, bill_id),
                "Bill deleted",
                f"{bill.name} has been removed from your bills",
                bill_id,
            )

        return await self._run(
            "delete_bill", plan,
            "Failed to delete bill", "An error occurred while deleting the bill",
        )

    async def pay_bill(
        self,
        bill_id: str,
        account_id: Optional[str] = None,
        paid_on: Optional[datetime] = None,
    ) -> LedgerResult:
        """
        Settle a bill in one commit.

        Posts an expense for the bill amount against `account_id` (or the
        bill's own account), marks the bill paid and, for a bill with a
        recurrence period, adds the next unpaid occurrence.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            bill = self._require(snapshot.bill(bill_id), f"Bill {bill_id} not found")
            if bill.is_paid:
                raise PreconditionFailedError(f"{bill.name} is already paid")

            source_id = account_id or bill.account_id
            if not source_id:
                raise PreconditionFailedError(f"Choose an account to pay {bill.name} from")
            account = self._require(snapshot.account(source_id), f"Account {source_id} not found")
            category = self._bill_category(snapshot, bill)

            data: dict[str, Any] = {
                "amount": -bill.amount,
                "description": f"{bill.name} payment",
                "category_id": category.id,
                "account_id": account.id,
                "type": TransactionType.EXPENSE,
                "is_recurring": bill.is_recurring,
            }
            if paid_on is not None:
                data["date"] = paid_on
            payment = Transaction(**data)

            postings = _Postings(snapshot)
            postings.post(account.id, payment.balance_effect())
            paid = bill.model_copy(update={"is_paid": True, "paid_transaction_id": payment.id})
            changes = ChangeSet(snapshot.version).put(payment, paid, *postings.accounts())

            description = f"{bill.name} has been paid"
            next_due = bill.next_due_date()
            if next_due is not None:
                changes.put(Bill(
                    name=bill.name,
                    amount=bill.amount,
                    due_date=next_due,
                    is_recurring=True,
                    recurrence=bill.recurrence,
                    category_id=bill.category_id,
                    account_id=bill.account_id,
                ))
                description += f". Next due on {next_due.isoformat()}"

            return _Plan(changes, "Bill paid", description, bill.id)

        return await self._run(
            "pay_bill", plan,
            "Payment failed", "An error occurred while paying the bill",
        )

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def add_category(
        self,
        name: str,
        type: Union[CategoryType, str],
        color: str = "#64748b",
        icon: Optional[str] = None,
        category_id: Optional[str] = None,
    ) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            data: dict[str, Any] = {"name": name, "type": type, "color": color, "icon": icon}
            if category_id:
                if snapshot.category(category_id):
                    raise PreconditionFailedError(f"Category {category_id} already exists")
                data["id"] = category_id
            category = Category(**data)
            return _Plan(
                ChangeSet(snapshot.version).put(category),
                "Category added",
                f"{category.name} category has been added successfully",
                category.id,
            )

        return await self._run(
            "add_category", plan,
            "Failed to add category", "An error occurred while adding the category",
        )

    async def update_category(self, category_id: str, **fields: Any) -> LedgerResult:
        """
        Edit a category.

        Transactions hold only the category id, so the change shows on
        every referencing transaction the next time it is read.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            _reject_fields(fields, _IMMUTABLE_FIELDS, "These category fields cannot be changed")
            category = self._require(snapshot.category(category_id), f"Category {category_id} not found")
            updated = merge_fields(category, fields)
            return _Plan(
                ChangeSet(snapshot.version).put(updated),
                "Category updated",
                f"{updated.name} has been updated",
                updated.id,
            )

        return await self._run(
            "update_category", plan,
            "Failed to update category", "An error occurred while updating the category",
        )

    async def delete_category(self, category_id: str) -> LedgerResult:
        """Remove a category nothing refers to."""
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            category = self._require(snapshot.category(category_id), f"Category {category_id} not found")
            if any(t.category_id == category_id for t in snapshot.transactions):
                raise ReferentialIntegrityError(
                    "This category is being used by transactions. "
                    "Please reassign those transactions first.",
                    title="Cannot delete category",
                )
            if any(b.category_id == category_id for b in snapshot.bills):
                raise ReferentialIntegrityError(
                    "This category is being used by bills. Please reassign those bills first.",
                    title="Cannot delete category",
                )
            if any(
                line.category_id == category_id
                for budget in snapshot.budgets
                for line in budget.categories
            ):
                raise ReferentialIntegrityError(
                    "This category has a budget allocation. Remove it from the budget first.",
                    title="Cannot delete category",
                )
            return _Plan(
                ChangeSet(snapshot.version).remove(Category, category_id),
                "Category deleted",
                f"{category.name} has been removed",
                category_id,
            )

        return await self._run(
            "delete_category", plan,
            "Failed to delete category", "An error occurred while deleting the category",
        )

    # =========================================================================
    # NOTIFICATIONS & PREFERENCES
    # =========================================================================

    async def mark_notification_as_read(self, notification_id: str) -> LedgerResult:
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            notification: Notification = self._require(
                snapshot.notification(notification_id),
                f"Notification {notification_id} not found",
            )
            read = notification.model_copy(update={"read": True})
            return _Plan(
                ChangeSet(snapshot.version).put(read),
                "Notification read",
                "Notification marked as read",
                notification_id,
            )

        return await self._run(
            "mark_notification_as_read", plan,
            "Failed to update notification", "An error occurred while updating the notification",
            notify=False,
        )

    async def update_preferences(self, **fields: Any) -> LedgerResult:
        """
        Merge preference fields.

        Top-level fields are replaced; `notifications` is merged key by
        key, so a partial update leaves the other toggles as they were.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            merged = snapshot.preferences.merged(fields)
            changes = ChangeSet(snapshot.version, preferences=merged)
            return _Plan(
                changes,
                "Preferences updated",
                "Your preferences have been updated successfully",
            )

        return await self._run(
            "update_preferences", plan,
            "Failed to update preferences", "An error occurred while updating your preferences",
        )

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def set_budget(self, month: int, year: int, allocations: dict[str, Amount]) -> LedgerResult:
        """
        Create or replace the budget for a month.

        `spent` on every line is computed from that month's expenses.
        """
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            for category_id in allocations:
                self._require(snapshot.category(category_id), f"Category {category_id} not found")

            existing = snapshot.budget_for(month, year)
            spent = expense_totals_by_category(snapshot, month, year)
            budget = Budget(
                id=existing.id if existing else new_id("budget"),
                month=month,
                year=year,
                categories=[
                    BudgetCategory(
                        category_id=category_id,
                        allocated=_to_amount(allocated, "allocated"),
                        spent=spent.get(category_id, Decimal("0")),
                    )
                    for category_id, allocated in allocations.items()
                ],
            )
            return _Plan(
                ChangeSet(snapshot.version).put(budget),
                "Budget saved",
                f"Budget for {month:02d}/{year} has been saved",
                budget.id,
            )

        return await self._run(
            "set_budget", plan,
            "Failed to save budget", "An error occurred while saving the budget",
        )

    async def refresh_budget(self, budget_id: str) -> LedgerResult:
        """Recompute `spent` on every line of a budget from its month's expenses."""
        def plan(snapshot: LedgerSnapshot) -> _Plan:
            budget = self._require(snapshot.budget(budget_id), f"Budget {budget_id} not found")
            spent = expense_totals_by_category(snapshot, budget.month, budget.year)
            refreshed = budget.model_copy(update={
                "categories": [
                    line.model_copy(update={"spent": spent.get(line.category_id, Decimal("0"))})
                    for line in budget.categories
                ]
            })
            return _Plan(
                ChangeSet(snapshot.version).put(refreshed),
                "Budget refreshed",
                f"Spending for {budget.month:02d}/{budget.year} has been recalculated",
                budget_id,
            )

        return await self._run(
            "refresh_budget", plan,
            "Failed to refresh budget", "An error occurred while refreshing the budget",
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _run(
        self,
        operation: str,
        plan: Callable[[LedgerSnapshot], _Plan],
        failure_title: str,
        failure_description: str,
        notify: bool = True,
    ) -> LedgerResult:
        log = logger.bind(operation=operation)

        async with self._lock:
            try:
                if self._session.current_user_id is None:
                    raise PreconditionFailedError("Sign in to make changes")
                planned = plan(self._store.snapshot())
                await self._store.commit(planned.changes)
            except LedgerError as e:
                result = LedgerResult.fail(e.kind, e.message)
                title, description = e.title or failure_title, e.message
            except ValidationError as e:
                result = LedgerResult.fail(ErrorKind.INVALID_INPUT, _validation_message(e))
                title, description = failure_title, result.message
            except ConcurrentModificationError as e:
                result = LedgerResult.fail(ErrorKind.CONFLICT, str(e))
                title, description = failure_title, "The ledger changed while saving. Please try again."
            except EntityNotFoundError as e:
                result = LedgerResult.fail(ErrorKind.NOT_FOUND, str(e))
                title, description = failure_title, str(e)
            except Exception:
                log.error("ledger_operation_error", exc_info=True)
                result = LedgerResult.fail(ErrorKind.UNEXPECTED, failure_description)
                title, description = failure_title, failure_description
            else:
                result = LedgerResult.ok(planned.description, planned.entity_id)
                title, description = planned.title, planned.description

        if result.success:
            log.info("ledger_operation", outcome="success", entity_id=result.entity_id)
        elif result.error != ErrorKind.UNEXPECTED:
            log.warning("ledger_operation", outcome="failure", error=result.error.value, reason=result.message)

        if notify:
            await self._publish(
                MessageKind.SUCCESS if result.success else MessageKind.ERROR,
                title,
                description,
            )
        return result

    async def _publish(self, kind: MessageKind, title: str, description: str) -> None:
        try:
            await self._sink.publish(LedgerMessage(kind=kind, title=title, description=description))
        except Exception as e:
            # Sink failures never change an operation's outcome
            logger.error("notification_publish_failed", error=str(e))

    @staticmethod
    def _changed(old: Transaction, fields: dict[str, Any], names: set[str]) -> bool:
        return any(fields[name] != getattr(old, name) for name in names & set(fields))

    @staticmethod
    def _require(entity, message: str):
        if entity is None:
            raise NotFoundError(message)
        return entity

    def _check_bill_references(self, snapshot: LedgerSnapshot, bill: Bill) -> None:
        if bill.category_id:
            self._require(snapshot.category(bill.category_id), f"Category {bill.category_id} not found")
        if bill.account_id:
            self._require(snapshot.account(bill.account_id), f"Account {bill.account_id} not found")

    def _transfer_category(self, snapshot: LedgerSnapshot) -> Category:
        category = snapshot.category(self._settings.transfer_category_id) or next(
            (c for c in snapshot.categories if c.name.lower() == "transfer"), None
        )
        return self._require(category, "No Transfer category available")

    def _savings_category(self, snapshot: LedgerSnapshot) -> Category:
        category = (
            next((c for c in snapshot.categories if c.name.lower() == "savings"), None)
            or snapshot.category(self._settings.savings_category_fallback_id)
            or next(iter(snapshot.categories), None)
        )
        return self._require(category, "No category available for the contribution")

    def _bill_category(self, snapshot: LedgerSnapshot, bill: Bill) -> Category:
        if bill.category_id:
            return self._require(snapshot.category(bill.category_id), f"Category {bill.category_id} not found")
        return self._require(
            snapshot.category(self._settings.bill_category_fallback_id),
            "No category available for the bill payment",
        )


def create_app_components(
    settings: Optional[LedgerSettings] = None,
    forward_to_log: bool = True,
) -> tuple[LedgerService, SessionProvider, InMemoryNotificationSink]:
    """
    Factory function to wire the ledger together.

    Args:
        settings: Ledger settings (loaded from the environment if None)
        forward_to_log: Also write every message to the structured log

    Returns:
        (ledger_service, session_provider, notification_sink)
    """
    settings = settings or get_settings().ledger
    sink = InMemoryNotificationSink(
        forward_to=StructlogNotificationSink() if forward_to_log else None
    )
    session = SessionProvider(sink=sink)
    store = InMemoryLedgerStore(default_preferences=UserPreferences(
        currency=settings.default_currency,
        date_format=settings.default_date_format,
    ))
    service = LedgerService(store, session, sink=sink, settings=settings)
    session.subscribe(service.handle_session_change)
    return service, session, sink
