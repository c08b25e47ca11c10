"""
Streamlit Dashboard for MoneyX

Presentation layer over the ledger.

DESIGN PRINCIPLES:
1. Read from snapshots and aggregation results only
2. Every change goes through a LedgerService operation
3. Show the operation's message after every action
4. Keep forms open (no rerun) when an operation fails

The dashboard holds no ledger rules of its own.
"""

import asyncio
from datetime import date, datetime, timedelta

import streamlit as st

from moneyx.config import validate_all_settings
from moneyx.ledger import LedgerService, create_app_components
from moneyx.models import (
    AccountType,
    CategoryType,
    MessageKind,
    RecurrenceType,
    TransactionType,
)
from moneyx.notifications import InMemoryNotificationSink
from moneyx.queries import (
    budget_utilization,
    days_until_due,
    export_filename,
    export_transactions_csv,
    format_currency,
    format_date,
    generate_insights,
    monthly_summary,
    sorted_transactions,
    spending_by_category,
    total_balance,
    upcoming_bills,
)
from moneyx.session import SessionProvider


# Page configuration
st.set_page_config(
    page_title="MoneyX",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .alert-box {
        padding: 16px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 8px 0;
    }
    .info-box {
        padding: 16px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 8px 0;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One loop for the whole app, so the ledger lock stays on one loop."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_event_loop().run_until_complete(coro)


@st.cache_resource
def get_components() -> tuple[LedgerService, SessionProvider, InMemoryNotificationSink]:
    """Get or create application components (cached)."""
    return create_app_components()


def show_messages(sink: InMemoryNotificationSink) -> None:
    """Render every message published since the last rerun."""
    for message in sink.drain():
        text = f"**{message.title}**"
        if message.description:
            text += f" - {message.description}"
        if message.kind == MessageKind.SUCCESS:
            st.success(text)
        else:
            st.error(text)


def act(result) -> None:
    """Rerun on success so every widget reads the new snapshot; show the error otherwise."""
    if result:
        st.rerun()
    _, _, sink = get_components()
    show_messages(sink)


def main():
    """Main application entry point."""
    ledger, session, sink = get_components()

    st.sidebar.title("💰 MoneyX")
    st.sidebar.markdown("---")

    if not session.is_authenticated:
        show_messages(sink)
        render_login_page(session)
        return

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🏦 Accounts", "💸 Transactions", "🧾 Bills",
         "🎯 Goals", "📒 Budgets", "⚙️ Settings"],
        index=0,
    )
    st.sidebar.markdown("---")
    user = session.current_user
    st.sidebar.markdown(f"Signed in as **{user.first_name or user.email}**")
    if st.sidebar.button("Log out"):
        run_async(session.logout())
        st.rerun()

    show_messages(sink)

    if page == "📊 Dashboard":
        render_dashboard_page(ledger)
    elif page == "🏦 Accounts":
        render_accounts_page(ledger)
    elif page == "💸 Transactions":
        render_transactions_page(ledger)
    elif page == "🧾 Bills":
        render_bills_page(ledger)
    elif page == "🎯 Goals":
        render_goals_page(ledger)
    elif page == "📒 Budgets":
        render_budgets_page(ledger)
    elif page == "⚙️ Settings":
        render_settings_page(ledger)


def render_login_page(session: SessionProvider):
    st.title("Sign in to MoneyX")
    email = st.text_input("Email")
    password = st.text_input("Password", type="password")
    if st.button("Sign in", type="primary"):
        if run_async(session.login(email, password)):
            st.rerun()


def render_dashboard_page(ledger: LedgerService):
    """Balances, monthly trend, spending breakdown and insights."""
    snapshot = ledger.snapshot()
    currency = snapshot.preferences.currency
    today = date.today()
    summary = monthly_summary(snapshot, today.month, today.year)

    st.title("📊 Dashboard")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Balance", format_currency(total_balance(snapshot), currency))
    col2.metric("Monthly Income", format_currency(summary.income, currency), f"{summary.income_change}%")
    col3.metric("Monthly Expenses", format_currency(summary.expenses, currency), f"{summary.expenses_change}%")
    col4.metric("Net Income", format_currency(summary.net_income, currency), f"{summary.net_income_change}%")

    st.markdown("---")
    left, right = st.columns(2)

    with left:
        st.subheader("Spending by Category")
        rows = spending_by_category(snapshot, today.month, today.year)
        if rows:
            st.bar_chart({row.name: float(row.amount) for row in rows})
            for row in rows:
                st.markdown(f"- {row.name}: {format_currency(row.amount, currency)} ({row.percentage})")
        else:
            st.info("No expenses recorded this month.")

    with right:
        st.subheader("AI Insights")
        for insight in generate_insights(snapshot, today):
            css = "alert-box" if insight.type == "alert" else "info-box"
            st.markdown(
                f'<div class="{css}"><strong>{insight.title}</strong><br>{insight.description}</div>',
                unsafe_allow_html=True,
            )

    st.markdown("---")
    st.subheader("Recent Transactions")
    for view in sorted_transactions(snapshot)[:5]:
        t = view.transaction
        st.markdown(
            f"{format_date(t.date, snapshot.preferences.date_format)} · {t.description} · "
            f"{view.category_name} · {format_currency(t.amount, currency)}"
        )

    unread = [n for n in snapshot.notifications if not n.read]
    if unread:
        st.subheader(f"Notifications ({len(unread)})")
        for notification in unread:
            col1, col2 = st.columns([5, 1])
            col1.markdown(notification.message)
            if col2.button("Mark read", key=f"read-{notification.id}"):
                act(run_async(ledger.mark_notification_as_read(notification.id)))


def render_accounts_page(ledger: LedgerService):
    snapshot = ledger.snapshot()
    currency = snapshot.preferences.currency

    st.title("🏦 Accounts")
    st.metric("Total Balance", format_currency(total_balance(snapshot), currency))

    for account in snapshot.accounts:
        col1, col2, col3 = st.columns([3, 2, 1])
        col1.markdown(f"**{account.name}** ({account.type.value})")
        col2.markdown(format_currency(account.balance, currency))
        if col3.button("Delete", key=f"del-{account.id}"):
            act(run_async(ledger.delete_account(account.id)))

    with st.expander("➕ Add account"):
        name = st.text_input("Account name")
        account_type = st.selectbox("Type", list(AccountType), format_func=lambda x: x.value)
        balance = st.number_input("Opening balance", value=0.0, step=0.01, format="%.2f")
        if st.button("Add account", type="primary"):
            act(run_async(ledger.add_account(name, account_type, balance)))

    if len(snapshot.accounts) >= 2:
        with st.expander("🔁 Transfer between accounts"):
            names = {a.id: a.name for a in snapshot.accounts}
            source = st.selectbox("From", list(names), format_func=names.get, key="transfer-from")
            target = st.selectbox("To", list(names), format_func=names.get, key="transfer-to")
            amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f", key="transfer-amount")
            fee = st.number_input("Fee", min_value=0.0, step=0.01, format="%.2f", key="transfer-fee")
            if st.button("Transfer", type="primary"):
                act(run_async(ledger.transfer_between_accounts(source, target, amount, fee)))


def render_transactions_page(ledger: LedgerService):
    snapshot = ledger.snapshot()
    preferences = snapshot.preferences

    st.title("💸 Transactions")

    if snapshot.accounts and snapshot.categories:
        with st.expander("➕ Add transaction"):
            accounts = {a.id: a.name for a in snapshot.accounts}
            categories = {c.id: c.name for c in snapshot.categories}
            kind = st.selectbox(
                "Type", [TransactionType.EXPENSE, TransactionType.INCOME],
                format_func=lambda x: x.value.title(),
            )
            amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
            description = st.text_input("Description")
            account_id = st.selectbox("Account", list(accounts), format_func=accounts.get)
            category_id = st.selectbox("Category", list(categories), format_func=categories.get)
            when = st.date_input("Date", value=date.today())
            if st.button("Add transaction", type="primary"):
                signed = -amount if kind == TransactionType.EXPENSE else amount
                act(run_async(ledger.add_transaction(
                    amount=signed,
                    description=description,
                    category_id=category_id,
                    account_id=account_id,
                    type=kind,
                    date=datetime.combine(when, datetime.min.time()),
                )))

    for view in sorted_transactions(snapshot):
        t = view.transaction
        col1, col2, col3, col4 = st.columns([2, 4, 2, 1])
        col1.markdown(format_date(t.date, preferences.date_format))
        col2.markdown(f"{t.description} · *{view.category_name}* · {view.account_name or '-'}")
        col3.markdown(format_currency(t.amount, preferences.currency))
        if col4.button("Delete", key=f"del-{t.id}"):
            act(run_async(ledger.delete_transaction(t.id)))

    st.markdown("---")
    st.subheader("Export")
    col1, col2 = st.columns(2)
    date_from = col1.date_input("From", value=date.today() - timedelta(days=30))
    date_to = col2.date_input("To", value=date.today())
    st.download_button(
        "Download CSV",
        data=export_transactions_csv(snapshot, date_from, date_to),
        file_name=export_filename(date_from, date_to),
        mime="text/csv",
    )


def render_bills_page(ledger: LedgerService):
    snapshot = ledger.snapshot()
    currency = snapshot.preferences.currency
    window = ledger.settings.bill_reminder_window_days

    st.title("🧾 Bills")
    due = upcoming_bills(snapshot, window)
    if due:
        st.markdown(
            f'<div class="alert-box">{len(due)} bills due in the next {window} days</div>',
            unsafe_allow_html=True,
        )

    accounts = {a.id: a.name for a in snapshot.accounts}
    for bill in sorted(snapshot.bills, key=lambda b: b.due_date):
        col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
        days = days_until_due(bill.due_date)
        status = "Paid" if bill.is_paid else ("Overdue" if days < 0 else f"Due in {days} days")
        col1.markdown(f"**{bill.name}** · {status}")
        col2.markdown(format_currency(bill.amount, currency))
        if not bill.is_paid and accounts:
            source = col3.selectbox(
                "Pay from", list(accounts), format_func=accounts.get,
                key=f"pay-from-{bill.id}", label_visibility="collapsed",
            )
            if col4.button("Pay", key=f"pay-{bill.id}"):
                act(run_async(ledger.pay_bill(bill.id, source)))

    with st.expander("➕ Add bill"):
        name = st.text_input("Bill name")
        amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f", key="bill-amount")
        due_date = st.date_input("Due date", value=date.today())
        recurrence = st.selectbox(
            "Repeats", [None] + list(RecurrenceType),
            format_func=lambda x: "Does not repeat" if x is None else x.value.title(),
        )
        if st.button("Add bill", type="primary"):
            act(run_async(ledger.add_bill(
                name, amount, due_date,
                is_recurring=recurrence is not None,
                recurrence=recurrence,
            )))


def render_goals_page(ledger: LedgerService):
    snapshot = ledger.snapshot()
    currency = snapshot.preferences.currency
    accounts = {a.id: a.name for a in snapshot.accounts}

    st.title("🎯 Savings Goals")
    for goal in snapshot.savings_goals:
        st.markdown(
            f"**{goal.name}** · {format_currency(goal.current_amount, currency)} of "
            f"{format_currency(goal.target_amount, currency)}"
        )
        st.progress(min(goal.progress_percent, 100.0) / 100)
        if accounts:
            col1, col2, col3 = st.columns([2, 2, 1])
            source = col1.selectbox(
                "From account", list(accounts), format_func=accounts.get, key=f"fund-from-{goal.id}",
            )
            amount = col2.number_input(
                "Amount", min_value=0.0, step=0.01, format="%.2f", key=f"fund-amount-{goal.id}",
            )
            if col3.button("Fund", key=f"fund-{goal.id}"):
                act(run_async(ledger.fund_savings_goal(goal.id, source, amount)))

    with st.expander("➕ Add goal"):
        name = st.text_input("Goal name")
        target = st.number_input("Target amount", min_value=0.0, step=0.01, format="%.2f")
        target_date = st.date_input("Target date", value=None)
        if st.button("Add goal", type="primary"):
            act(run_async(ledger.add_savings_goal(name, target, target_date)))


def render_budgets_page(ledger: LedgerService):
    snapshot = ledger.snapshot()
    currency = snapshot.preferences.currency
    today = date.today()

    st.title("📒 Budgets")
    usage = budget_utilization(snapshot, today.month, today.year)
    if usage is None:
        st.info("No budget set for this month.")
    else:
        st.metric(
            "Spent this month",
            format_currency(usage.total_spent, currency),
            f"{usage.percent_used:.1f}% of {format_currency(usage.total_allocated, currency)}",
        )
        for line in usage.lines:
            marker = "🔴" if line.is_over else "🟢"
            st.markdown(
                f"{marker} **{line.name}**: {format_currency(line.spent, currency)} / "
                f"{format_currency(line.allocated, currency)}"
            )

    with st.expander("✏️ Set this month's budget"):
        allocations = {}
        for category in snapshot.categories:
            if category.type != CategoryType.EXPENSE:
                continue
            value = st.number_input(
                category.name, min_value=0.0, step=10.0, format="%.2f", key=f"alloc-{category.id}",
            )
            if value > 0:
                allocations[category.id] = value
        if st.button("Save budget", type="primary"):
            act(run_async(ledger.set_budget(today.month, today.year, allocations)))


def render_settings_page(ledger: LedgerService):
    snapshot = ledger.snapshot()
    preferences = snapshot.preferences

    st.title("⚙️ Settings")
    st.markdown("### Preferences")
    currency = st.selectbox(
        "Currency", ["INR", "USD", "EUR", "GBP", "JPY"],
        index=["INR", "USD", "EUR", "GBP", "JPY"].index(preferences.currency)
        if preferences.currency in ["INR", "USD", "EUR", "GBP", "JPY"] else 0,
    )
    date_format = st.selectbox(
        "Date format", ["MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD"],
        index=["MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD"].index(preferences.date_format)
        if preferences.date_format in ["MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD"] else 0,
    )
    dark_mode = st.checkbox("Dark mode", value=preferences.dark_mode)

    st.markdown("### Notifications")
    toggles = preferences.notifications
    notifications = {
        "low_balance": st.checkbox("Low balance alerts", value=toggles.low_balance),
        "bill_reminders": st.checkbox("Bill reminders", value=toggles.bill_reminders),
        "large_transactions": st.checkbox("Large transactions", value=toggles.large_transactions),
        "weekly_summary": st.checkbox("Weekly summary", value=toggles.weekly_summary),
        "ai_insights": st.checkbox("AI insights", value=toggles.ai_insights),
    }
    if st.button("Save preferences", type="primary"):
        act(run_async(ledger.update_preferences(
            currency=currency,
            date_format=date_format,
            dark_mode=dark_mode,
            notifications=notifications,
        )))

    st.markdown("---")
    st.markdown("### Categories")
    for category in snapshot.categories:
        col1, col2 = st.columns([4, 1])
        col1.markdown(f"**{category.name}** ({category.type.value})")
        if col2.button("Delete", key=f"del-{category.id}"):
            act(run_async(ledger.delete_category(category.id)))

    with st.expander("➕ Add category"):
        name = st.text_input("Category name")
        kind = st.selectbox("Kind", list(CategoryType), format_func=lambda x: x.value.title())
        color = st.color_picker("Colour", value="#64748b")
        if st.button("Add category", type="primary"):
            act(run_async(ledger.add_category(name, kind, color)))

    st.markdown("---")
    st.markdown("### Configuration Status")

    status = validate_all_settings()
    sections = [
        ("Ledger defaults", "ledger"),
        ("Logging", "logging"),
        ("Application", "app"),
    ]
    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Valid")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(
        "Defaults are read from environment variables and a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
