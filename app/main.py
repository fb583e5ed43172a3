"""
Streamlit Frontend for Shared Bill Ledger

The screen the four of us open once a month when the WiFi bill arrives.

DESIGN PRINCIPLES:
1. Balances first: everyone sees where they stand before anything else
2. Live preview: the numbers update while a month is being entered
3. Nothing is saved without an explicit "Save" action
4. Every change can be undone
5. Drive problems are shown but never block local work

Each Streamlit rerun gets a fresh event loop (see run_async), so queued
Drive pushes are awaited before that loop is closed. The local change is
already saved by then, but a slow Drive upload holds the rerun (and the
spinner) until it finishes or fails.
"""

import asyncio
from datetime import date

import streamlit as st

from sharedbill.config import get_settings, validate_all_settings
from sharedbill.ledger import LedgerError, ValidationError, format_month_label
from sharedbill.models.ledger import (
    MONTH_NAMES,
    PARTICIPANTS,
    ZERO,
    describe_balance,
    format_amount,
)
from sharedbill.orchestrator import (
    CloudSyncFlow,
    InsightsFlow,
    LedgerFlow,
    create_app_components,
)
from sharedbill.services.storage import AuthError, SyncError


# Page configuration
st.set_page_config(
    page_title="Shared Bill Ledger",
    page_icon="📶",
    layout="wide",
    initial_sidebar_state="expanded",
)

NO_MONTH = "Select month"


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_drive=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_drive=False)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    ledger_flow = get_components()[0]

    async def _run():
        try:
            return await coro
        finally:
            # Pushes queued on this loop must land before it closes
            await ledger_flow.wait_for_sync()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_run())
    finally:
        loop.close()


def currency() -> str:
    return get_settings().app.currency_symbol


def money(amount) -> str:
    return f"{currency()}{format_amount(amount)}"


def main():
    """Main application entry point."""
    ledger_flow, sync_flow, insights_flow = get_components()

    # Sidebar navigation
    st.sidebar.title("📶 Shared Bill Ledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "✏️ Add / Edit Month", "✨ Insights", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    render_history_controls(ledger_flow)
    st.sidebar.markdown("---")
    render_drive_controls(ledger_flow, sync_flow)

    for note in sync_flow.notifications():
        if note.level == "error":
            st.error(note.message)
        elif note.level == "warning":
            st.warning(note.message)
        else:
            st.toast(note.message)

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(ledger_flow)
    elif page == "✏️ Add / Edit Month":
        render_entry_page(ledger_flow)
    elif page == "✨ Insights":
        render_insights_page(insights_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_history_controls(ledger_flow: LedgerFlow):
    """Undo / redo buttons."""
    st.sidebar.markdown("**History**")
    col1, col2 = st.sidebar.columns(2)
    with col1:
        if st.button("↩️ Undo", disabled=not ledger_flow.can_undo, use_container_width=True):
            run_async(ledger_flow.undo())
            st.rerun()
    with col2:
        if st.button("↪️ Redo", disabled=not ledger_flow.can_redo, use_container_width=True):
            run_async(ledger_flow.redo())
            st.rerun()


def render_drive_controls(ledger_flow: LedgerFlow, sync_flow: CloudSyncFlow):
    """Connect / sync / disconnect for the Drive mirror."""
    st.sidebar.markdown("**Google Drive**")

    if not sync_flow.is_configured:
        st.sidebar.caption("Not configured. The ledger is saved on this device only.")
        return

    if not sync_flow.is_connected:
        adopt = st.sidebar.checkbox(
            "Use the Drive copy if one exists",
            value=True,
            help="Replaces the local ledger with the records found on Drive. You can undo this.",
        )
        if st.sidebar.button("🔗 Connect", use_container_width=True):
            with st.spinner("Connecting to Google Drive..."):
                try:
                    result = run_async(sync_flow.connect(adopt_remote=adopt))
                except AuthError as e:
                    st.sidebar.error(f"{e}. {e.guidance}")
                    return
                except SyncError as e:
                    st.sidebar.error(f"Could not reach Drive: {e}")
                    return
            if result.created:
                st.sidebar.success("Created a new ledger file on Drive.")
            elif result.adopted_remote:
                st.sidebar.success(f"Loaded {result.remote_record_count} months from Drive.")
            else:
                st.sidebar.success("Connected. Local ledger kept.")
            st.rerun()
        return

    worker = ledger_flow.sync_worker
    st.sidebar.caption(f"Connected as {worker.session.identity}")
    if worker.last_synced_at:
        st.sidebar.caption(f"Last synced {worker.last_synced_at:%d %b %Y %H:%M} UTC")

    col1, col2 = st.sidebar.columns(2)
    with col1:
        if st.button("🔄 Sync now", use_container_width=True):
            with st.spinner("Syncing..."):
                run_async(sync_flow.sync_now())
            st.rerun()
    with col2:
        if st.button("Disconnect", use_container_width=True):
            run_async(sync_flow.disconnect())
            st.rerun()


def render_dashboard_page(ledger_flow: LedgerFlow):
    """Current balances and the month-by-month history."""
    st.title("📊 Dashboard")

    balances = ledger_flow.current_balances()
    cols = st.columns(len(PARTICIPANTS))
    for col, participant in zip(cols, PARTICIPANTS):
        amount = balances[participant.id]
        with col:
            st.metric(
                label=f"{participant.name} ({participant.weight}x)",
                value=describe_balance(amount, currency()),
            )

    st.markdown("---")
    st.markdown("### History")

    history = ledger_flow.history()
    if not history:
        st.info(
            "📋 No months recorded yet. "
            "Use the 'Add / Edit Month' page to add the first bill."
        )
        return

    for record in reversed(history):
        with st.expander(f"{record.month} - {money(record.total_bill)}"):
            rows = [
                {
                    "Sibling": p.name,
                    "Expected": money(record.expected[p.id]),
                    "Paid": money(record.paid[p.id]),
                    "Balance": describe_balance(record.balance_carry_forward[p.id], currency()),
                }
                for p in PARTICIPANTS
            ]
            st.table(rows)

            if st.button("🗑️ Delete month", key=f"delete-{record.month}"):
                run_async(ledger_flow.delete_month(record.month))
                st.success(f"Deleted {record.month}. Use Undo to bring it back.")
                st.rerun()


def _load_into_form(ledger_flow: LedgerFlow, month_label: str):
    record = next((r for r in ledger_flow.history() if r.month == month_label), None)
    if record is None:
        return
    name, year = record.month.split()
    st.session_state.entry_month = name
    st.session_state.entry_year = int(year)
    st.session_state.entry_bill = float(record.total_bill)
    for p in PARTICIPANTS:
        st.session_state[f"entry_paid_{p.id.value}"] = float(record.paid[p.id])


def render_entry_page(ledger_flow: LedgerFlow):
    """Enter a new month or overwrite an existing one."""
    st.title("✏️ Add / Edit Month")

    existing = [r.month for r in reversed(ledger_flow.history())]
    if existing:
        col1, col2 = st.columns([3, 1])
        with col1:
            to_edit = st.selectbox("Edit an existing month", options=existing)
        with col2:
            st.write("")
            if st.button("Load", use_container_width=True):
                _load_into_form(ledger_flow, to_edit)
                st.rerun()

    st.markdown("---")

    col1, col2, col3 = st.columns(3)
    with col1:
        month_name = st.selectbox("Month", options=[NO_MONTH, *MONTH_NAMES], key="entry_month")
    with col2:
        year = st.number_input(
            "Year",
            min_value=2000,
            max_value=2100,
            value=date.today().year,
            step=1,
            key="entry_year",
        )
    with col3:
        total_bill = st.number_input(
            f"Total bill ({currency()})",
            min_value=0.0,
            step=100.0,
            key="entry_bill",
        )

    st.markdown("#### Payments")
    paid = {}
    cols = st.columns(len(PARTICIPANTS))
    for col, participant in zip(cols, PARTICIPANTS):
        with col:
            paid[participant.id] = st.number_input(
                f"{participant.name} paid",
                min_value=0.0,
                step=50.0,
                key=f"entry_paid_{participant.id.value}",
            )

    month_label = format_month_label(
        "" if month_name == NO_MONTH else month_name,
        int(year),
    )

    # Live preview
    try:
        preview = ledger_flow.preview(month_label, total_bill, paid)
    except LedgerError as e:
        st.error(str(e))
        return

    st.markdown("#### Preview")
    rows = [
        {
            "Sibling": p.name,
            "Share": money(preview.expected[p.id]),
            "Total due": money(preview.total_due[p.id]),
            "Paid": money(paid[p.id]),
            "New balance": describe_balance(preview.new_balance[p.id], currency()),
        }
        for p in PARTICIPANTS
    ]
    st.table(rows)

    if month_name != NO_MONTH and month_label in {r.month for r in ledger_flow.history()}:
        st.warning(f"{month_label} already exists. Saving will replace it.")

    if st.button("💾 Save", type="primary"):
        try:
            record = run_async(ledger_flow.save_month(month_label, total_bill, paid))
        except ValidationError as e:
            st.error(e.user_message)
            return
        except LedgerError as e:
            st.error(f"Could not save: {e}")
            return

        owing = [
            f"{p.name} {describe_balance(record.balance_carry_forward[p.id], currency()).lower()}"
            for p in PARTICIPANTS
            if record.balance_carry_forward[p.id] != ZERO
        ]
        st.success(f"✅ Saved {record.month}.")
        if owing:
            st.info("Carried forward: " + "; ".join(owing))


def render_insights_page(insights_flow: InsightsFlow):
    """AI summary of the history."""
    st.title("✨ Insights")
    st.markdown("A short summary of who pays on time and how the bill is trending.")

    if st.button("✨ Generate summary", type="primary"):
        with st.spinner("Thinking..."):
            summary = run_async(insights_flow.generate())
        st.markdown(summary)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Drive (Sync)", "google_drive"),
        ("Gemini (AI)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    app_settings = get_settings().app
    st.markdown(f"Local ledger file: `{app_settings.ledger_path}`")
    st.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
