"""HiveApp: top-level Textual application."""

from __future__ import annotations

import logging

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Static

from hivesync.api.models import InvitationStatus
from hivesync.config import Settings, load_settings
from hivesync.services.entity_store import StoreState
from hivesync.services.result import Err
from hivesync.services.session import SyncSession
from hivesync.ui.widgets.groups_panel import GroupsPanel
from hivesync.ui.widgets.invitations_panel import InvitationsPanel
from hivesync.ui.widgets.status_bar import StatusBar

log = logging.getLogger(__name__)


class HiveApp(App):
    """Groups, invitations and plan usage for the signed-in user."""

    TITLE = "LocalHive"

    BINDINGS = [
        Binding("q", "quit", "Quit", priority=True),
        Binding("r", "refresh", "Refresh", show=False),
        Binding("j", "next_invitation", "Next", show=False),
        Binding("k", "prev_invitation", "Prev", show=False),
        Binding("a", "accept", "Accept", show=False),
        Binding("d", "decline", "Decline", show=False),
        Binding("t", "trial", "Trial", show=False),
    ]

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.settings: Settings = settings or load_settings()
        self.session: SyncSession | None = None
        self._unsubscribe = None
        self._poll_timer = None

    def compose(self) -> ComposeResult:
        yield Static(" ", id="title-bar")
        yield GroupsPanel(id="groups-panel")
        yield InvitationsPanel(id="invitations-panel")
        yield StatusBar(id="status-bar")

    async def on_mount(self) -> None:
        if not self.settings.api_key or not self.settings.user_id:
            status = self.query_one("#status-bar", StatusBar)
            status.set_warning("Missing HIVE_API_KEY or HIVE_USER_ID in .env")
            return

        self.session = SyncSession(self.settings)
        self._unsubscribe = self.session.store.subscribe(self._on_store_changed)
        self.query_one("#title-bar", Static).update(
            f"[bold]LocalHive[/bold]  [dim]{self.settings.user_id}[/dim]"
        )
        self.run_worker(self._initialize(), exclusive=True, group="init")

    async def _initialize(self) -> None:
        """Load everything once, then poll on the focus policy."""
        if self.session is None:
            return
        try:
            await self.session.start()
        except Exception:
            log.exception("Initial load failed")
        self._render_all()
        self._poll_timer = self.set_interval(self.settings.poll_interval, self._on_poll)

    async def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        if self.session is not None:
            await self.session.close()

    def _on_store_changed(self, state: StoreState) -> None:
        self.query_one("#groups-panel", GroupsPanel).update_groups(state.groups)
        self.query_one("#invitations-panel", InvitationsPanel).update_invitations(
            state.invitations
        )
        self.query_one("#invitations-panel", InvitationsPanel).update_sent(state.sent_invitations)
        self.query_one("#status-bar", StatusBar).set_error(state.error)

    def _render_all(self) -> None:
        if self.session is None:
            return
        self._on_store_changed(self.session.groups_state())
        status = self.query_one("#status-bar", StatusBar)
        status.update_subscription(self.session.subscription_state())
        status.update_refresh_time()

    async def _on_poll(self) -> None:
        self.run_worker(self._focus_refresh(), exclusive=True, group="load")

    def on_app_focus(self, event: events.AppFocus) -> None:
        if self.session is not None:
            self.run_worker(self._focus_refresh(), exclusive=True, group="load")

    async def _focus_refresh(self) -> None:
        if self.session is None:
            return
        if await self.session.on_screen_focus():
            self._render_all()

    def action_refresh(self) -> None:
        if self.session is not None:
            self.run_worker(self._pull_to_refresh(), exclusive=True, group="load")

    async def _pull_to_refresh(self) -> None:
        if self.session is None:
            return
        status = self.query_one("#status-bar", StatusBar)
        status.set_refreshing(True)
        try:
            await self.session.pull_to_refresh()
        except Exception:
            log.exception("Refresh failed")
        finally:
            status.set_refreshing(False)
        self._render_all()

    def action_next_invitation(self) -> None:
        self.query_one("#invitations-panel", InvitationsPanel).move(1)

    def action_prev_invitation(self) -> None:
        self.query_one("#invitations-panel", InvitationsPanel).move(-1)

    def action_accept(self) -> None:
        self._respond("accepted")

    def action_decline(self) -> None:
        self._respond("declined")

    def _respond(self, status: InvitationStatus) -> None:
        invitation = self.query_one("#invitations-panel", InvitationsPanel).selected
        if self.session is None or invitation is None:
            return
        self.run_worker(self._send_response(invitation.id, status), group="mutate")

    async def _send_response(self, invitation_id: str, status: InvitationStatus) -> None:
        if self.session is None:
            return
        result = await self.session.respond_to_invitation(invitation_id, status)
        if isinstance(result, Err):
            self.notify(f"Could not answer invitation: {result.error}", severity="error")
        self._render_all()

    def action_trial(self) -> None:
        if self.session is not None:
            self.run_worker(self._start_trial(), group="mutate")

    async def _start_trial(self) -> None:
        if self.session is None:
            return
        result = await self.session.activate_trial()
        if isinstance(result, Err):
            self.notify(f"Trial not started: {result.error}", severity="error")
        self._render_all()
