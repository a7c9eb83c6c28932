"""Status bar: plan usage, last refresh, errors."""

from __future__ import annotations

import time

from textual.widgets import Static

from hivesync.services.result import SyncError
from hivesync.services.subscription import SubscriptionState
from hivesync.ui.widgets.constants import STATUS_LABELS

KEY_HINTS = "[dim]q:Quit  r:Refresh  a/d:Answer invite  t:Trial[/dim]"


class StatusBar(Static):
    """One-line footer: plan and usage on the left, sync state after it."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        padding: 0 1;
        background: #2b2111;
        color: #c9b98f;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("[bold]Plan: --[/bold]", **kwargs)
        self.plan = "Plan: --"
        self.usage = ""
        self.synced = ""
        self.problem = ""
        self.busy = False

    def update_subscription(self, state: SubscriptionState) -> None:
        info = state.entitlements
        self.plan = f"Plan: {STATUS_LABELS.get(info.status, info.status)}"
        self.usage = (
            f"Groups {info.groups_used}/{info.groups_limit}  "
            f"Items {info.items_used}/{info.items_limit}"
        )
        if info.is_approaching_limits:
            self.usage += "  [bold yellow]near limit[/bold yellow]"
        self.busy = state.loading
        self._redraw()

    def update_refresh_time(self) -> None:
        self.synced = time.strftime("Synced %H:%M:%S")
        self._redraw()

    def set_error(self, error: SyncError | None) -> None:
        self.problem = str(error) if error else ""
        self._redraw()

    def set_warning(self, text: str) -> None:
        self.problem = text
        self._redraw()

    def set_refreshing(self, refreshing: bool) -> None:
        self.busy = refreshing
        self._redraw()

    def _redraw(self) -> None:
        segments = [f"[bold]{self.plan}[/bold]", self.usage]
        segments.append("[bold yellow]Syncing...[/bold yellow]" if self.busy else self.synced)
        if self.problem:
            segments.append(f"[bold red]{self.problem}[/bold red]")
        segments.append(KEY_HINTS)
        self.update("  |  ".join(s for s in segments if s))
