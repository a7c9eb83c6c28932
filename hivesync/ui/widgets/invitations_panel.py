"""Pending invitations with a selection cursor for accept/decline."""

from __future__ import annotations

from rich.console import Group as RenderGroup
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Static

from hivesync.api.models import GroupInvitation


def _build_row(invitation: GroupInvitation, selected: bool) -> Text:
    line = Text()
    line.append("> " if selected else "  ", style="bold #f5c542")
    line.append(f"Group {invitation.group_id}", style="bold" if selected else "white")
    if invitation.inviter_id:
        line.append(f"  from {invitation.inviter_id}", style="dim")
    if invitation.created_at:
        line.append(f"  {invitation.created_at:%Y-%m-%d}", style="dim")
    return line


def _header(sent_count: int) -> str:
    return (
        f"[bold #f5c542]  INVITATIONS[/]  [dim]{sent_count} sent awaiting answer  "
        "a:Accept  d:Decline  j/k:Select[/dim]"
    )


class InvitationsPanel(VerticalScroll):
    """Bottom panel listing invitations still waiting for an answer."""

    DEFAULT_CSS = """
    InvitationsPanel {
        height: 30%;
        border-top: thick #f5c542;
        padding: 0 1;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._invitations: list[GroupInvitation] = []
        self._cursor = 0

    def compose(self) -> ComposeResult:
        yield Static(_header(0), id="invitations-header")
        yield Static("[dim]Checking invitations...[/dim]", id="invitations-content")

    @property
    def selected(self) -> GroupInvitation | None:
        if not self._invitations:
            return None
        return self._invitations[min(self._cursor, len(self._invitations) - 1)]

    def move(self, step: int) -> None:
        if self._invitations:
            self._cursor = (self._cursor + step) % len(self._invitations)
            self._render()

    def update_invitations(self, invitations: list[GroupInvitation]) -> None:
        self._invitations = invitations
        self._cursor = min(self._cursor, max(len(invitations) - 1, 0))
        self._render()

    def update_sent(self, sent: list[GroupInvitation]) -> None:
        waiting = sum(1 for inv in sent if inv.status == "pending")
        try:
            self.query_one("#invitations-header", Static).update(_header(waiting))
        except Exception:
            return

    def _render(self) -> None:
        try:
            content = self.query_one("#invitations-content", Static)
        except Exception:
            return
        if not self._invitations:
            content.update("[dim]  No pending invitations[/dim]")
            return
        content.update(RenderGroup(*[
            _build_row(inv, i == self._cursor) for i, inv in enumerate(self._invitations)
        ]))
