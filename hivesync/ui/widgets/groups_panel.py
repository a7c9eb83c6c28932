"""Groups list: name, members and items per group."""

from __future__ import annotations

from rich.console import Group as RenderGroup
from rich.rule import Rule
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import ScrollableContainer, Vertical
from textual.widgets import Static

from hivesync.api.models import Group
from hivesync.ui.widgets.constants import trunc


def _members(group: Group) -> str:
    if group.member_limit:
        return f"{group.member_count}/{group.member_limit}"
    return str(group.member_count)


def _build_header() -> Text:
    h = Text()
    h.append("GROUP".ljust(28), style="bold #f5c542")
    h.append("  ")
    h.append("MEMBERS".rjust(8), style="bold #f5c542")
    h.append("  ")
    h.append("ITEMS".rjust(6), style="bold #f5c542")
    return h


def _build_row(group: Group) -> Text:
    line = Text()
    line.append(trunc(group.name, 28).ljust(28), style="bold")
    line.append("  ")
    line.append(_members(group).rjust(8), style="cyan")
    line.append("  ")
    line.append(str(group.item_count).rjust(6), style="white")
    if group.description:
        line.append("  ")
        line.append(trunc(group.description, 40), style="dim")
    return line


class GroupsPanel(Vertical):
    """Scrollable list of the user's groups."""

    DEFAULT_CSS = """
    GroupsPanel {
        height: 1fr;
        padding: 0 1;
    }
    GroupsPanel #groups-scroll {
        height: 1fr;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static(_build_header(), id="groups-header")
        with ScrollableContainer(id="groups-scroll"):
            yield Static("[dim]Waiting for data...[/dim]", id="groups-content")

    def update_groups(self, groups: list[Group]) -> None:
        try:
            content = self.query_one("#groups-content", Static)
        except Exception:
            return
        if not groups:
            content.update("[dim]No groups yet[/dim]")
            return
        content.update(RenderGroup(Rule(style="#f5c542"), *[_build_row(g) for g in groups]))
