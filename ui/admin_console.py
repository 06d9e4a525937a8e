"""MemoryHaze operator console - terminal UI over the request queue and gift access"""

import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from memoryhaze.app import MemoryHazeApp
from memoryhaze.models.gift import GiftStatus
from memoryhaze.models.grant import effective_access, format_remaining
from memoryhaze.models.user import DirectoryUser
from memoryhaze.models.viewer import Gift
from memoryhaze.services.admin_queue import AdminQueue
from memoryhaze.utils.exceptions import AuthorizationError, MemoryHazeError

console = Console()

STATUS_STYLES = {
    GiftStatus.PENDING: "yellow",
    GiftStatus.VERIFIED: "blue",
    GiftStatus.COMPLETED: "green",
    GiftStatus.REJECTED: "red",
}


def requests_table(queue: AdminQueue) -> Table:
    """Current page of the queue"""
    title = f"Gift Requests - {queue.tab} (page {queue.page} of {max(queue.total_pages, 1)})"
    table = Table(title=title, box=box.ROUNDED, show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Recipient", style="cyan")
    table.add_column("Occasion")
    table.add_column("Date")
    table.add_column("Plan")
    table.add_column("Customer")
    table.add_column("Status")

    for index, request in enumerate(queue.requests, start=1):
        style = STATUS_STYLES.get(request.status, "white")
        status = f"[{style}]{request.status.value}[/{style}]"
        if queue.is_busy(request.id):
            status += " [dim](working)[/dim]"
        table.add_row(
            str(index),
            request.recipient_name,
            request.occasion.label,
            request.occasion_date.isoformat(),
            request.plan.value,
            request.user.email if request.user and request.user.email else "-",
            status,
        )
    return table


def stats_table(queue: AdminQueue) -> Table:
    table = Table(title="Queue", box=box.SIMPLE)
    for column in ("Pending", "Verified", "Completed", "Rejected", "Total"):
        table.add_column(column, justify="right")
    s = queue.stats
    table.add_row(str(s.pending), str(s.verified), str(s.completed), str(s.rejected), str(s.total))
    return table


def gifts_table(gifts: List[Gift], now: Optional[datetime] = None) -> Table:
    """A user's gifts with their access state"""
    table = Table(title="Gifts", box=box.ROUNDED, show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Template", style="cyan")
    table.add_column("Plan")
    table.add_column("Occasion")
    table.add_column("Access")
    table.add_column("Remaining")

    for index, gift in enumerate(gifts, start=1):
        grant = gift.grant
        if grant.permanently_deleted:
            access = "[red]Deleted[/red]"
        elif effective_access(grant, now):
            access = "[green]Enabled[/green]"
        elif grant.access_enabled:
            access = "[yellow]Expired[/yellow]"
        else:
            access = "[red]Disabled[/red]"
        table.add_row(
            str(index),
            gift.template_id,
            gift.plan or "-",
            gift.memory or "-",
            access,
            format_remaining(grant, now),
        )
    return table


def confirm_permanent_delete(gift: Gift) -> bool:
    console.print(
        Panel(
            "This will remove the uploaded assets and permanently revoke access. "
            "This action cannot be undone.",
            title=f"Delete gift {gift.id} permanently?",
            border_style="red",
        )
    )
    return Confirm.ask("Delete permanently?", default=False)


def _pick(items: list, label: str):
    if not items:
        console.print(f"[yellow]No {label} to choose from[/yellow]")
        return None
    raw = Prompt.ask(f"Select {label} number (blank to cancel)", default="")
    if not raw.strip():
        return None
    try:
        index = int(raw) - 1
    except ValueError:
        console.print("[red]Please enter a number[/red]")
        return None
    if not 0 <= index < len(items):
        console.print("[red]No such entry[/red]")
        return None
    return items[index]


class AdminConsole:
    """Operator console over MemoryHazeApp"""

    def __init__(self, app: Optional[MemoryHazeApp] = None):
        self.app = app
        self.running = True

    def initialize_app(self) -> bool:
        try:
            console.print("[bold blue]Initializing MemoryHaze...[/bold blue]")
            if self.app is None:
                self.app = MemoryHazeApp()
            self.app.initialize()
            console.print("[bold green]✓ Application initialized[/bold green]\n")
            return True
        except MemoryHazeError as e:
            console.print(f"[bold red]✗ Initialization failed: {e}[/bold red]\n")
            return False

    def ensure_admin(self) -> bool:
        if self.app.session.is_fresh() and self.app.session.is_admin:
            return True
        console.print("[yellow]Operator login required[/yellow]")
        email = Prompt.ask("Email")
        password = Prompt.ask("Password", password=True)
        with console.status("Signing in..."):
            self.app.auth.login(email, password)
        if not self.app.session.is_admin:
            console.print("[red]This account is not an operator[/red]")
            return False
        return True

    def show_menu(self) -> None:
        menu_text = """
[bold cyan]Main Menu:[/bold cyan]

[1] Request Queue - Verify, reject and complete orders
[2] Users & Gifts - Manage access to finished gifts
[3] Create Gift - Build a gift directly for a user
[L] Log out
[Q] Quit
"""
        console.print(Panel(menu_text, title="MemoryHaze", border_style="cyan"))
        choice = Prompt.ask("Select option", choices=["1", "2", "3", "l", "L", "q", "Q"], default="1")

        if choice == "1":
            self.queue_menu()
        elif choice == "2":
            self.users_menu()
        elif choice == "3":
            self.create_gift_menu()
        elif choice.lower() == "l":
            self.app.auth.logout()
            console.print("[yellow]Logged out[/yellow]")
        elif choice.lower() == "q":
            console.print("[yellow]Goodbye![/yellow]")
            self.running = False

    def queue_menu(self) -> None:
        queue = self.app.queue
        with console.status("Loading requests..."):
            queue.refresh()
        while True:
            console.print(stats_table(queue))
            console.print(requests_table(queue))
            console.print("[T]ab | [N]ext | [P]rev | [V]erify | [R]eject | [C]omplete | [B]ack")
            choice = Prompt.ask("Select option", default="b").lower()
            try:
                if choice == "t":
                    tab = Prompt.ask("Tab", choices=["all", "pending", "verified", "completed", "rejected"], default="all")
                    queue.select_tab(tab)
                elif choice == "n":
                    queue.next_page()
                elif choice == "p":
                    queue.previous_page()
                elif choice == "v":
                    request = _pick(queue.requests, "request")
                    if request:
                        queue.verify(request)
                        console.print("[green]Request verified[/green]")
                elif choice == "r":
                    request = _pick(queue.requests, "request")
                    if request:
                        reason = Prompt.ask("Reason (optional)", default="")
                        queue.reject(request, reason)
                        console.print("[green]Request rejected; photos queued for deletion[/green]")
                elif choice == "c":
                    request = _pick(queue.requests, "request")
                    if request:
                        audio = Path(Prompt.ask("Path to audio file"))
                        lyrics_path = Prompt.ask("Path to lyrics text file")
                        lyrics = Path(lyrics_path).read_text(encoding="utf-8")
                        with console.status("Uploading audio..."):
                            queue.complete(request, audio, lyrics)
                        console.print("[green]Gift completed; the customer will be notified[/green]")
                elif choice == "b":
                    return
            except (MemoryHazeError, OSError) as e:
                console.print(f"[red]{e}[/red]")

    def choose_user(self) -> Optional[DirectoryUser]:
        query = Prompt.ask("Search users by email", default="")
        page = self.app.users.search(query)
        table = Table(title=f"Users ({page.total})", box=box.ROUNDED)
        table.add_column("#", style="dim", width=3)
        table.add_column("User ID", style="cyan")
        table.add_column("Email")
        for index, user in enumerate(page.users, start=1):
            table.add_row(str(index), user.user_id or "-", user.email)
        console.print(table)
        return _pick(page.users, "user")

    def users_menu(self) -> None:
        try:
            user = self.choose_user()
        except MemoryHazeError as e:
            console.print(f"[red]{e}[/red]")
            return
        if user is None:
            return
        access = self.app.access
        while True:
            try:
                gifts = access.list_user_gifts(user.id)
            except MemoryHazeError as e:
                console.print(f"[red]{e}[/red]")
                return
            console.print(gifts_table(gifts))
            console.print("[E]nable | [D]isable | [X] Delete permanently | [B]ack")
            choice = Prompt.ask("Select option", default="b").lower()
            try:
                if choice in ("e", "d"):
                    gift = _pick(gifts, "gift")
                    if gift:
                        enabled = choice == "e"
                        prompt = "Grant access? This starts a fresh window." if enabled else "Revoke access?"
                        if Confirm.ask(prompt, default=True):
                            access.set_access(gift, enabled)
                elif choice == "x":
                    gift = _pick(gifts, "gift")
                    if gift:
                        access.permanently_delete(gift, confirm_permanent_delete)
                elif choice == "b":
                    return
            except MemoryHazeError as e:
                console.print(f"[red]{e}[/red]")

    def create_gift_menu(self) -> None:
        try:
            user = self.choose_user()
        except MemoryHazeError as e:
            console.print(f"[red]{e}[/red]")
            return
        if user is None:
            return

        occasion = Prompt.ask("Occasion", choices=["birthday", "anniversary", "valentines"])
        plan = Prompt.ask("Plan", choices=["momentum", "everlasting"], default="momentum")
        template = Prompt.ask("Template (blank to derive from occasion)", default="")
        draft = self.app.new_admin_gift(user, occasion=occasion, plan=plan, template_id=template or None)
        draft.scenarios = [Prompt.ask(f"Scenario {n}", default="") for n in range(1, 4)]
        draft.lyrics = Prompt.ask("Lyrics", default="")
        draft.message = Prompt.ask("Message", default="")

        photos = Prompt.ask("Photo paths (comma-separated)", default="")
        audio = Prompt.ask("Audio path (optional)", default="")
        try:
            draft.add_photos([Path(p.strip()) for p in photos.split(",") if p.strip()])
            if audio.strip():
                draft.set_audio(Path(audio.strip()))
            with console.status("Uploading and saving gift..."):
                result = self.app.builder.create(draft)
        except MemoryHazeError as e:
            console.print(f"[red]Failed to create gift: {e}[/red]")
            return

        if result.partial:
            console.print(f"[yellow]Gift created with some upload failures: {result.summary()}[/yellow]")
        else:
            console.print(f"[green]Gift created successfully! {result.summary()}[/green]")


def main():
    """Main entry point for the operator console"""
    admin_console = AdminConsole()
    if not admin_console.initialize_app():
        sys.exit(1)

    try:
        while admin_console.running:
            try:
                if not admin_console.ensure_admin():
                    continue
            except AuthorizationError as e:
                console.print(f"[red]{e}[/red]")
                continue
            except MemoryHazeError as e:
                console.print(f"[red]Login failed: {e}[/red]")
                continue
            admin_console.show_menu()
    except KeyboardInterrupt:
        console.print("\n[yellow]Exiting console...[/yellow]")


if __name__ == "__main__":
    main()
