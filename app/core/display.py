"""Rich terminal rendering for the session CLI."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from modules.quota.models import QuotaStatus
from modules.session.models import AuthResult, Session, SessionState

console = Console()


STATE_STYLES = {
    SessionState.SIGNED_OUT: "dim",
    SessionState.AUTHENTICATING: "cyan",
    SessionState.RECONCILED: "green",
    SessionState.DEGRADED: "yellow",
}


def format_usage(used: int, limit: int) -> str:
    """Format usage as "used / limit", red once the limit is reached."""
    style = "red" if used >= limit else "green"
    return f"[{style}]{used:,}[/{style}] / {limit:,}"


def session_table(session: Session, status: Optional[QuotaStatus] = None) -> Table:
    """Build a two-column table describing a session and its quota."""
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("field", style="bold")
    table.add_column("value")

    identity = session.identity
    kind = "local" if identity.is_local else "external"
    table.add_row("Identity", f"{identity.id} [dim]({kind})[/dim]")
    table.add_row("Email", identity.email)
    if identity.display_name:
        table.add_row("Name", identity.display_name)
    table.add_row("Plan", session.profile.plan.value)

    limit = status.limit if status else session.profile.messages_limit
    table.add_row("Messages", format_usage(session.profile.messages_used, limit))
    if session.pending_delta:
        table.add_row("Pending", f"[yellow]{session.pending_delta}[/yellow] not yet confirmed")
    if status is not None:
        verdict = "[green]allowed[/green]" if status.allowed else "[red]quota exceeded[/red]"
        table.add_row("Next message", verdict)
    table.add_row("Last login", session.profile.last_login.strftime("%Y-%m-%d %H:%M UTC"))
    return table


def print_session(
    session: Optional[Session],
    state: SessionState,
    status: Optional[QuotaStatus] = None,
) -> None:
    """Print the session panel, or a hint when signed out."""
    if session is None:
        console.print("[dim]No session. Sign in with `login EMAIL`.[/dim]")
        return

    style = STATE_STYLES.get(state, "white")
    console.print(Panel(
        session_table(session, status),
        title=f"Session [{style}]{state.value}[/{style}]",
        border_style=style,
        expand=False,
    ))


def print_result(action: str, result: AuthResult) -> None:
    """Print the outcome of a sign-in or sign-out."""
    if result.success:
        console.print(f"[green]{action} succeeded[/green]")
    else:
        console.print(f"[red]{action} failed:[/red] {result.reason}")
