"""UI utilities."""

from datetime import datetime
from typing import List, Sequence

import questionary
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import Config
from .models import AutofillFieldDescriptor, CredentialProfile, Secret, StoredSecret
from .passwordgen import PasswordStrength

console = Console()

select_style = questionary.Style(
    [
        ("qmark", "fg:#5f87af bold"),
        ("question", "bold"),
        ("pointer", "fg:#5f87af bold"),
        ("highlighted", "fg:#ffffff bg:#5f87af"),
        ("answer", "fg:#5f87af bold"),
    ]
)


def success(message: str) -> None:
    """Display success message."""
    console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """Display error message."""
    console.print(f"[red]✗[/red] {message}")


def info(message: str) -> None:
    """Display info message."""
    console.print(f"[blue]i[/blue] {message}")


def warning(message: str) -> None:
    """Display warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def confirm(message: str, default: bool = False) -> bool:
    """Ask for confirmation."""
    result = questionary.confirm(message, default=default, style=select_style).ask()
    return result if result is not None else False


def humanize_millis(millis: int) -> str:
    """Format epoch milliseconds as a local timestamp."""
    if not millis:
        return "—"
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


def strength_badge(strength: PasswordStrength) -> str:
    return f"[{strength.color}]{strength.label}[/{strength.color}]"


def show_password(
    password: str, copied: bool, title: str = "Password", requested: bool = False
) -> None:
    """Report a password: copied silently, or shown when asked or the clipboard fails."""
    if copied:
        success(f"{title} copied (clears in {Config.CLIPBOARD_TIMEOUT_SECONDS}s)")
        return
    if not requested:
        warning("Clipboard unavailable - password shown below:")
    console.print(
        Panel(f"[yellow bold]{password}[/yellow bold]", title=title, border_style="yellow", expand=False)
    )


def show_profiles_table(profiles: List[CredentialProfile], title: str = "Profiles") -> None:
    if not profiles:
        info("No profiles found")
        return

    table = Table(title=title, expand=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan bold")
    table.add_column("Website", style="blue")
    table.add_column("Username", style="green")
    table.add_column("Category", style="magenta")
    table.add_column("Length", justify="right")
    table.add_column("Updated", style="dim", justify="right")

    for p in profiles:
        table.add_row(
            p.id or "—",
            p.title,
            p.website or "—",
            p.username or "—",
            p.category,
            str(p.password_length),
            humanize_millis(p.updated_at),
        )

    console.print(table)
    console.print(f"[dim]Total: {len(profiles)} profiles[/dim]")


def show_secrets_table(secrets: Sequence[StoredSecret], title: str = "Secrets") -> None:
    if not secrets:
        info("No secrets found")
        return

    table = Table(title=title, expand=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan bold")
    table.add_column("Website", style="blue")
    table.add_column("Username", style="green")
    table.add_column("Category", style="magenta")
    table.add_column("Updated", style="dim", justify="right")

    for s in secrets:
        table.add_row(
            s.id or "—",
            s.title,
            s.website or "—",
            s.username or "—",
            s.category,
            humanize_millis(s.updated_at),
        )

    console.print(table)


def show_secret_panel(secret: Secret, strength: PasswordStrength, show: bool = False) -> None:
    content = [f"[green]Username:[/green] {secret.username or '—'}"]
    if show:
        content.append(f"[yellow]Password:[/yellow] {secret.password}")
    else:
        content.append(
            f"[yellow]Password:[/yellow] {'•' * 12}  "
            f"[dim]({strength_badge(strength)}, {len(secret.password)} chars)[/dim]"
        )
    if secret.website:
        content.append(f"[blue]Website:[/blue] {secret.website}")
    if secret.category != Config.DEFAULT_CATEGORY:
        content.append(f"[magenta]Category:[/magenta] {secret.category}")
    if secret.notes:
        content.append(f"\n[cyan]Notes:[/cyan]\n{secret.notes}")
    content.append(f"\n[dim]Updated {humanize_millis(secret.updated_at)}[/dim]")

    console.print(Panel("\n".join(content), title=secret.title, border_style="cyan", expand=False))


def show_fields_table(fields: List[AutofillFieldDescriptor]) -> None:
    if not fields:
        info("No autofill fields found")
        return
    table = Table(title="Detected fields")
    table.add_column("Field", style="cyan")
    table.add_column("Kind", style="green")
    for f in fields:
        table.add_row(f.field_id, f.kind.value)
    console.print(table)
