"""
cli/display.py

All Rich-based terminal rendering for the Wolkenlauf CLI.
Centralising this here means:
  - main.py never imports Rich directly
  - The API layer skips this entirely
  - Tests can mock this module without touching provider logic

Functions:
  print_banner()          — Wolkenlauf header
  print_vm_panel()        — freshly created VM, including the SSH password
  print_status_panel()    — VM status panel
  make_log_handler()      — Returns a log callable with Rich formatting
  print_success()         — Styled success message
  print_error()           — Styled error message
"""

from typing import Callable

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

console = Console()

# Canonical status → (icon, style)
_STATUS_STYLES = {
    "pending":    ("🟡", "bold yellow"),
    "running":    ("🟢", "bold green"),
    "stopping":   ("🟠", "bold yellow"),
    "stopped":    ("⚪", "bold white"),
    "terminated": ("🔴", "bold red"),
}


def _status_style(status: str):
    return _STATUS_STYLES.get(status, ("🟡", "bold yellow"))


def print_banner() -> None:
    """Print the Wolkenlauf banner."""
    banner = Text()
    banner.append("  ☁  Wolkenlauf", style="bold cyan")
    banner.append("  |  ", style="dim")
    banner.append("VM Provisioner · AWS (GPU) · Hetzner (CPU)", style="italic white")
    console.print(Panel(banner, border_style="cyan", padding=(0, 2)))


def print_vm_panel(vm) -> None:
    """
    Render a newly created VM.
    vm: VMResponse dataclass from providers/base.py
    """
    icon, style = _status_style(vm.status.value)

    text = Text()
    text.append(f"  {icon} Status     ", style="dim")
    text.append(vm.status.value.upper(), style=style)

    text.append("\n  🆔 ID         ", style="dim")
    text.append(vm.id, style="bold white")

    text.append("\n  📍 Provider   ", style="dim")
    text.append(vm.provider.upper(), style="bold cyan")

    text.append("\n  💻 Type       ", style="dim")
    text.append(vm.instance_type, style="white")

    text.append("\n  📌 Region     ", style="dim")
    text.append(vm.region, style="white")

    text.append("\n  🖼  Image      ", style="dim")
    text.append(vm.image, style="white")

    text.append("\n  🌐 Public IP  ", style="dim")
    text.append(vm.public_ip or "pending assignment", style="bold white")

    text.append("\n\n  🔑 SSH        ", style="dim")
    text.append(f"{vm.ssh_username} / {vm.ssh_password}", style="bold yellow")
    text.append("\n  Shown once. Nothing is stored server-side.", style="dim")

    if vm.public_ip:
        text.append("\n\n  🔗 ", style="dim")
        text.append(f"ssh {vm.ssh_username}@{vm.public_ip}", style="bold underline cyan")

    console.print()
    console.print(Panel(
        text,
        title=f"[bold green]VM Created — {vm.name}[/bold green]",
        border_style="green",
        padding=(0, 2),
    ))


def print_status_panel(vm_status, provider: str) -> None:
    """
    Render a VM status panel with live state indicator.
    vm_status: VMStatus dataclass from providers/base.py
    """
    icon, style = _status_style(vm_status.status.value)
    is_running = vm_status.status.value == "running"

    text = Text()
    text.append(f"  {icon} State      ", style="dim")
    text.append(vm_status.status.value.upper(), style=style)

    text.append("\n  📍 Provider   ", style="dim")
    text.append(provider.upper(), style="bold cyan")

    text.append("\n  🌐 Public IP  ", style="dim")
    text.append(vm_status.public_ip or "N/A", style="bold white")

    text.append("\n  🕒 Checked    ", style="dim")
    text.append(vm_status.updated_at.strftime("%Y-%m-%d %H:%M:%S UTC"), style="white")

    console.print()
    console.print(Panel(
        text,
        title=f"[{style}]VM Status — {vm_status.id}[/{style}]",
        border_style="green" if is_running else "yellow",
        padding=(0, 2),
    ))


def make_log_handler(prefix: str = "") -> Callable[[str], None]:
    """
    Returns a log callable that formats output with Rich.
    Used as the `log=` argument passed to provider methods.

    Detects line content to apply appropriate styling:
      ✅  → green
      ❌  → red
      ⚠️  → yellow
      🔥  → bold red
      default → white
    """
    def _log(message: str) -> None:
        msg = f"{prefix}{message}"
        if msg.startswith("✅"):
            console.print(f"  {msg}", style="green")
        elif msg.startswith("❌"):
            console.print(f"  {msg}", style="bold red")
        elif msg.startswith("⚠"):
            console.print(f"  {msg}", style="yellow")
        elif msg.startswith("🔥"):
            console.print(f"  {msg}", style="bold red")
        elif msg.startswith(("🚀", "☁", "🔒", "📍", "🖼")):
            console.print(f"  {msg}", style="cyan")
        else:
            console.print(f"  {msg}", style="white")

    return _log


def print_success(message: str) -> None:
    console.print(Panel(f"  {message}", border_style="green", padding=(0, 1)))


def print_error(message: str) -> None:
    console.print(Panel(f"  {message}", border_style="red", title="[red]Error[/red]", padding=(0, 1)))
