"""
main.py

Wolkenlauf command line: the same Dispatcher the API uses, driven from a
terminal with Rich output.

Usage:
    python main.py create my-box --provider hetzner --instance-type cpx21 --region fsn1 --user-id me
    python main.py status 12345678 --provider hetzner
    python main.py delete i-0abc123 --provider aws --yes
    python main.py check
"""

from typing import Optional

import typer

from cli.display import (
    console,
    make_log_handler,
    print_banner,
    print_error,
    print_status_panel,
    print_success,
    print_vm_panel,
)
from config import configure_logging, load_config
from providers import Dispatcher, ProviderError, VMRequest

app = typer.Typer(help="Provision VMs on AWS (GPU) and Hetzner (CPU).")


def _dispatcher() -> Dispatcher:
    config = load_config()
    configure_logging("WARNING")
    return Dispatcher.from_config(config)


def _fail(exc: Exception) -> None:
    print_error(str(exc))
    raise typer.Exit(code=1)


@app.command()
def create(
    name: str = typer.Argument(..., help="Name for the new VM."),
    provider: str = typer.Option(..., help="Cloud provider: aws | hetzner."),
    instance_type: str = typer.Option(..., help="e.g. t3.micro, g4dn.xlarge, cpx21."),
    region: str = typer.Option(..., help="AWS region, or Hetzner datacenter/location."),
    user_id: str = typer.Option(..., help="Owner identifier, written to instance tags."),
    spot: bool = typer.Option(False, "--spot", help="AWS only: request a one-time spot instance."),
    image: Optional[str] = typer.Option(None, help="AMI id (AWS) or image name (Hetzner)."),
):
    """Creates a VM and prints its one-time SSH credentials."""
    print_banner()
    dispatcher = _dispatcher()
    request = VMRequest(
        name=name,
        provider=provider,
        instance_type=instance_type,
        region=region,
        user_id=user_id,
        use_spot_instance=spot,
        image=image,
    )
    console.print(f"  🚀 Creating VM '{name}' ({provider} {instance_type} in {region})...", style="cyan")
    try:
        vm = dispatcher.create(request, log=make_log_handler())
    except ProviderError as exc:
        _fail(exc)
    print_vm_panel(vm)


@app.command()
def delete(
    vm_id: str = typer.Argument(..., help="Instance id (AWS) or server id (Hetzner)."),
    provider: str = typer.Option(..., help="Cloud provider: aws | hetzner."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """Deletes a VM and releases its public address."""
    if not yes:
        typer.secho(f"🔥 This will permanently delete {provider} VM '{vm_id}'.", fg=typer.colors.RED, bold=True)
        if not typer.confirm("Are you sure you want to proceed?"):
            raise typer.Abort()
    dispatcher = _dispatcher()
    try:
        dispatcher.delete(vm_id, provider, log=make_log_handler())
    except ProviderError as exc:
        _fail(exc)
    print_success(f"VM '{vm_id}' deleted.")


@app.command()
def status(
    vm_id: str = typer.Argument(..., help="Instance id (AWS) or server id (Hetzner)."),
    provider: str = typer.Option(..., help="Cloud provider: aws | hetzner."),
):
    """Shows the live, normalised status of a VM."""
    dispatcher = _dispatcher()
    try:
        vm_status = dispatcher.status(vm_id, provider)
    except ProviderError as exc:
        _fail(exc)
    print_status_panel(vm_status, provider)


@app.command()
def check(
    provider: Optional[str] = typer.Option(None, help="Only check this provider."),
):
    """Verifies that the configured credentials can reach each cloud API."""
    print_banner()
    dispatcher = _dispatcher()
    names = [provider] if provider else dispatcher.supported_providers()
    failed = False
    for name in names:
        try:
            summary = dispatcher.get(name).check_credentials()
        except ProviderError as exc:
            failed = True
            console.print(f"  ❌ {name}: {exc}", style="bold red")
        else:
            console.print(f"  ✅ {name}: {summary}", style="green")
    if failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
