"""tagvault CLI - Transparent encryption for #private notes."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..config.settings import get_settings
from ..utils.logging import ProgressLogger, setup_logging
from ..vault import (
    FileSystemStorage,
    UnlockResult,
    VaultConfig,
    VaultConfigError,
    VaultManager,
    is_encrypted,
    open_vault,
)
from ..vault.vault_manager import NEW_PASSWORD_MESSAGE

app = typer.Typer(
    name="tagvault",
    help="Keep #private notes encrypted at rest and readable in use.",
    no_args_is_help=True,
)

console = Console()


def make_prompt(confirm_new: bool = False):
    """
    Build a terminal password prompt.

    Args:
        confirm_new: Ask twice when a new password is requested

    Returns:
        Callable(message) -> password or None when cancelled
    """

    def prompt(message: str) -> Optional[str]:
        console.print(f"[bold]{message}[/bold]")
        confirm = confirm_new and message == NEW_PASSWORD_MESSAGE
        try:
            password = typer.prompt(
                "Password",
                hide_input=True,
                default="",
                show_default=False,
                confirmation_prompt=confirm,
            )
        except typer.Abort:
            return None
        return password or None

    return prompt


def _load_config(vault_dir: Path) -> VaultConfig:
    if not vault_dir.is_dir():
        console.print(f"[red]Error: Not a directory: {vault_dir}[/red]")
        raise typer.Exit(1)
    try:
        return VaultConfig.load(vault_dir)
    except VaultConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _open(vault_dir: Path, confirm_new: bool = False) -> VaultManager:
    config = _load_config(vault_dir)
    return open_vault(vault_dir, make_prompt(confirm_new), config)


def _unlock(vm: VaultManager, decrypt_in_place: bool, progress: Optional[ProgressLogger] = None) -> UnlockResult:
    result = vm.unlock(
        decrypt_in_place=decrypt_in_place,
        progress_callback=progress.update if progress else None,
    )
    if result.aborted:
        console.print("[red]Too many failed attempts. Vault stays locked.[/red]")
        raise typer.Exit(1)
    if result.cancelled:
        console.print("[yellow]No password entered. Vault stays locked.[/yellow]")
        raise typer.Exit(1)
    return result


def _print_errors(errors: list[str]) -> None:
    if not errors:
        return
    console.print(f"[yellow]Errors: {len(errors)}[/yellow]")
    for error in errors[:10]:
        console.print(f"  - {error}", markup=False)


@app.callback()
def main_options(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write logs to this file",
    ),
):
    """Keep #private notes encrypted at rest and readable in use."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level, log_file or settings.log_file)


@app.command()
def status(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
):
    """
    Show how many notes are encrypted. No password needed.
    """
    config = _load_config(vault_dir)
    storage = FileSystemStorage(vault_dir, config)

    encrypted = 0
    private_plain = 0
    unreadable = 0
    files = storage.list_text_files()

    for path in files:
        try:
            content = storage.read(path)
        except OSError:
            unreadable += 1
            continue
        if is_encrypted(content):
            encrypted += 1
        elif config.has_marker(content):
            private_plain += 1

    table = Table(title=f"Vault: {vault_dir}")
    table.add_column("Notes", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Text files", str(len(files)))
    table.add_row("Encrypted", str(encrypted))
    table.add_row(f"Plaintext {config.private_marker}", str(private_plain))
    if unreadable:
        table.add_row("Unreadable", str(unreadable))
    console.print(table)

    if private_plain:
        console.print(f"[yellow]{private_plain} private note(s) are not encrypted. Run 'tagvault lock'.[/yellow]")


@app.command()
def unlock(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
):
    """
    Unlock the vault and decrypt every encrypted note in place.
    """
    vm = _open(vault_dir)
    result = _unlock(vm, decrypt_in_place=True, progress=ProgressLogger("Unlock"))

    if result.first_time:
        console.print(
            f"No encrypted notes yet. Tag notes with {vm.config.private_marker} "
            "and run 'tagvault lock' to encrypt them."
        )
        return

    console.print(f"[green]Unlocked {result.files_decrypted} note(s).[/green]")
    _print_errors(result.errors)
    if result.errors:
        raise typer.Exit(1)


@app.command()
def lock(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
):
    """
    Encrypt every private note now and forget the password.
    """
    vm = _open(vault_dir)
    _unlock(vm, decrypt_in_place=False)

    stats = vm.lock(progress_callback=ProgressLogger("Lock").update)

    console.print(f"[green]Locked {stats['files_encrypted']} note(s).[/green]")
    _print_errors(stats["errors"])
    if stats["errors"]:
        raise typer.Exit(1)


@app.command("change-password")
def change_password(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
):
    """
    Re-encrypt every encrypted note under a new password.
    """
    vm = _open(vault_dir, confirm_new=True)
    _unlock(vm, decrypt_in_place=False)

    stats = vm.change_password(progress_callback=ProgressLogger("Password change").update)

    if stats["cancelled"]:
        console.print("[yellow]Password change cancelled. The old password still applies.[/yellow]")
        raise typer.Exit(1)

    console.print(f"[green]Re-encrypted {stats['files_rotated']} note(s) with new password.[/green]")
    _print_errors(stats["errors"])
    if vm.session.previous_password is not None:
        console.print("Some notes still use the old password. Run 'tagvault reconcile' to move them.")
    if stats["errors"]:
        raise typer.Exit(1)


@app.command()
def read(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
    path: str = typer.Argument(..., help="Note path relative to the vault"),
):
    """
    Print a note, decrypting it if needed.
    """
    vm = _open(vault_dir)
    _unlock(vm, decrypt_in_place=False)

    try:
        content = vm.storage.read(path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    typer.echo(content, nl=False)


@app.command()
def write(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
    path: str = typer.Argument(..., help="Note path relative to the vault"),
    input_file: Optional[Path] = typer.Option(
        None,
        "--input", "-i",
        help="Read content from this file instead of stdin",
    ),
):
    """
    Write a note; it is encrypted if it carries the private marker.
    """
    vm = _open(vault_dir)
    _unlock(vm, decrypt_in_place=False)

    if input_file is not None:
        content = input_file.read_text(encoding="utf-8")
    else:
        content = typer.get_text_stream("stdin").read()

    try:
        vm.storage.write(path, content)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    state = "encrypted" if vm.tracker.is_tracked(path) else "plaintext"
    console.print(f"Wrote {path} ({state}).")


@app.command()
def verify(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
):
    """
    Check that every encrypted note opens with the password.
    """
    vm = _open(vault_dir)
    _unlock(vm, decrypt_in_place=False)

    stats = vm.verify()

    console.print(f"Verified: {stats['files_verified']}")
    console.print(f"Failed: {stats['files_failed']}")
    _print_errors(stats["errors"])
    if stats["files_failed"]:
        raise typer.Exit(1)


@app.command()
def reconcile(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
):
    """
    Move notes left under a previous password to the current one.
    """
    vm = _open(vault_dir)
    _unlock(vm, decrypt_in_place=False)

    stats = vm.reconcile(progress_callback=ProgressLogger("Reconcile").update)

    if stats["cancelled"]:
        console.print("[yellow]No previous password entered.[/yellow]")
        raise typer.Exit(1)

    console.print(f"[green]Reconciled {stats['files_reconciled']} note(s).[/green]")
    console.print(f"Already current: {stats['files_current']}")
    _print_errors(stats["errors"])
    if stats["errors"]:
        raise typer.Exit(1)


@app.command()
def export(
    vault_dir: Path = typer.Argument(..., help="Notes directory"),
    output: Path = typer.Argument(..., help="Directory for the decrypted copy"),
):
    """
    Export a decrypted copy of the vault. The vault is left unchanged.
    """
    vm = _open(vault_dir)
    _unlock(vm, decrypt_in_place=False)

    stats = vm.export(output)

    console.print(f"Decrypted {stats['files_decrypted']} note(s)")
    console.print(f"Copied {stats['files_copied']} unencrypted note(s)")
    _print_errors(stats["errors"])
    if stats["errors"]:
        raise typer.Exit(1)


@app.command()
def version():
    """Show version information."""
    console.print(f"tagvault v{__version__}")
    console.print("Transparent encryption for #private notes")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
