"""Slash command for peer-to-peer vault synchronization."""

from __future__ import annotations

import logging
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from ..controller import SyncController
from ..errors import SyncError
from ..slash_commands import (
    SlashCommand,
    SlashCommandContext,
    render_rich,
)
from ..sync import SyncDecision

logger = logging.getLogger("vaultsync.commands.sync")

MAX_LISTED = 10


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    """Manage vault synchronization."""

    controller: Optional[SyncController] = context.metadata.get("controller")
    if controller is None:
        return "[sync] Sync controller is not initialized."

    if not args:
        return _show_status(controller)

    subcommand = args[0].lower()

    try:
        if subcommand == "start":
            return _start(controller)
        elif subcommand == "connect":
            return _connect(controller, args[1] if len(args) > 1 else None)
        elif subcommand == "stop":
            controller.stop_listening()
            return "[sync] Listener stopped."
        elif subcommand == "status":
            return _show_status(controller)
        elif subcommand == "diff":
            if len(args) < 2:
                return "[sync] Usage: /sync diff <code>"
            return _show_diff(controller, args[1])
        elif subcommand == "reset":
            controller.workspace.baseline.clear()
            return "[sync] Baseline cleared; the next sync treats every file as new."
        elif subcommand == "help":
            return _show_help()
        else:
            return f"[sync] Unknown subcommand '{subcommand}'. Use /sync help for usage."
    except SyncError as e:
        return f"[sync] {e}"
    except Exception as e:
        logger.exception("/sync %s failed", subcommand)
        return f"[sync] Error: {e}"


def _start(controller: SyncController) -> str:
    code = controller.start_listening()
    return (
        f"[sync] Listening on port {controller.settings.port} for "
        f"{controller.settings.session_timeout:g}s.\n"
        f"  Pairing code: {code}\n"
        "  Enter it on the other device with /sync connect <code>."
    )


def _connect(controller: SyncController, code: Optional[str]) -> str:
    result = controller.connect(code)
    if not result.success:
        return f"[sync] {result.message}"

    lines = [f"[sync] Sync completed: {result.message}"]
    if result.pulled:
        lines.append(f"  Pulled: {len(result.pulled)} files")
    if result.pushed:
        lines.append(f"  Pushed: {len(result.pushed)} files")
    for conflict in result.conflicts[:MAX_LISTED]:
        lines.append(f"  Conflict: {conflict.path} -> {conflict.resolution.value}")
    for backup in result.backups[:MAX_LISTED]:
        lines.append(f"  Backup: {backup}")
    for error in result.errors[:MAX_LISTED]:
        lines.append(f"  Error: {error}")
    if len(result.errors) > MAX_LISTED:
        lines.append(f"  ... and {len(result.errors) - MAX_LISTED} more errors")
    return "\n".join(lines)


def _show_status(controller: SyncController) -> str:
    """Show sync status."""
    status = controller.status()

    def _render(console: Console) -> None:
        table = Table(title="Vault Sync Status", show_header=False)
        table.add_column("Property", style="bold")
        table.add_column("Value")

        table.add_row("Vault", status["vault_dir"])
        table.add_row("Listening", str(status["listening"]))
        if status["listening"]:
            table.add_row("Pairing Code", status["pairing_code"] or "?")
            remaining = (status["service"] or {}).get("remaining")
            if remaining is not None:
                table.add_row("Closes In", f"{remaining:.0f}s")
        table.add_row("Port", str(status["port"]))
        table.add_row("Conflict Strategy", status["conflict_strategy"])
        table.add_row("Baseline Files", str(status["baseline_files"]))
        table.add_row("Last Sync", status["last_sync"] or "(never)")

        console.print(table)

    return render_rich(_render)


def _show_diff(controller: SyncController, code: str) -> str:
    """Show what a sync with the peer would do, without applying it."""
    plan = controller.preview(code)

    if not plan.has_changes:
        return "[sync] Already in sync."

    def _render(console: Console) -> None:
        console.print("[bold]Sync preview:[/bold]\n")
        console.print(f"Summary: {plan.summary()}\n")

        sections = [
            ("[blue]To Pull:[/blue]", plan.pulls, "-"),
            ("[green]To Push:[/green]", plan.pushes, "+"),
            ("[yellow]Unresolved:[/yellow]", plan.unresolved, "!"),
        ]
        for title, paths, marker in sections:
            if not paths:
                continue
            console.print(title)
            for path in paths[:MAX_LISTED]:
                console.print(f"  {marker} {path}")
            if len(paths) > MAX_LISTED:
                console.print(f"  ... and {len(paths) - MAX_LISTED} more")
            console.print()

        if plan.conflicts:
            console.print("[yellow]Conflicts:[/yellow]")
            for conflict in plan.conflicts[:MAX_LISTED]:
                verb = "pull" if conflict.resolution == SyncDecision.PULL else conflict.resolution.value
                console.print(f"  ! {conflict.path} (resolves as {verb})")

    return render_rich(_render)


def _show_help() -> str:
    """Show sync command help."""
    return """[sync] Usage:
  /sync                 Show sync status
  /sync start           Listen for a peer and show the pairing code
  /sync connect [code]  Sync with the peer showing <code> (prompts if omitted)
  /sync stop            Stop listening
  /sync status          Show sync status
  /sync diff <code>     Preview what a sync with the peer would change
  /sync reset           Forget the last-sync baseline
  /sync help            Show this help

Configuration (in <vault>/.vaultsync/config/*.yml):
  sync:
    port: 56780
    session_timeout: 30
    conflict_strategy: remote_wins  # remote_wins, local_wins, backup_both, manual
    exclude_patterns:
      - "*.tmp"
  network:
    preferred_interfaces: [eth0]"""


COMMAND = SlashCommand(
    name="sync",
    description="Sync with a peer on the LAN. Usage: /sync [start|connect <code>|stop|status|diff|reset]",
    handler=_handler,
)
