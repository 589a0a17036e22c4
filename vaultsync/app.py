"""
Interactive shell for vaultsync.

Runs a small slash-command loop bound to one vault. ``python -m vaultsync serve``
and ``python -m vaultsync connect CODE`` run a single sync role and exit.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
try:
    import readline
except ImportError:  # pragma: no cover
    readline = None
from shutil import get_terminal_size
from typing import List, Optional, Sequence

from .commands import COMMANDS
from .configuration import (
    ConfigurationBundle,
    Diagnostic,
    load_runtime_configuration,
    resolve_vault_dir,
)
from .controller import SyncController
from .errors import SyncError
from .logging_utils import setup_logging
from .notify import ConsoleNotifier
from .slash_commands import CommandRouter
from .sync import SyncSettings

logger = logging.getLogger("vaultsync")
TRUE_STRINGS = {"1", "true", "yes", "on"}
FALSE_STRINGS = {"0", "false", "no", "off"}


def _log_path_within_vault(log_path: Path, vault_dir: Path) -> bool:
    try:
        log_path.relative_to(vault_dir)
        return True
    except ValueError:
        return False


def print_banner(vault_dir: Path) -> None:
    """Print the header so users know which vault is being synced."""

    terminal_width = get_terminal_size(fallback=(80, 24)).columns

    def _wide_banner() -> str:
        inner_width = 78
        title = "VAULTSYNC"
        slogan = "same notes, every device"

        def _line(content: str = "") -> str:
            return f"║{content.center(inner_width)}║"

        lines = [
            "╔" + "═" * inner_width + "╗",
            _line(),
            _line(title),
            _line(slogan),
            _line(),
            "╚" + "═" * inner_width + "╝",
        ]
        return "\n".join(lines)

    banner = _wide_banner() if terminal_width >= 80 else "vaultsync"

    print(banner)
    print(f"Vault: {vault_dir}")
    print()


def _parse_env_flag(value: str, *, default: bool = True) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_STRINGS:
        return True
    if normalized in FALSE_STRINGS:
        return False
    return default


def _resolve_ui_verbose(config_bundle: ConfigurationBundle) -> bool:
    """Resolve whether the shell prints the banner or a one-line header."""

    env_value = os.environ.get("VAULTSYNC_UI_VERBOSE")
    if env_value is not None:
        return _parse_env_flag(env_value)

    verbose_setting = config_bundle.section("ui").get("verbose")
    if verbose_setting is None:
        return True
    return bool(verbose_setting)


def _resolve_log_level(config_bundle: ConfigurationBundle) -> str:
    configured_level = config_bundle.section("logging").get("level")
    env_level = os.environ.get("VAULTSYNC_LOG_LEVEL")
    return (env_level or configured_level or "WARNING").upper()


def build_router(config: ConfigurationBundle, controller: Optional[SyncController] = None) -> CommandRouter:
    """Register every slash command against one controller."""

    router = CommandRouter(config, metadata={"controller": controller})
    for command in COMMANDS:
        router.register(command)
    return router


def emit_configuration_report(config: ConfigurationBundle) -> None:
    """Print diagnostics so users can correct issues quickly."""

    if not config.diagnostics:
        print(
            f"[config] Loaded {len(config.files_loaded)} file(s) "
            f"from repo and vault config directories."
        )
        return

    print("[config] Diagnostics:")
    for diag in config.diagnostics:
        prefix = diag.source or config.vault_dir
        print(f"  - ({diag.level.upper()}) {diag.message} [{prefix}]")


def configure_autocomplete(router: CommandRouter) -> None:
    """Enable readline tab completion for slash commands."""

    if readline is None:
        return

    commands = list(router.command_names)

    def completer(text: str, state: int):
        buffer = readline.get_line_buffer()
        if not buffer.startswith("/"):
            return None
        fragment = text[1:] if text.startswith("/") else text
        matches = [f"/{cmd}" for cmd in commands if cmd.startswith(fragment)]
        if state < len(matches):
            return matches[state]
        return None

    readline.set_completer(completer)
    readline.parse_and_bind("tab: complete")
    readline.set_completer_delims(" \t")


def execute_cli_command(
    command_line: str,
    router: CommandRouter,
    *,
    suppress_output: bool = False,
) -> str:
    """Run one slash command line (without the leading slash)."""

    stripped = command_line.strip()
    if not stripped:
        return ""

    parts = stripped.split()
    command, args = parts[0], parts[1:]
    result = router.handle(command, args)
    if not suppress_output:
        print(result)
    logger.info("Executed CLI command: %s", stripped)
    return result


def bootstrap(vault_dir: Optional[Path] = None) -> tuple[ConfigurationBundle, SyncController]:
    """Load configuration, start logging, and build the controller."""

    config_bundle = load_runtime_configuration(vault_dir or resolve_vault_dir())
    logging_cfg = config_bundle.section("logging")
    log_path = setup_logging(
        config_bundle.vault_dir,
        _resolve_log_level(config_bundle),
        structured=bool(logging_cfg.get("structured", True)),
    )
    config_bundle.log_path = log_path
    if not _log_path_within_vault(log_path, config_bundle.vault_dir):
        config_bundle.diagnostics.append(
            Diagnostic(
                level="warning",
                message=(
                    "Vault log directory is not writable; "
                    f"logging to fallback path '{log_path}'."
                ),
                source=log_path,
            )
        )
    logger.info("Logging initialized at %s", log_path)

    settings = SyncSettings.from_config(config_bundle.merged)
    controller = SyncController(
        config_bundle.vault_dir,
        settings,
        notifier=ConsoleNotifier(),
    )
    return config_bundle, controller


def run_serve(controller: SyncController) -> int:
    """Listen once and block until the session closes."""

    try:
        code = controller.start_listening()
    except SyncError as e:
        print(f"[sync] {e}")
        return 1
    print(f"[sync] Pairing code: {code}")
    try:
        while controller.service is not None:
            time.sleep(0.2)
    except KeyboardInterrupt:
        controller.shutdown()
    return 0


def run_connect(controller: SyncController, code: str) -> int:
    """Sync once with the peer showing ``code``."""

    result = controller.connect(code)
    for error in result.errors:
        print(f"  Error: {error}")
    return 0 if result.success else 1


def run_shell(config_bundle: ConfigurationBundle, controller: SyncController) -> int:
    ui_verbose = _resolve_ui_verbose(config_bundle)
    if ui_verbose:
        print_banner(config_bundle.vault_dir)
        emit_configuration_report(config_bundle)
    else:
        print(f"[vaultsync] {config_bundle.vault_dir} ready (quiet mode)")
        print()

    router = build_router(config_bundle, controller)
    configure_autocomplete(router)

    while True:
        try:
            raw_line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print("\n[Exiting vaultsync]")
            break

        line = raw_line.strip()

        if line.lower() in {"quit", "exit"}:
            print("[Goodbye]")
            break

        if not line:
            continue

        if line.startswith("/"):
            command_line = line[1:]
            if command_line.lower() in {"quit", "exit"}:
                print("[Goodbye]")
                break
            execute_cli_command(command_line, router)
            continue

        print("[vaultsync] Commands start with '/'. Try /help.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for `python -m vaultsync`."""

    args: List[str] = list(sys.argv[1:] if argv is None else argv)
    config_bundle, controller = bootstrap()

    try:
        if not args:
            return run_shell(config_bundle, controller)
        if args[0] == "serve":
            return run_serve(controller)
        if args[0] == "connect" and len(args) == 2:
            return run_connect(controller, args[1])
        print("Usage: python -m vaultsync [serve | connect CODE]")
        return 2
    finally:
        controller.shutdown()
