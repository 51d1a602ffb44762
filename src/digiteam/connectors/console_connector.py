# src/digiteam/connectors/console_connector.py

from __future__ import annotations

import asyncio
import getpass
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import PortalError
from ..core.state import AppState
from ..dashboards.router import Router
from ..users.user_models import Role

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """Prints transient notices (failed writes, permission errors) inline."""

    def notify(self, text: str) -> None:
        _print_ts(f"[!] {text}")


async def _ainput(prompt: str) -> str:
    # input() blocks; run it off the loop so subscriptions keep delivering.
    return (await asyncio.to_thread(input, prompt)).strip()


async def _apassword(prompt: str = "Password: ") -> str:
    return await asyncio.to_thread(getpass.getpass, prompt)


async def _sign_in(state: AppState) -> None:
    email = await _ainput("Email: ")
    password = await _apassword()
    await state.session.sign_in(email, password)


async def _register(state: AppState) -> None:
    name = await _ainput("Name: ")
    email = await _ainput("Email: ")
    password = await _apassword()
    raw_role = (await _ainput("Role [member/faculty]: ")).lower() or "member"
    role = Role.from_db(raw_role)
    if role is None:
        raise PortalError(f"Unknown role: {raw_role}.")
    await state.session.register(name=name, email=email, password=password, role=role)


async def _entry(state: AppState) -> bool:
    """Entry surface. Returns False when the user wants to quit."""
    while state.session.session is None:
        choice = (await _ainput("[l]ogin, [r]egister or [q]uit: ")).lower()
        if choice in ("q", "quit", "/exit", "/quit"):
            return False
        try:
            if choice in ("l", "login"):
                await _sign_in(state)
            elif choice in ("r", "register"):
                await _register(state)
            else:
                continue
        except PortalError as e:
            logger.info("Entry failed: %s", e)
            _print_ts(f"[!] {e}")
    s = state.session.session
    if s is not None:
        _print_ts(f"Signed in as {s.name} ({s.role.value}). Use /help for commands.")
    return True


async def run_console(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Digital Team Portal. Use /exit to quit.\n")

    router = Router(state)

    def emit(text: str) -> None:
        _print_ts(text)

    try:
        while True:
            try:
                if state.session.session is None:
                    if not await _entry(state):
                        break
                try:
                    dashboard = await router.sync()
                except PortalError as e:
                    logger.warning("Dashboard mount failed: %s", e)
                    dashboard = None
                if dashboard is None and state.session.session is not None:
                    _print_ts("[!] Could not open the dashboard.")

                user_input = await _ainput(">>> ")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                reply = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is None:
                reply = "Commands start with '/'. Use /help to list them."
            _print_ts(reply)
    finally:
        router.shutdown()
        logger.info("Console connector finished.")
