"""
Chatflow session core - developer command line.

Inspects and drives the session core against the configured backend and
session cache: show the cached session, sign in or out, reconcile usage
recorded while offline, and count a message against the quota.
"""

import argparse
import asyncio
import sys
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from core.container import SessionContainer, build_session_core
from core.display import console, print_result, print_session
from shared.models import Identity
from modules.session.exceptions import NoActiveSessionError
from modules.session.models import AuthEvent


async def show_status(container: SessionContainer) -> int:
    """Print the cached session without contacting the backend."""
    engine = container.engine
    session = await engine.restore()
    status = container.quota.status(session) if session else None
    print_session(session, engine.state, status)
    return 0


async def login(container: SessionContainer, email: str, identity_id: Optional[str], name: str) -> int:
    """Sign in with an external identity, or a local one when no id is given."""
    engine = container.engine
    if identity_id:
        try:
            identity = Identity(id=identity_id, email=email, display_name=name)
        except PydanticValidationError as e:
            console.print(f"[red]Error:[/red] invalid identity ({e.error_count()} error(s))")
            return 2
        result = await engine.on_auth_event(AuthEvent.authenticated(identity))
    else:
        result = await engine.sign_in_local(email)

    print_result("Sign-in", result)
    if result.success:
        print_session(result.session, engine.state, container.quota.status(result.session))
    return 0 if result.success else 1


async def logout(container: SessionContainer) -> int:
    result = await container.engine.logout()
    print_result("Sign-out", result)
    return 0 if result.success else 1


async def sync(container: SessionContainer) -> int:
    """Restore the cached session and flush its pending usage."""
    engine = container.engine
    if await engine.restore() is None:
        console.print("[dim]Nothing to reconcile.[/dim]")
        return 0

    session = await engine.reconcile_pending()
    print_session(session, engine.state, container.quota.status(session))
    return 0 if not session.degraded else 1


async def send(container: SessionContainer) -> int:
    """Count one message, if the quota allows it."""
    engine = container.engine
    await engine.restore()
    try:
        status = await container.quota.check()
        if status.exceeded:
            console.print(
                f"[red]Quota exceeded:[/red] {status.used:,}/{status.limit:,} "
                f"on the {status.plan.value} plan"
            )
            return 1
        session = await container.quota.record_usage()
    except NoActiveSessionError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return 1

    print_session(session, engine.state, container.quota.status(session))
    return 0


async def run(args: argparse.Namespace, container: SessionContainer) -> int:
    """Dispatch a parsed command."""
    try:
        if args.command == "status":
            return await show_status(container)
        if args.command == "login":
            return await login(container, args.email, args.id, args.name)
        if args.command == "logout":
            return await logout(container)
        if args.command == "sync":
            return await sync(container)
        if args.command == "send":
            return await send(container)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await container.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and drive the Chatflow session core"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show the cached session and quota")

    login_parser = sub.add_parser("login", help="Sign in and reconcile with the backend")
    login_parser.add_argument("email", help="Email address")
    login_parser.add_argument(
        "--id",
        help="External identity ID (omit for an email-only local login)",
    )
    login_parser.add_argument("--name", default="", help="Display name")

    sub.add_parser("logout", help="Sign out and clear the session cache")
    sub.add_parser("sync", help="Flush usage recorded while the backend was unreachable")
    sub.add_parser("send", help="Count one message against the quota")
    return parser


def cli(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    container = build_session_core()
    return asyncio.run(run(args, container))


if __name__ == "__main__":
    sys.exit(cli())
