"""userhub CLI — administer user accounts straight against the database.

Usage:
    userhub init-db                                      # Create the users table
    userhub add-user Ann Lee alee a@x.com --role ADMIN   # Admin create, prints password
    userhub list-users                                   # Table of accounts
    userhub reset-password a@x.com                       # New password, prints it
    userhub delete-user 42                               # Delete by numeric id

Learn: Commands call UserService directly (no HTTP), so they work before
the API is deployed — e.g. to bootstrap the first SUPER_ADMIN. Generated
passwords are printed once; they are not emailed from here.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from contextlib import asynccontextmanager

import click

from userhub import __version__
from userhub.errors import IdentityError, StorageError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


@asynccontextmanager
async def open_service():
    """UserService bound to a fresh database session."""
    from userhub.container import user_service_for
    from userhub.db.engine import async_session_factory

    async with async_session_factory() as session:
        yield user_service_for(session)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _fail(message: str):
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _call(coro):
    """Run coro, turning identity/storage errors into a clean exit."""
    try:
        return _run(coro)
    except IdentityError as e:
        _fail(str(e))
    except StorageError as e:
        _fail(f"storage unavailable ({e})")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="userhub")
def main():
    """userhub — manage user accounts."""


@main.command("init-db")
def init_db():
    """Create database tables that don't exist yet."""
    from userhub.db.engine import create_tables

    _call(create_tables())
    click.secho("Tables ready", fg="green")


@main.command("add-user")
@click.argument("first_name")
@click.argument("last_name")
@click.argument("username")
@click.argument("email")
@click.option("--role", default="USER", show_default=True, help="USER, HR, MANAGER, ADMIN or SUPER_ADMIN")
@click.option("--inactive", is_flag=True, help="Create the account disabled")
@click.option("--locked", is_flag=True, help="Create the account locked")
def add_user(first_name, last_name, username, email, role, inactive, locked):
    """Create an account with an explicit role and print its password."""

    async def _impl():
        async with open_service() as svc:
            return await svc.add_new(
                first_name,
                last_name,
                username,
                email,
                role=role,
                is_active=not inactive,
                is_not_locked=not locked,
            )

    issued = _call(_impl())
    identity = issued.identity
    click.secho(f"Created {identity.username} (id {identity.id}, user id {identity.user_id})", fg="green")
    click.echo(f"Role: {identity.role.value}  Authorities: {', '.join(identity.authorities)}")
    click.echo(f"Password: {issued.password}")


@main.command("list-users")
def list_users():
    """List all accounts."""

    async def _impl():
        async with open_service() as svc:
            return await svc.list_users()

    identities = _call(_impl())
    if not identities:
        click.echo("No users.")
        return
    rows = [
        {
            "id": i.id,
            "username": i.username,
            "email": i.email,
            "role": i.role.value,
            "active": "yes" if i.is_active else "no",
            "locked": "yes" if i.is_locked else "no",
        }
        for i in identities
    ]
    _print_table(rows, [
        ("ID", "id", 6),
        ("USERNAME", "username", 20),
        ("EMAIL", "email", 30),
        ("ROLE", "role", 12),
        ("ACTIVE", "active", 6),
        ("LOCKED", "locked", 6),
    ])


@main.command("reset-password")
@click.argument("email")
def reset_password(email):
    """Generate a new password for the account with EMAIL and print it."""

    async def _impl():
        async with open_service() as svc:
            return await svc.reset_password(email)

    issued = _call(_impl())
    click.secho(f"Password reset for {issued.identity.username}", fg="green")
    click.echo(f"Password: {issued.password}")


@main.command("delete-user")
@click.argument("user_id", type=int)
@click.confirmation_option(prompt="Delete this user?")
def delete_user(user_id):
    """Delete the account with numeric USER_ID."""

    async def _impl():
        async with open_service() as svc:
            await svc.delete(user_id)

    _call(_impl())
    click.secho(f"Deleted user {user_id}", fg="green")


if __name__ == "__main__":
    main()
