"""CLI tests — commands run against an in-memory UserService.

Learn: open_service() is the one place the CLI builds a UserService, so
patching it swaps the database for the conftest service.
"""

from contextlib import asynccontextmanager

import pytest
from click.testing import CliRunner

from userhub.cli import main as cli


@pytest.fixture()
def runner(monkeypatch, service):
    @asynccontextmanager
    async def fake_open_service():
        yield service

    monkeypatch.setattr(cli, "open_service", fake_open_service)
    return CliRunner()


def test_version(runner):
    result = runner.invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert "userhub" in result.output


def test_add_and_list_users(runner):
    result = runner.invoke(
        cli.main, ["add-user", "Ann", "Lee", "alee", "a@x.com", "--role", "SUPER_ADMIN"]
    )
    assert result.exit_code == 0, result.output
    assert "Created alee" in result.output
    assert "user:delete" in result.output
    assert "Password: " in result.output

    result = runner.invoke(cli.main, ["list-users"])
    assert result.exit_code == 0
    assert "alee" in result.output
    assert "SUPER_ADMIN" in result.output


def test_list_users_empty(runner):
    result = runner.invoke(cli.main, ["list-users"])
    assert result.exit_code == 0
    assert "No users." in result.output


def test_add_user_conflict_exits_nonzero(runner):
    runner.invoke(cli.main, ["add-user", "Ann", "Lee", "alee", "a@x.com"])
    result = runner.invoke(cli.main, ["add-user", "Ann", "Lee", "alee", "b@x.com"])
    assert result.exit_code == 1
    assert "Username already taken" in result.output


def test_add_user_unknown_role(runner):
    result = runner.invoke(cli.main, ["add-user", "A", "B", "ab", "ab@x.com", "--role", "ROOT"])
    assert result.exit_code == 1
    assert "Unknown role: ROOT" in result.output


def test_reset_password(runner, repo, hasher):
    runner.invoke(cli.main, ["add-user", "Ann", "Lee", "alee", "a@x.com"])
    result = runner.invoke(cli.main, ["reset-password", "a@x.com"])
    assert result.exit_code == 0
    password = result.output.strip().splitlines()[-1].removeprefix("Password: ")

    [identity] = repo._rows.values()
    assert hasher.verify(password, identity.password_hash)


def test_reset_password_unknown_email(runner):
    result = runner.invoke(cli.main, ["reset-password", "no@x.com"])
    assert result.exit_code == 1
    assert "No user found for email: no@x.com" in result.output


def test_delete_user(runner, repo):
    runner.invoke(cli.main, ["add-user", "Ann", "Lee", "alee", "a@x.com"])
    [identity] = repo._rows.values()

    result = runner.invoke(cli.main, ["delete-user", str(identity.id), "--yes"])
    assert result.exit_code == 0
    assert f"Deleted user {identity.id}" in result.output
    assert not repo._rows
