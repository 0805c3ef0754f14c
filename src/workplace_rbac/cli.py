"""`workplace-rbac` command implementations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, NoReturn

import typer
from sqlalchemy.orm import Session, sessionmaker

from workplace_rbac.common.logging import setup_logging
from workplace_rbac.db import build_engine
from workplace_rbac.db.migrate import current_revision, run_migrations
from workplace_rbac.db.session import build_session_factory, session_scope
from workplace_rbac.features.rbac.bootstrap import (
    RoleBootstrapper,
    bootstrap_all_active_workplaces,
)
from workplace_rbac.features.rbac.catalog import sync_catalog
from workplace_rbac.features.rbac.errors import RbacError
from workplace_rbac.features.rbac.service import RbacService
from workplace_rbac.features.workplaces.service import WorkplacesService
from workplace_rbac.settings import get_settings

app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="Workplace RBAC CLI (migrate, sync-catalog, bootstrap, permissions, roles, check).",
)


@app.callback()
def _main(ctx: typer.Context) -> None:
    setup_logging(get_settings())
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@contextmanager
def _session_factory() -> Iterator[sessionmaker[Session]]:
    engine = build_engine(get_settings())
    try:
        yield build_session_factory(engine)
    finally:
        engine.dispose()


def _fail(message: str) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=1)


@app.command(name="migrate", help="Apply database migrations.")
def migrate(
    revision: Annotated[str, typer.Option("--revision", help="Target revision.")] = "head",
) -> None:
    settings = get_settings()
    run_migrations(settings, revision=revision)
    typer.echo(f"database at revision {current_revision(settings)}")


@app.command(name="sync-catalog", help="Upsert the built-in permission catalog.")
def sync_catalog_command() -> None:
    with _session_factory() as factory, session_scope(factory) as session:
        result = sync_catalog(session)
    typer.echo(
        f"catalog synced: {result.created} created, {result.updated} updated, "
        f"{result.total} total"
    )


@app.command(name="bootstrap", help="Provision default roles for one or every active workplace.")
def bootstrap(
    workplace_id: Annotated[
        str | None,
        typer.Option("--workplace-id", help="Only bootstrap this workplace."),
    ] = None,
    actor: Annotated[str | None, typer.Option("--actor", help="Recorded as creator.")] = None,
) -> None:
    actor = actor or get_settings().system_actor
    with _session_factory() as factory:
        with session_scope(factory) as session:
            sync_catalog(session)

        if workplace_id is None:
            report = bootstrap_all_active_workplaces(factory, actor=actor)
            typer.echo(
                f"bootstrapped {len(report.bootstrapped)}, skipped {len(report.skipped)}, "
                f"failed {len(report.failures)}"
            )
            for failed_id, reason in sorted(report.failures.items()):
                typer.echo(f"  {failed_id}: {reason}", err=True)
            if report.failures:
                raise typer.Exit(code=1)
            return

        try:
            with session_scope(factory) as session:
                result = RoleBootstrapper(session=session).bootstrap_workplace(
                    workplace_id,
                    actor=actor,
                )
                names = ", ".join(role.name for role in result.roles)
        except RbacError as exc:
            _fail(exc.message)
    state = "created" if result.created else "already present"
    typer.echo(f"{workplace_id}: {names} ({state})")


@app.command(name="create-workplace", help="Create a workplace with its creator as owner.")
def create_workplace(
    name: Annotated[str, typer.Option("--name", help="Workplace name.")],
    owner: Annotated[str, typer.Option("--owner", help="User id of the creator.")],
    description: Annotated[str | None, typer.Option("--description")] = None,
) -> None:
    with _session_factory() as factory:
        try:
            with session_scope(factory) as session:
                sync_catalog(session)
                workplace, _ = WorkplacesService(session=session).create_workplace(
                    name=name,
                    description=description,
                    created_by=owner,
                )
                workplace_id = workplace.id
        except RbacError as exc:
            _fail(exc.message)
    typer.echo(workplace_id)


@app.command(name="permissions", help="List the permission catalog.")
def permissions(
    include_inactive: Annotated[
        bool,
        typer.Option("--include-inactive", help="Also list deactivated permissions."),
    ] = False,
) -> None:
    with _session_factory() as factory, session_scope(factory) as session:
        rows = RbacService(session=session).list_permissions(include_inactive=include_inactive)
        lines = [
            f"{row.name}\t{row.category}\t{'active' if row.active else 'inactive'}"
            for row in rows
        ]
    for line in lines:
        typer.echo(line)


@app.command(name="roles", help="List the active roles of a workplace with their permissions.")
def roles(
    workplace_id: Annotated[str, typer.Option("--workplace-id", help="Workplace to inspect.")],
) -> None:
    settings = get_settings()
    with _session_factory() as factory, session_scope(factory) as session:
        service = RbacService(session=session, enforce_expiry=settings.grant_expiry_enforced)
        views = service.workplace_role_views(workplace_id)
        lines = [
            f"{view.role.name}\t{'system' if view.role.is_system else 'custom'}\t"
            f"{','.join(view.sorted_permissions)}"
            for view in views
        ]
    for line in lines:
        typer.echo(line)


@app.command(name="check", help="Exit 0 when the user holds the permission, 1 otherwise.")
def check(
    workplace_id: Annotated[str, typer.Option("--workplace-id")],
    user_id: Annotated[str, typer.Option("--user-id")],
    permission: Annotated[str, typer.Option("--permission")],
) -> None:
    settings = get_settings()
    with _session_factory() as factory, session_scope(factory) as session:
        granted = RbacService(
            session=session,
            enforce_expiry=settings.grant_expiry_enforced,
        ).has_permission(user_id=user_id, workplace_id=workplace_id, permission=permission)
    typer.echo("granted" if granted else "denied")
    if not granted:
        raise typer.Exit(code=1)


@app.command(name="serve", help="Run the HTTP API with uvicorn.")
def serve(
    host: Annotated[str, typer.Option("--host")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port")] = 8000,
) -> None:
    import uvicorn

    uvicorn.run("workplace_rbac.main:create_app", factory=True, host=host, port=port)


def main() -> None:
    app()


__all__ = ["app", "main"]
