"""RBAC admin CLI tool (rbacctl)."""

from typing import Any, Dict, List

import typer

app = typer.Typer(name="rbacctl", help="RBAC Admin CLI")
db_app = typer.Typer(help="Database management commands")
roles_app = typer.Typer(help="Role hierarchy commands")
admin_app = typer.Typer(help="Super-admin account commands")
app.add_typer(db_app, name="db")
app.add_typer(roles_app, name="roles")
app.add_typer(admin_app, name="admin")


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    from rbac.db.session import init_db

    init_db()
    typer.echo("Tables created (or already exist)")


@db_app.command("seed")
def db_seed():
    """Seed permissions, the default roles, and the super-admin."""
    from rbac.db.session import SessionLocal
    from rbac.db.seeds.seed_all import seed_all

    db = SessionLocal()
    try:
        seed_all(db)
    finally:
        db.close()
    typer.echo("All seeds applied")


@db_app.command("reset")
def db_reset(
    seed: bool = typer.Option(True, help="Seed defaults after recreating tables"),
):
    """Drop and recreate every table (DANGER)."""
    confirm = typer.confirm("This will DROP every table. Continue?")
    if not confirm:
        raise typer.Abort()
    from rbac.db.session import drop_db, init_db

    drop_db()
    init_db()
    typer.echo("Tables recreated")
    if seed:
        db_seed()


@admin_app.command("reset-password")
def admin_reset_password():
    """Reset the super-admin password to the configured one."""
    from rbac.core.config import settings
    from rbac.core.exceptions import RBACError
    from rbac.db.session import SessionLocal
    from rbac.db.seeds.seed_super_admin import reset_super_admin_password

    db = SessionLocal()
    try:
        reset_super_admin_password(db)
    except RBACError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo(f"Password reset for {settings.SUPER_ADMIN_EMAIL}")


def _print_tree(nodes: List[Dict[str, Any]], depth: int = 0) -> None:
    for node in nodes:
        typer.echo(f"{'  ' * depth}- {node['name']} (id {node['id']}, level {node['level']})")
        _print_tree(node["children"], depth + 1)


@roles_app.command("tree")
def roles_tree():
    """Print the role hierarchy."""
    from rbac.core.exceptions import DataIntegrityError
    from rbac.db.session import SessionLocal
    from rbac.services.role_service import role_service

    db = SessionLocal()
    try:
        forest = role_service.get_hierarchy(db)
    except DataIntegrityError as e:
        typer.echo(f"Hierarchy is corrupted: {e.message}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()

    if not forest:
        typer.echo("No roles")
        return
    _print_tree(forest)


@roles_app.command("check")
def roles_check():
    """Verify that the hierarchy is acyclic and every level matches its depth."""
    from rbac.db.session import SessionLocal
    from rbac.services.role_service import role_service

    db = SessionLocal()
    try:
        problems = role_service.check_integrity(db)
    finally:
        db.close()

    if not problems:
        typer.echo("Role hierarchy is consistent")
        return
    for problem in problems:
        typer.echo(problem, err=True)
    raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("rbac.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
