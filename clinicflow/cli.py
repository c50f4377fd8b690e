"""ClinicFlow access-control CLI tool (clinicflow)."""

import json
from dataclasses import asdict
from typing import Optional

import typer

app = typer.Typer(name="clinicflow", help="ClinicFlow access-control CLI")
db_app = typer.Typer(help="Database management commands")
routes_app = typer.Typer(help="Route tree inspection")
permissions_app = typer.Typer(help="Permission registry commands")
access_app = typer.Typer(help="Permission checks")
app.add_typer(db_app, name="db")
app.add_typer(routes_app, name="routes")
app.add_typer(permissions_app, name="permissions")
app.add_typer(access_app, name="access")


@db_app.command("init")
def db_init():
    """Create all tables that do not exist yet."""
    from clinicflow.db.session import init_db

    init_db()
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed(
    root: Optional[str] = typer.Option(None, help="Route tree root (defaults to ROUTE_ROOT)"),
):
    """Seed permissions, system roles and the master admin."""
    from clinicflow.db.session import SessionLocal
    from clinicflow.db.seeds.seed_rbac import seed_rbac
    from clinicflow.db.seeds.seed_master_admin import seed_master_admin

    db = SessionLocal()
    try:
        seed_rbac(db, root)
        seed_master_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@routes_app.command("scan")
def routes_scan(
    root: Optional[str] = typer.Option(None, help="Route tree root (defaults to ROUTE_ROOT)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a listing"),
):
    """List the routes found in the route tree, grouped by category."""
    from clinicflow.services.route_scanner import scan_routes, group_routes_by_category

    categories = group_routes_by_category(scan_routes(root))
    if as_json:
        typer.echo(json.dumps([asdict(c) for c in categories], indent=2))
        return
    for category in categories:
        typer.echo(f"{category.name}: {category.description}")
        for route in category.routes:
            typer.echo(f"  {route.path} [{', '.join(route.methods)}]")


@permissions_app.command("sync")
def permissions_sync(
    root: Optional[str] = typer.Option(None, help="Route tree root (defaults to ROUTE_ROOT)"),
    from_app: bool = typer.Option(False, "--from-app", help="Use the API's declared routes instead"),
    deactivate_stale: bool = typer.Option(False, help="Deactivate permissions whose route is gone"),
):
    """Reconcile the permission registry with the routes."""
    from clinicflow.db.session import SessionLocal
    from clinicflow.services.permission_service import permission_service
    from clinicflow.services.route_scanner import collect_app_routes

    routes = None
    if from_app:
        from clinicflow.main import app as api_app
        routes = collect_app_routes(api_app, include_prefixes=["/api"])

    db = SessionLocal()
    try:
        result = permission_service.sync_permissions(
            db, routes=routes, base_dir=root, deactivate_stale=deactivate_stale,
        )
    finally:
        db.close()
    typer.echo(
        f"✅ {result['created']} created, {result['updated']} updated, "
        f"{result['deactivated']} deactivated from {result['total_routes']} routes"
    )


@access_app.command("check")
def access_check(
    user_id: int = typer.Argument(..., help="User ID"),
    route: str = typer.Argument(..., help="Route path, e.g. /dashboard/patients/[id]"),
    method: str = typer.Option("GET", help="HTTP method"),
):
    """Check whether a user may call a route."""
    from clinicflow.db.session import SessionLocal
    from clinicflow.services.permission_checker import check_user_permission

    db = SessionLocal()
    try:
        result = check_user_permission(db, user_id, route, method)
    finally:
        db.close()
    verdict = "ALLOW" if result.has_permission else "DENY"
    typer.echo(f"{verdict} {', '.join(result.required_permissions) or route}")
    if result.reason:
        typer.echo(f"  reason: {result.reason}")
    if result.user_roles:
        typer.echo(f"  roles: {', '.join(result.user_roles)}")
    if not result.has_permission:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("clinicflow.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
