"""retainly CLI — items, reviews, urgency dashboard, parameters and config."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from retainly.application.config import AppConfig, resolve_config
from retainly.application.factory import build_review_service, get_store
from retainly.application.scheduling.service import ReviewService
from retainly.domain.errors import MalformedOverride, RetainlyError, RetentionOutOfRange
from retainly.domain.scheduling.codec import encode_parameters, parameters_to_dict, parse_parameters
from retainly.domain.scheduling.models import (
    Category,
    CategoryDeleteStrategy,
    DashboardItem,
    Item,
    ParameterSet,
    Rating,
    Urgency,
)
from retainly.infrastructure.adapters.sqlite_store import SqliteStore

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="retainly: spaced-repetition scheduling for anything you want to remember.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

params_app = typer.Typer(help="Inspect and validate FSRS parameter sets.", no_args_is_help=True)
app.add_typer(params_app, name="params")

category_app = typer.Typer(help="Manage categories and their overrides.", no_args_is_help=True)
app.add_typer(category_app, name="category")

config_app = typer.Typer(help="Manage retainly configuration.")
app.add_typer(config_app, name="config")

URGENCY_COLORS = {
    Urgency.OVERDUE: "red",
    Urgency.DUE_TODAY: "yellow",
    Urgency.NOT_DUE: "green",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context) -> AppConfig:
    obj = ctx.obj or {}
    return resolve_config({"db_path": obj.get("db_path"), "verbose": obj.get("verbose")})


def _run(config: AppConfig, action: Callable[[ReviewService, Any], Awaitable[T]]) -> T:
    """Open the store, run `action` with a wired service, and close the store."""

    async def runner() -> T:
        store = get_store(config)
        try:
            service = await build_review_service(config, store)
            return await action(service, store)
        finally:
            if isinstance(store, SqliteStore):
                store.close()

    try:
        return asyncio.run(runner())
    except RetainlyError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _entry_to_dict(entry: DashboardItem) -> dict[str, Any]:
    return {
        "id": entry.item.id,
        "title": entry.item.title,
        "urgency": entry.urgency.label,
        "category": entry.category_name,
    }


def _print_entries(entries: list[DashboardItem], json_output: bool, empty: str) -> None:
    if json_output:
        typer.echo(json.dumps([_entry_to_dict(e) for e in entries], indent=2))
        return
    if not entries:
        typer.secho(empty, fg="yellow")
        return
    for entry in entries:
        label = typer.style(f"{entry.urgency.label:<9}", fg=URGENCY_COLORS[entry.urgency])
        category = f"  [{entry.category_name}]" if entry.category_name else ""
        typer.echo(f"{label} #{entry.item.id} {entry.item.title}{category}")


def _read_parameters_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        typer.secho(f"Cannot read {path}: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Annotated[
        Path | None, typer.Option("--db", help="SQLite database path. Defaults to config.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for retainly."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db
    ctx.obj["verbose"] = verbose
    if verbose > 1:
        logging.getLogger("retainly").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="What to remember.")],
    source: Annotated[str | None, typer.Option(help="Where it came from (URL, book...).")] = None,
    category: Annotated[int | None, typer.Option(help="Category id.")] = None,
    notes: Annotated[str | None, typer.Option(help="Free-form notes.")] = None,
):
    """[bold green]Add[/bold green] a new item to learn."""

    async def action(service: ReviewService, store) -> Item | None:
        if category is not None and await store.get_category(category) is None:
            return None
        return await store.add_item(
            Item(id=None, title=title, source=source, category_id=category, notes=notes)
        )

    item = _run(_config(ctx), action)
    if item is None:
        typer.secho(f"Category {category} not found", fg="red", err=True)
        raise typer.Exit(1)
    typer.secho(f"Added item #{item.id}: {item.title}", fg="green")


@app.command()
def review(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item id.")],
    rating: Annotated[str, typer.Argument(help="again, hard, good, easy (or 1-4).")],
    notes: Annotated[str | None, typer.Option(help="Notes for this review.")] = None,
):
    """Submit a review and show when the item is due next."""
    try:
        grade = Rating.parse(rating)
    except ValueError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(2) from e

    result = _run(_config(ctx), lambda service, _: service.submit_review(item_id, grade, notes))
    state = result.state
    typer.echo(f"Item #{item_id} rated {grade.name.lower()}")
    typer.echo(f"  stability:  {state.stability:.2f} days")
    typer.echo(f"  difficulty: {state.difficulty:.2f}")
    typer.secho(f"  next review in {state.interval} day(s)", fg="green")


@app.command()
def preview(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item id.")],
):
    """Show the interval each rating would give right now."""
    states = _run(_config(ctx), lambda service, _: service.preview(item_id))
    for grade, state in states.items():
        typer.echo(f"{grade.name.lower():<6} -> {state.interval} day(s)  (S={state.stability:.2f})")


@app.command()
def status(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List all active items, most urgent first."""
    entries = _run(_config(ctx), lambda service, _: service.dashboard())
    _print_entries(entries, json_output, "No items yet. Add one with 'retainly add'.")


@app.command()
def due(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List items that are overdue or due today."""
    entries = _run(_config(ctx), lambda service, _: service.due_items())
    _print_entries(entries, json_output, "Nothing due. Come back tomorrow.")


@app.command()
def history(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item id.")],
    limit: Annotated[int, typer.Option(help="Maximum number of reviews.")] = 10,
):
    """Show the latest reviews of an item."""
    reviews = _run(_config(ctx), lambda service, _: service.history(item_id, limit))
    if not reviews:
        typer.secho("Never reviewed.", fg="yellow")
        return
    for r in reviews:
        typer.echo(
            f"{r.reviewed_at:%Y-%m-%d %H:%M}  {r.rating.name.lower():<6} "
            f"S={r.stability:.2f} D={r.difficulty:.2f}"
        )


@app.command()
def archive(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item id.")],
):
    """Hide an item from the dashboard without losing its history."""
    item = _run(_config(ctx), lambda service, _: service.archive_item(item_id))
    typer.secho(f"Archived item #{item.id}: {item.title}", fg="green")


@app.command()
def unarchive(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item id.")],
):
    """Bring an archived item back to the dashboard."""
    item = _run(_config(ctx), lambda service, _: service.unarchive_item(item_id))
    typer.secho(f"Restored item #{item.id}: {item.title}", fg="green")


@app.command()
def archived(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List archived items."""
    items = _run(_config(ctx), lambda service, _: service.archived_items())
    if json_output:
        typer.echo(json.dumps([{"id": i.id, "title": i.title} for i in items], indent=2))
        return
    if not items:
        typer.secho("No archived items.", fg="yellow")
        return
    for item in items:
        typer.echo(f"#{item.id} {item.title}")


@app.command()
def delete(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Permanently delete an item and its review history."""
    if not yes:
        typer.confirm(f"Delete item #{item_id} and all its reviews?", abort=True)
    _run(_config(ctx), lambda service, _: service.delete_item(item_id))
    typer.secho(f"Deleted item #{item_id}", fg="green")


@app.command()
def serve(
    ctx: typer.Context,
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Start the HTTP daemon."""
    import uvicorn

    config = _config(ctx)
    uvicorn.run(
        "retainly.server:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Params subgroup
# ---------------------------------------------------------------------------


@params_app.command("show")
def params_show(
    ctx: typer.Context,
    category: Annotated[int | None, typer.Option(help="Resolve for this category.")] = None,
):
    """Print the effective parameter set and retention as JSON."""

    async def action(service: ReviewService, _):
        return await service.resolver.resolve(category)

    scope = _run(_config(ctx), action)
    payload = parameters_to_dict(scope.parameters)
    payload["effectiveRetention"] = scope.retention
    typer.echo(json.dumps(payload, indent=2))


@params_app.command("validate")
def params_validate(
    path: Annotated[Path, typer.Argument(help="JSON file with 'w' and 'desiredRetention'.")],
):
    """Check that a parameter file is a valid FSRS-4.5 parameter set."""
    try:
        parse_parameters(_read_parameters_file(path))
    except MalformedOverride as e:
        typer.secho(f"Invalid: {e}", fg="red")
        raise typer.Exit(1) from e
    typer.secho("OK: 17 weights, retention in range.", fg="green")


# ---------------------------------------------------------------------------
# Category subgroup
# ---------------------------------------------------------------------------


def _override_json(params: Path | None) -> str | None:
    if params is None:
        return None
    try:
        return encode_parameters(parse_parameters(_read_parameters_file(params)))
    except MalformedOverride as e:
        typer.secho(f"Invalid parameters: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _check_retention(retention: float | None) -> None:
    if retention is None:
        return
    try:
        ParameterSet.default().with_retention(retention)
    except RetentionOutOfRange as e:
        typer.secho(f"Invalid retention: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


@category_app.command("add")
def category_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Category name.")],
    retention: Annotated[float | None, typer.Option(help="Desired retention override.")] = None,
    params: Annotated[Path | None, typer.Option(help="Parameter set JSON file.")] = None,
):
    """Create a category, optionally with its own retention and weights."""
    _check_retention(retention)
    category = Category(
        id=None, name=name, desired_retention=retention, parameters_json=_override_json(params)
    )
    saved = _run(_config(ctx), lambda _, store: store.save_category(category))
    typer.secho(f"Added category #{saved.id}: {saved.name}", fg="green")


@category_app.command("set")
def category_set(
    ctx: typer.Context,
    category_id: Annotated[int, typer.Argument(help="Category id.")],
    retention: Annotated[float | None, typer.Option(help="Desired retention override.")] = None,
    params: Annotated[Path | None, typer.Option(help="Parameter set JSON file.")] = None,
    clear: Annotated[
        bool, typer.Option("--clear", help="Remove both overrides before applying.")
    ] = False,
):
    """Change a category's retention and/or weight overrides."""
    _check_retention(retention)
    override = _override_json(params)

    async def action(_, store):
        current = await store.get_category(category_id)
        if current is None:
            return None
        return await store.save_category(
            Category(
                id=current.id,
                name=current.name,
                desired_retention=retention
                if retention is not None
                else (None if clear else current.desired_retention),
                parameters_json=override
                if override is not None
                else (None if clear else current.parameters_json),
            )
        )

    saved = _run(_config(ctx), action)
    if saved is None:
        typer.secho(f"Category {category_id} not found", fg="red", err=True)
        raise typer.Exit(1)
    typer.secho(f"Updated category #{saved.id}: {saved.name}", fg="green")


@category_app.command("rename")
def category_rename(
    ctx: typer.Context,
    category_id: Annotated[int, typer.Argument(help="Category id.")],
    name: Annotated[str, typer.Argument(help="New name.")],
):
    """Rename a category."""
    saved = _run(_config(ctx), lambda service, _: service.rename_category(category_id, name))
    typer.secho(f"Renamed category #{saved.id} to {saved.name}", fg="green")


@category_app.command("delete")
def category_delete(
    ctx: typer.Context,
    category_id: Annotated[int, typer.Argument(help="Category id.")],
    strategy: Annotated[
        CategoryDeleteStrategy,
        typer.Option(help="What to do with the category's items."),
    ] = CategoryDeleteStrategy.UNCATEGORIZE,
):
    """Delete a category, keeping, archiving or deleting its items."""
    _run(_config(ctx), lambda service, _: service.delete_category(category_id, strategy))
    typer.secho(f"Deleted category #{category_id} ({strategy.value} items)", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = resolve_config({"db_path": (ctx.obj or {}).get("db_path")})
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


@config_app.command("set-retention")
def config_set_retention(
    ctx: typer.Context,
    retention: Annotated[float, typer.Argument(help="Desired retention, 0.70 to 0.97.")],
):
    """Change the global desired retention stored in the database."""
    value = _run(_config(ctx), lambda service, _: service.set_global_retention(retention))
    typer.secho(f"Global desired retention set to {value}", fg="green")
