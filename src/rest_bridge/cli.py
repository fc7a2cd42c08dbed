"""CLI for rest-bridge.

Commands:
    entities <mapping>                       - Show the entity tree of a mapping file
    resolve <mapping> <entity> [--property]  - Show the resolved mapping of an entity or property
    fields <mapping> <entity> <fields>       - Show the fetch parameters for a local field selection
    init-db --models module:Base             - Create the tables of a declarative base
"""

from __future__ import annotations

import asyncio
import importlib
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree
from sqlalchemy.orm import DeclarativeBase

from rest_bridge.bridge.bridge import RESTBridge
from rest_bridge.bridge.requests import AdditionalRESTRequestInfo
from rest_bridge.db import init_db
from rest_bridge.exceptions import MappingConfigError, QueryParamSyntaxError
from rest_bridge.mapping.entities import EntityDescription, ManagedObjectModel
from rest_bridge.mapping.loader import load_mapping
from rest_bridge.mapping.resolver import RESTMapping
from rest_bridge.mapping.uniquing import UniquingType

app = typer.Typer(
    name="rest-bridge",
    help="rest-bridge: inspect entity-to-REST mappings",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def _load(mapping_file: Path) -> tuple[ManagedObjectModel, RESTMapping]:
    try:
        return load_mapping(mapping_file)
    except MappingConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def _entity(model: ManagedObjectModel, name: str) -> EntityDescription:
    entity = model.get(name)
    if entity is None:
        console.print(f"[red]Error:[/red] Unknown entity: {name}")
        raise typer.Exit(1)
    return entity


def _describe_uniquing(uniquing: UniquingType) -> str:
    if uniquing.is_none:
        return "none"
    if uniquing.properties:
        props = uniquing.separator.join(uniquing.properties)
        prefix = f" (prefix {uniquing.constant!r})" if uniquing.constant else ""
        return f"{uniquing.kind.value}: {props}{prefix}"
    return f"{uniquing.kind.value}: {uniquing.constant}"


@app.command()
def entities(
    mapping_file: Annotated[Path, typer.Argument(help="JSON mapping file")],
):
    """Show the entity tree, marking entities with their own mapping."""
    model, mapping = _load(mapping_file)

    def add(node: Tree, entity: EntityDescription) -> None:
        label = f"[cyan]{entity.name}[/cyan]"
        own = mapping.entities_mapping.get(entity)
        if own is not None:
            path = own.rest_path or "(inherited path)"
            label += f" [green]→ {path}[/green] ({len(own.properties_mapping)} properties)"
        child = node.add(label)
        for sub in entity.subentities:
            add(child, sub)

    tree = Tree(f"[bold]{mapping_file.name}[/bold]")
    for root in model.root_entities:
        add(tree, root)
    console.print(tree)


@app.command()
def resolve(
    mapping_file: Annotated[Path, typer.Argument(help="JSON mapping file")],
    entity_name: Annotated[str, typer.Argument(help="Entity to resolve from")],
    prop: Annotated[
        str | None, typer.Option("--property", "-p", help="Resolve this property instead")
    ] = None,
):
    """Show the mapping resolved for an entity, or for one of its properties."""
    model, mapping = _load(mapping_file)
    entity = _entity(model, entity_name)

    if prop is not None:
        prop_mapping = mapping.property_mapping(prop, entity)
        if prop_mapping is None:
            console.print(f"[yellow]No mapping for {entity_name}.{prop}[/yellow]")
            raise typer.Exit(1)
        transformer = type(prop_mapping.transformer).__name__ if prop_mapping.transformer else "-"
        console.print(
            f"{entity_name}.{prop} → [green]{prop_mapping.rest_name}[/green] "
            f"(transformer: {transformer}, read-only: {prop_mapping.read_only})"
        )
        return

    entity_mapping = mapping.entity_mapping(entity)
    if entity_mapping is None:
        console.print(f"[yellow]No mapping for {entity_name} or its superentities[/yellow]")
        raise typer.Exit(1)

    mapped_by = next(e for e in (entity, *entity.ancestors()) if e in mapping.entities_mapping)
    panel_content = []
    panel_content.append(f"[bold]Mapped by:[/bold] {mapped_by.name}")
    panel_content.append(f"[bold]REST path:[/bold] {mapping.rest_path(entity) or '-'}")
    panel_content.append(
        f"[bold]Uniquing:[/bold] {_describe_uniquing(mapping.entity_uniquing_type(entity))}"
    )
    console.print(Panel("\n".join(panel_content), title=f"Entity: {entity_name}"))

    table = Table(title="Properties")
    table.add_column("Property", style="cyan")
    table.add_column("REST name")
    table.add_column("Read-only")
    for name, prop_mapping in mapping.effective_properties_mapping(entity).items():
        table.add_row(name, prop_mapping.rest_name, "yes" if prop_mapping.read_only else "")
    console.print(table)


@app.command()
def fields(
    mapping_file: Annotated[Path, typer.Argument(help="JSON mapping file")],
    entity_name: Annotated[str, typer.Argument(help="Entity being fetched")],
    flatified_fields: Annotated[str, typer.Argument(help="Local fields, e.g. 'id,name,team(id)'")],
):
    """Show the query parameters sent when fetching ENTITY with FIELDS."""
    model, mapping = _load(mapping_file)
    entity = _entity(model, entity_name)
    bridge = RESTBridge(model, mapping)

    try:
        params = bridge.fetch_params(
            AdditionalRESTRequestInfo(entity=entity, flatified_fields=flatified_fields)
        )
    except QueryParamSyntaxError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    table = Table(title=f"Fetch parameters: {entity_name}")
    table.add_column("Parameter", style="cyan")
    table.add_column("Value")
    for key, value in params.items():
        table.add_row(key, str(value))
    console.print(table)


def _import_base(models: str) -> type[DeclarativeBase]:
    module_name, _, attribute = models.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        console.print(f"[red]Error:[/red] Cannot import {escape(module_name)}: {escape(str(e))}")
        raise typer.Exit(1) from None

    base = getattr(module, attribute or "Base", None)
    if not (isinstance(base, type) and issubclass(base, DeclarativeBase)):
        console.print(f"[red]Error:[/red] {escape(models)} is not a declarative base")
        raise typer.Exit(1)
    return base


@app.command("init-db")
def init_db_command(
    models: Annotated[
        str,
        typer.Option("--models", "-m", help="Declarative base of the synced models, as module:Base"),
    ],
    database_url: Annotated[
        str | None,
        typer.Option("--database-url", help="Store to create the tables in (default: configured store)"),
    ] = None,
):
    """Create the tables of every model registered on a declarative base."""
    base = _import_base(models)

    async def _init():
        tables = await init_db(base, database_url)
        console.print(f"[green]Database initialized successfully.[/green] Tables: {', '.join(tables)}")

    run_async(_init())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
