"""Command-line interface for the organization engine."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Optional

import typer
from dotenv import load_dotenv

from application.jobs.organization_scanner import OrganizationScannerJob
from composition_root import OrganizationEngine, build_engine
from config.engine_settings import EngineSettings
from domain.errors import OrganizationError

# --- Environment Loading ---
load_dotenv()


# --- Typer App ---
app = typer.Typer(
    help="Content organization and relationship intelligence.",
    add_completion=False,
)


def _engine(fixture: Optional[str]) -> OrganizationEngine:
    settings = EngineSettings.from_env()
    if fixture:
        settings = replace(settings, backend=replace(settings.backend, fixture_path=fixture))
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    return build_engine(settings)


def _run(coro):
    try:
        return asyncio.run(coro)
    except (OrganizationError, KeyError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)


def _dump(model) -> None:
    typer.echo(json.dumps(model.model_dump(mode="json"), indent=2))


FIXTURE_OPTION = typer.Option(None, "--fixture", "-f", help="YAML or JSON seed data")
TYPE_OPTION = typer.Option("document", "--type", "-t", help="Item type: document or collection")
JSON_OPTION = typer.Option(False, "--json", help="Print the full result as JSON")


# --- CLI Commands ---


@app.command()
def analyze(
    item_id: str,
    item_type: str = TYPE_OPTION,
    fixture: Optional[str] = FIXTURE_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Analyze an item and print organization suggestions."""
    engine = _engine(fixture)
    analysis = _run(engine.organization.analyze_item(item_id, item_type))

    if as_json:
        _dump(analysis)
        return

    typer.echo(f"\n📄 {item_type} {item_id} (confidence: {analysis.overall_confidence:.0%})")
    typer.echo("\nTags:")
    for tag in analysis.tag_suggestions:
        marker = " [traditional knowledge]" if tag.traditional_knowledge else ""
        typer.echo(f"  • {tag.tag} ({tag.confidence:.2f}){marker}")
    typer.echo("\nCategories:")
    for category in analysis.category_suggestions:
        typer.echo(f"  • {category.category} ({category.confidence:.2f})")
    typer.echo("\nRule matches:")
    for match in analysis.rule_matches:
        actions = ", ".join(f"{a.type}={a.value}" for a in match.suggested_actions)
        typer.echo(f"  • {match.rule.name or match.rule.id}: {actions}")


@app.command()
def apply(
    item_id: str,
    item_type: str = TYPE_OPTION,
    fixture: Optional[str] = FIXTURE_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Analyze an item and apply confident suggestions."""
    engine = _engine(fixture)
    applied = _run(engine.organization.apply_auto_organization(item_id, item_type))

    if as_json:
        _dump(applied)
        return

    typer.echo(f"\n✅ Organized {item_type} {item_id}")
    typer.echo(f"   Tags: {', '.join(applied.tags_applied) or '-'}")
    typer.echo(f"   Categories: {', '.join(applied.categories_applied) or '-'}")
    typer.echo(f"   Cultural metadata: {'applied' if applied.cultural_metadata_applied else '-'}")
    typer.echo(f"   Rule actions: {', '.join(applied.actions_executed) or '-'}")
    for error in applied.errors:
        typer.echo(f"   ⚠️ {error}")


@app.command()
def network(
    item_id: str,
    depth: int = typer.Option(3, "--depth", "-d", help="Maximum hops from the item"),
    fixture: Optional[str] = FIXTURE_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Analyze the relationship network around an item."""
    engine = _engine(fixture)
    result = _run(engine.relationships.analyze_relationship_network(item_id, depth))

    if as_json:
        _dump(result)
        return

    stats = result.network_stats
    typer.echo(f"\n🔗 Network around {item_id} (depth {depth})")
    typer.echo(f"   Items: {len(result.items)}")
    typer.echo(f"   Relationships: {stats.total_relationships} "
               f"({len(result.direct_relationships)} direct)")
    typer.echo(f"   Cultural diversity: {stats.cultural_diversity:.2f}")
    typer.echo(f"   Density: {stats.network_density:.2f}")
    typer.echo(f"   Average path length: {stats.average_path_length:.2f}")
    typer.echo(f"   Community participation: {stats.community_participation:.2f}")
    for cluster in result.cultural_clusters:
        typer.echo(f"   • Cluster {cluster.cultural_origin}: {len(cluster.items)} items, "
                   f"center {cluster.center_item.id}")
    for community in result.community_networks:
        typer.echo(f"   • Community {community.community_name}: {len(community.items)} items")


@app.command()
def pathways(
    item_id: str,
    fixture: Optional[str] = FIXTURE_OPTION,
    as_json: bool = JSON_OPTION,
):
    """List educational pathways through an item."""
    engine = _engine(fixture)
    results = _run(engine.relationships.generate_educational_pathways(item_id))

    if as_json:
        typer.echo(json.dumps([p.model_dump(mode="json") for p in results], indent=2))
        return

    if not results:
        typer.echo("No pathways found.")
        return

    for pathway in results:
        sequence = " → ".join(item.id for item in pathway.item_sequence)
        typer.echo(f"\n🎓 {pathway.name} ({pathway.difficulty_level.value}, {pathway.estimated_time} min)")
        typer.echo(f"   {sequence}")
        for goal in pathway.cultural_learning_goals:
            typer.echo(f"   • {goal}")


@app.command()
def rules(
    item_id: Optional[str] = typer.Option(None, "--item", help="Evaluate the rules against this item"),
    item_type: str = TYPE_OPTION,
    collection_id: Optional[str] = typer.Option(None, "--collection", help="Only rules for this collection"),
    fixture: Optional[str] = FIXTURE_OPTION,
):
    """List organization rules, optionally evaluating them against an item."""
    engine = _engine(fixture)

    async def run_rules():
        loaded = await engine.organization.get_organization_rules(collection_id)
        matches = []
        if item_id:
            matches = await engine.organization.apply_organization_rules(item_id, item_type, loaded)
        return loaded, matches

    loaded, matches = _run(run_rules())

    ordered = engine.rules_engine.order_rules(loaded)
    typer.echo(f"\n📋 {len(ordered)} enabled rules (of {len(loaded)})")
    for rule in ordered:
        typer.echo(f"  [{rule.priority}] {rule.name or rule.id}: "
                   f"{rule.condition.field} {rule.condition.operator.value} {rule.condition.value!r} "
                   f"→ {rule.action.type.value} {rule.action.value!r}")

    if item_id:
        typer.echo(f"\nMatches for {item_id}:")
        for match in matches:
            typer.echo(f"  • {match.rule.name or match.rule.id} ({match.confidence:.2f})")


@app.command()
def scan(
    fixture: Optional[str] = FIXTURE_OPTION,
):
    """Queue every item and run one batch organization cycle."""
    engine = _engine(fixture)
    scanner = OrganizationScannerJob(organization_service=engine.organization)

    async def run_scan():
        for item_id in await engine.backend.list_item_ids():
            item = await engine.backend.get_item(item_id)
            scanner.enqueue(item_id, item["item_type"])
        return await scanner.run_once()

    results = _run(run_scan())
    if results.get("skipped"):
        typer.echo("Batch processing is disabled in the organization config.")
        return

    typer.echo(f"\n✅ Scan {results['scan_id']}: {results['organized']} organized, "
               f"{results['failed']} failed of {results['queued']} queued")


if __name__ == "__main__":
    app()
