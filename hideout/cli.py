"""Hideout CLI: inspect and operate the message screening core."""

import asyncio
import json
import logging
from datetime import timezone

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from hideout import __version__

console = Console()

LEVEL_STYLES = {
    "safe": "green",
    "low": "cyan",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


def _services(ctx: click.Context):
    from hideout.services import build_services

    if "services" not in ctx.obj:
        ctx.obj["services"] = build_services(ctx.obj.get("home"), ctx.obj.get("lexicon"))
    return ctx.obj["services"]


def _save(services) -> None:
    from hideout.errors import StorageError

    try:
        services.save()
    except StorageError as e:
        raise click.ClickException(str(e)) from e


def _level(value: str) -> str:
    style = LEVEL_STYLES.get(value, "white")
    return f"[{style}]{value}[/]"


@click.group()
@click.version_option(version=__version__)
@click.option("--home", envvar="HIDEOUT_HOME", default=None, help="Settings directory")
@click.option("--lexicon", "lexicon_path", default=None, help="Lexicon YAML to load")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, home, lexicon_path, verbose):
    """Hideout: content screening for anonymous chat rooms.

    Scores messages against a risk lexicon and URL reputation, applies
    the security policy and keeps a ledger of what was flagged.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["home"] = home
    ctx.obj["lexicon"] = lexicon_path


# ── Scan ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option(
    "--mode",
    default=None,
    type=click.Choice(["basic", "reputation", "hybrid"]),
    help="Override the configured mode for this scan",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def scan(ctx, text: str, mode: str | None, as_json: bool):
    """Scan TEXT and show the decision the policy would take."""
    services = _services(ctx)
    if mode:
        services.policy.update(services.config.merged({"mode": mode}))

    result = asyncio.run(services.scanner.scan(text))
    action = services.policy.decide(result)

    if as_json:
        click.echo(json.dumps({"action": action.value, **result.to_dict()}, indent=2))
        return

    table = Table(title="Scan Result", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Threat", "yes" if result.is_threat else "no")
    table.add_row("Confidence", f"{result.confidence_score:.2f}")
    table.add_row("Type", result.threat_type.value)
    table.add_row("Level", _level(result.threat_level.value))
    table.add_row("Action", action.value.upper())
    table.add_row("Indicators", ", ".join(result.detected_indicators) or "-")
    table.add_row("Reason", result.reason)
    console.print(table)


@main.command("check-url")
@click.argument("url")
@click.pass_context
def check_url(ctx, url: str):
    """Look URL up in the reputation cache or service."""
    services = _services(ctx)
    malicious = asyncio.run(services.checker.check_url(url))
    if malicious:
        console.print(f"[bold red]Malicious:[/] {url}")
    else:
        console.print(f"[green]Not listed:[/] {url}")
    _save(services)


# ── Ledger ───────────────────────────────────────────────────────────


@main.command()
@click.option(
    "--level",
    default=None,
    type=click.Choice(["safe", "low", "medium", "high", "critical"]),
)
@click.option(
    "--type",
    "threat_type",
    default=None,
    type=click.Choice(["safe", "phishing", "malware", "scam", "suspicious_url", "phishing_url"]),
)
@click.option("--search", "-s", default="", help="Case-insensitive text search")
@click.option("--since", type=click.DateTime(), default=None)
@click.option("--until", type=click.DateTime(), default=None)
@click.option("--asc", is_flag=True, help="Oldest first")
@click.option("--limit", "-n", type=int, default=50)
@click.pass_context
def ledger(ctx, level, threat_type, search, since, until, asc, limit):
    """List security ledger entries."""
    from hideout.detection.models import ThreatLevel, ThreatType
    from hideout.ledger.models import LedgerQuery

    services = _services(ctx)
    query = LedgerQuery(
        start=since.replace(tzinfo=timezone.utc) if since else None,
        end=until.replace(tzinfo=timezone.utc) if until else None,
        threat_level=ThreatLevel(level) if level else None,
        threat_type=ThreatType(threat_type) if threat_type else None,
        search=search,
        ascending=asc,
        limit=limit,
    )
    entries = services.ledger.query(query)
    if not entries:
        console.print("[yellow]No ledger entries.[/]")
        return

    table = Table(title=f"Security Ledger ({len(entries)} shown, {len(services.ledger)} total)")
    table.add_column("ID", style="dim")
    table.add_column("Time")
    table.add_column("Level")
    table.add_column("Type", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Message")
    table.add_column("FP", justify="center")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            _level(entry.result.threat_level.value),
            entry.result.threat_type.value,
            f"{entry.result.confidence_score:.2f}",
            entry.message[:60],
            "x" if entry.false_positive else "",
        )
    console.print(table)


@main.command("ledger-clear")
@click.confirmation_option(prompt="Delete every ledger entry?")
@click.pass_context
def ledger_clear(ctx):
    """Delete all ledger entries."""
    services = _services(ctx)
    services.clear_ledger()
    _save(services)
    console.print("[green]Ledger cleared.[/]")


@main.command("false-positive")
@click.argument("entry_id")
@click.pass_context
def false_positive(ctx, entry_id: str):
    """Mark ledger entry ENTRY_ID as a false positive."""
    services = _services(ctx)
    if not services.report_false_positive(entry_id):
        raise click.ClickException(f"No ledger entry {entry_id}")
    _save(services)
    console.print(f"[green]Marked {entry_id} as a false positive.[/]")


@main.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None)
@click.option("--since", type=click.DateTime(), default=None)
@click.option("--until", type=click.DateTime(), default=None)
@click.pass_context
def export(ctx, output, since, until):
    """Export the ledger as JSON (stdout unless --output)."""
    services = _services(ctx)
    data = services.export_ledger(
        since.replace(tzinfo=timezone.utc) if since else None,
        until.replace(tzinfo=timezone.utc) if until else None,
    )
    if output is None:
        click.echo(data)
        return
    with open(output, "w", encoding="utf-8") as f:
        f.write(data)
    console.print(f"[green]Ledger exported to:[/] {output}")


# ── Diagnostics ──────────────────────────────────────────────────────


@main.command()
@click.pass_context
def stats(ctx):
    """Show scan, reputation and cache statistics."""
    services = _services(ctx)
    data = services.statistics()

    table = Table(title="Security Statistics", show_header=False)
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    for key in ("total_scanned", "threats_detected", "blocked", "warned", "false_positives"):
        table.add_row(key.replace("_", " ").capitalize(), str(data[key]))
    table.add_row("Threat rate", f"{data['threat_rate']:.1%}")
    table.add_row("Ledger entries", str(data["ledger_entries"]))
    table.add_row("Reputation requests", str(data["reputation"]["total_requests"]))
    table.add_row("API error rate", f"{data['reputation']['api_error_rate']:.1%}")
    table.add_row("Cache size", f"{data['cache']['size']}/{data['cache']['max_size']}")
    table.add_row("Cache hit rate", f"{data['cache']['hit_rate']:.1%}")
    table.add_row("Protection level", data["protection_level"])
    console.print(table)

    if data["threat_types"]:
        types = Table(title="Threats by Type")
        types.add_column("Type", style="cyan")
        types.add_column("Count", justify="right")
        for name, count in sorted(data["threat_types"].items(), key=lambda kv: -kv[1]):
            types.add_row(name, str(count))
        console.print(types)


@main.command()
@click.pass_context
def lexicon(ctx):
    """Show the loaded lexicon."""
    services = _services(ctx)
    lex = services.lexicon.lexicon
    table = Table(title=f"Lexicon {lex.version}")
    table.add_column("List", style="cyan")
    table.add_column("Indicators", justify="right")
    for name, count in lex.summary().items():
        table.add_row(name, str(count))
    console.print(table)
    if lex.is_empty:
        console.print("[yellow]Lexicon is empty: only URL reputation can flag messages.[/]")


# ── Config ───────────────────────────────────────────────────────────


@main.group()
def config():
    """Show or change the security configuration."""


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Print the active configuration."""
    import yaml

    services = _services(ctx)
    body = yaml.safe_dump(services.config.to_dict(), default_flow_style=False, sort_keys=False)
    console.print(Panel(body.rstrip(), title="Security Config"))
    console.print(f"Protection level: [bold]{services.policy.protection_level()}[/]")
    for tip in services.policy.recommendations():
        console.print(f"  [yellow]![/] {tip}")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx, key: str, value: str):
    """Set KEY to VALUE. Nested keys use dots, e.g. reputation.api_key."""
    import yaml

    from hideout.errors import ConfigError

    services = _services(ctx)
    try:
        new = services.config.with_setting(key, yaml.safe_load(value))
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e
    services.update_config(new)
    _save(services)
    console.print(f"[green]Set {key}[/] = {value}")


@main.command()
@click.pass_context
def emergency(ctx):
    """Switch to the strictest preset."""
    services = _services(ctx)
    services.emergency_mode()
    _save(services)
    console.print("[bold red]Emergency mode enabled.[/] Medium threats are now blocked.")


@main.command()
@click.pass_context
def normal(ctx):
    """Restore the default preset."""
    services = _services(ctx)
    services.normal_mode()
    _save(services)
    console.print("[green]Normal mode restored.[/]")
