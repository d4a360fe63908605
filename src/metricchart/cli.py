"""metricchart CLI: turn a JSON payload file into a chart spec locally."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

from .classifier import ShapeClassifier
from .config import Settings
from .models import Metric
from .tools import TOOL_REGISTRY, detect_pattern
from .transformer import transform_sync

console = Console()


def _load_payload(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path} is not valid JSON: {exc}", param_hint="FILE") from exc


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


@click.group()
@click.version_option(version="0.1.0", prog_name="metricchart")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log to stderr.")
def main(verbose: bool):
    """metricchart: build canonical chart specs from raw metric JSON."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default="Value", help="Metric name used for labels.")
@click.option("--current-value", type=float, default=None, help="Value shown by the KPI fallback.")
def classify(file: str, name: str, current_value: float | None):
    """Run the deterministic shape classifier on FILE."""
    payload = _load_payload(file)
    classifier = ShapeClassifier()
    rule = classifier.match(payload)
    console.print(f"[dim]rule:[/dim] [bold cyan]{rule.name}[/bold cyan]", highlight=False)
    spec = classifier.classify(payload, name, current_value)
    _print_json(spec.to_dict())


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def detect(file: str):
    """Print the detected data pattern of FILE."""
    _print_json(detect_pattern(_load_payload(file)))


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default="Value", help="Metric name.")
@click.option("--hint", default=None, help="Free-text request passed to the model.")
@click.option("--model", default=None, help="Model name (default: gpt-4o-mini or METRICCHART_MODEL).")
@click.option("--base-url", default=None, help="OpenAI-compatible API base URL.")
@click.option("--api-key", default=None, help="API key (or METRICCHART_API_KEY / OPENAI_API_KEY).")
@click.option("--max-iterations", type=int, default=None, help="Tool loop turn cap.")
def transform(
    file: str,
    name: str,
    hint: str | None,
    model: str | None,
    base_url: str | None,
    api_key: str | None,
    max_iterations: int | None,
):
    """Run the full transformer (tool loop with classifier fallback) on FILE."""
    settings = Settings.from_env().with_overrides(
        provider_model=model,
        base_url=base_url,
        api_key=api_key,
        max_iterations=max_iterations,
    )
    if not settings.agent_enabled:
        console.print("[yellow]No API key or base URL configured; using the classifier only.[/yellow]")

    metric = Metric(name=name, endpoint_config=_load_payload(file))
    result = transform_sync(metric, hint, settings=settings)

    style = "green" if result.success else "yellow"
    console.print(
        f"[{style}]source={result.source} success={result.success} "
        f"tool_calls={result.tool_calls}[/{style}]",
        highlight=False,
    )
    if result.error:
        console.print(f"[dim]{result.error}[/dim]", highlight=False)
    _print_json(result.data.to_dict() if result.data else None)


@main.command()
def tools():
    """List the tools exposed to the model."""
    from rich.table import Table as RichTable

    table = RichTable(title="Chart Tools", show_lines=False)
    table.add_column("Name", style="bold cyan")
    table.add_column("Parameters")
    table.add_column("Description")

    for contract in TOOL_REGISTRY.values():
        params = ", ".join(
            p.name if p.required else f"[dim]{p.name}?[/dim]" for p in contract.parameters
        )
        table.add_row(contract.name.value, params, contract.description)

    console.print(table)


if __name__ == "__main__":
    main()
