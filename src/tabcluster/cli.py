"""CLI entry point for tabcluster."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config
from .exceptions import TabClusterError

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """tabcluster - Group open tabs into topics, deterministically."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


def _fail(ctx, error: Exception) -> None:
    console.print(f"[red]{escape(str(error))}[/]")
    ctx.exit(1)


def _run(config: dict, tabs: str, no_oracles: bool):
    from .ingest.loader import load_documents
    from .oracles import OracleSet, get_oracles
    from .pipeline import run_pipeline

    documents = load_documents(tabs)
    oracles = OracleSet() if no_oracles else get_oracles(config)
    configured = oracles.configured()
    if configured:
        console.print(f"[dim]Oracles: {', '.join(configured)}[/]")
    return run_pipeline(documents, config, oracles)


@cli.command()
@click.option("--path", default=None, help="Directory for config.yaml (default: ~/.tabcluster)")
@click.pass_context
def init(ctx, path):
    """Write a config.yaml with the default thresholds and weights."""
    import yaml

    target_dir = Path(path).expanduser().resolve() if path else Path("~/.tabcluster").expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    config_file = target_dir / "config.yaml"
    if config_file.exists():
        console.print(f"[yellow]Config already exists: {config_file}[/]")
        return

    config_text = yaml.dump(dict(DEFAULT_CONFIG), default_flow_style=False, allow_unicode=True, sort_keys=False)
    # Add commented options at the top
    header = (
        "# Claude API key for the claude oracles (or set ANTHROPIC_API_KEY env var)\n"
        "# claude_api_key: sk-ant-your-key-here\n\n"
        "# Oracle backends: none | claude (topic, label, verifier), none | sentence-transformers (embedding)\n"
        "# TABCLUSTER_ORACLES=claude sets topic, label and verifier at once\n\n"
        "# join_threshold must stay above split_threshold\n\n"
    )
    config_file.write_text(header + config_text, encoding="utf-8")
    console.print(f"[bold green]✓ Created config: {config_file}[/]")


@cli.command()
@click.argument("tabs", type=click.Path(exists=True, dir_okay=False))
@click.option("--min-size", default=1, show_default=True, help="Hide clusters smaller than this")
@click.option("--json", "json_out", default=None, type=click.Path(dir_okay=False), help="Write clusters as JSON")
@click.option("--no-oracles", is_flag=True, help="Ignore configured oracles, deterministic path only")
@click.option("--show-links", is_flag=True, help="Print the strongest intra-cluster links")
@click.pass_context
def cluster(ctx, tabs, min_size, json_out, no_oracles, show_links):
    """Cluster the tabs in TABS (JSON, JSONL or YAML)."""
    config = _get_config(ctx)
    try:
        run = _run(config, tabs, no_oracles)
    except TabClusterError as e:
        _fail(ctx, e)
        return

    shown = [c for c in run.clusters if c.size >= min_size]
    console.print(f"[green]✓ {len(run.documents)} tab(s) → {len(run.clusters)} cluster(s)[/]")

    table = Table(title="Clusters")
    table.add_column("#", style="dim", width=3)
    table.add_column("Name", style="cyan")
    table.add_column("Tabs", justify="right", style="green")
    table.add_column("Domain")
    table.add_column("Keywords", max_width=40)
    table.add_column("Titles", max_width=60)
    for c in shown:
        titles = [run.documents[i].title or run.documents[i].url for i in c.vector_indices]
        table.add_row(
            str(c.cluster_id),
            c.name,
            str(c.size),
            c.dominant_domain,
            ", ".join(c.keywords[:5]),
            "\n".join(t for t in titles[:4] if t),
        )
    console.print(table)

    hidden = len(run.clusters) - len(shown)
    if hidden:
        console.print(f"  [dim]({hidden} cluster(s) below --min-size hidden)[/]")

    if show_links:
        console.print(f"\n[green]✓ {len(run.relationships)} relationship(s)[/]")
        for r in run.relationships[:10]:
            console.print(f"  {r.doc_a} ↔ {r.doc_b} (score: {r.score:.3f}, {r.label})")

    if json_out:
        payload = {
            "clusters": [
                {**c.to_dict(), "urls": [run.documents[i].url for i in c.vector_indices]}
                for c in run.clusters
            ],
            "stats": run.stats,
        }
        Path(json_out).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"  Wrote {json_out}")


@cli.command()
@click.argument("tabs", type=click.Path(exists=True, dir_okay=False))
@click.argument("first", type=int)
@click.argument("second", type=int)
@click.pass_context
def explain(ctx, tabs, first, second):
    """Break down the similarity score between tabs FIRST and SECOND (0-based)."""
    from .clustering.similarity import SimilarityScorer
    from .config import EngineSettings
    from .features.builder import FeatureBuilder
    from .ingest.loader import load_documents

    config = _get_config(ctx)
    try:
        settings = EngineSettings.from_config(config)
        documents = load_documents(tabs)
    except TabClusterError as e:
        _fail(ctx, e)
        return
    for index in (first, second):
        if not 0 <= index < len(documents):
            _fail(ctx, IndexError(f"Tab index {index} out of range (0..{len(documents) - 1})"))
            return

    vectors = FeatureBuilder(settings).build(documents).vectors
    a, b = vectors[first], vectors[second]
    scorer = SimilarityScorer(
        settings.weights, settings.penalties, settings.strict_invariants, settings.features.simhash_bits
    )
    components = scorer.components(a, b)
    weights = settings.weights.as_dict()

    console.print(f"[bold]{documents[first].title or documents[first].url}[/]")
    console.print(f"[bold]{documents[second].title or documents[second].url}[/]\n")
    table = Table(title="Signals")
    table.add_column("Signal", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Weight", justify="right", style="dim")
    table.add_column("Contribution", justify="right", style="green")
    for name, value in components.items():
        table.add_row(name, f"{value:.3f}", f"{weights[name]:.2f}", f"{value * weights[name]:.4f}")
    console.print(table)

    bonus = scorer.identity_bonus(a, b)
    if bonus:
        console.print(f"  Identity bonus: +{bonus:.2f}")
    for name, factor in scorer.penalty_factors(a, b, components).items():
        console.print(f"  Penalty {name}: ×{factor:.2f}")
    score = scorer.score(a, b)
    thresholds = settings.thresholds
    if score >= thresholds.join_threshold:
        verdict = "[green]joins[/]"
    elif score >= thresholds.split_threshold:
        verdict = "[yellow]borderline[/]"
    else:
        verdict = "[red]apart[/]"
    console.print(f"\n[bold]Score: {score:.4f}[/] ({verdict})")


@cli.command()
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False))
@click.argument("tabs", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "json_out", default=None, type=click.Path(dir_okay=False), help="Write metrics as JSON")
@click.option("--no-oracles", is_flag=True, help="Ignore configured oracles, deterministic path only")
@click.pass_context
def evaluate(ctx, scenario, tabs, json_out, no_oracles):
    """Cluster TABS and score the result against the gold labels in SCENARIO."""
    from .evaluation.scenarios import evaluate_scenario, load_scenario

    config = _get_config(ctx)
    try:
        gold = load_scenario(scenario)
        run = _run(config, tabs, no_oracles)
        result = evaluate_scenario(gold, run)
    except TabClusterError as e:
        _fail(ctx, e)
        return

    table = Table(title=f"Evaluation: {result.scenario}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for key, value in result.to_record().items():
        if key == "scenario" or key.startswith("purity["):
            continue
        table.add_row(key, f"{value:.3f}" if isinstance(value, float) else str(value))
    console.print(table)

    if json_out:
        Path(json_out).write_text(json.dumps(result.to_record(), indent=2), encoding="utf-8")
        console.print(f"  Wrote {json_out}")


if __name__ == "__main__":
    cli()
