"""Gold scenarios: hand-labeled tab sets to check clustering quality against."""

import json
import logging
from pathlib import Path

import yaml

from ..exceptions import EvaluationInputError
from ..models import EvaluationResult, GoldScenario
from ..pipeline import ClusteringRun
from .metrics import evaluate_partition

logger = logging.getLogger(__name__)


def scenario_from_dict(data: dict, default_name: str = "") -> GoldScenario:
    """Build a scenario from ``{name, notes, tabs: [{url, gold}]}``."""
    if not isinstance(data, dict):
        raise EvaluationInputError("A scenario must be an object with a 'tabs' list")
    gold: dict[str, str] = {}
    for entry in data.get("tabs") or []:
        if not isinstance(entry, dict):
            continue
        url = str(entry.get("url") or "").strip()
        label = entry.get("gold")
        if not url or label is None or not str(label).strip():
            continue
        if url in gold:
            logger.warning(f"Duplicate url in scenario, keeping the first label: {url}")
            continue
        gold[url] = str(label).strip()
    name = str(data.get("name") or default_name)
    if not gold:
        raise EvaluationInputError(f"Scenario {name!r} has no valid {{url, gold}} entries")
    return GoldScenario(name=name, gold=gold, notes=str(data.get("notes") or ""))


def load_scenario(path: str | Path) -> GoldScenario:
    path = Path(path)
    if not path.exists():
        raise EvaluationInputError(f"No such scenario file: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise EvaluationInputError(f"Cannot parse {path}: {e}") from e
    return scenario_from_dict(data, default_name=path.stem)


def predictions_from_run(run: ClusteringRun) -> dict[str, str]:
    """url -> cluster id of the run. Tabs without a url are keyed by position."""
    predicted = {}
    for cluster in run.clusters:
        for position in cluster.vector_indices:
            url = run.documents[position].url or f"#{position}"
            predicted.setdefault(url, str(cluster.cluster_id))
    return predicted


def evaluate_scenario(scenario: GoldScenario, run: ClusteringRun) -> EvaluationResult:
    """Score a run against a scenario. Tabs the scenario does not label are ignored."""
    predicted = predictions_from_run(run)
    unlabeled = [url for url in predicted if url not in scenario.gold]
    if unlabeled:
        logger.info(f"Ignoring {len(unlabeled)} tabs without a gold label")
    predicted = {url: label for url, label in predicted.items() if url in scenario.gold}
    return evaluate_partition(scenario.gold, predicted, scenario=scenario.name)
