from yaml import safe_load
from typing import Any, Dict
import os


SCENARIOS_PATH = os.path.join(os.path.dirname(__file__), 'configs.yaml')


def load_scenarios(path: str = SCENARIOS_PATH) -> Dict[str, Dict[str, Any]]:
    """
    Read a scenario table from YAML.

    Each top-level key is a scenario name mapping to its layout entry plus
    optional 'env' and 'training' override sections.
    """
    with open(path, 'r') as f:
        table = safe_load(f) or {}
    if not isinstance(table, dict):
        raise ValueError(f"{path}: expected a mapping of scenario names, got {type(table).__name__}")
    for name, entry in table.items():
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: scenario {name!r} must be a mapping")
    return table


# Scenarios shipped with the package
CONFIGS: Dict[str, Dict[str, Any]] = load_scenarios()
