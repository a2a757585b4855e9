from pathlib import Path
from typing import List
import json
import pytest

from src.schema.feature_schema import FeatureField, FeatureSchema

@pytest.fixture(scope="session")
def project_root() -> Path:
    return Path(__file__).resolve().parents[1]

@pytest.fixture(scope="session")
def cfg_path(project_root: Path) -> Path:
    return project_root / "config" / "config.toml"

@pytest.fixture(scope="session")
def cfg(cfg_path: Path):
    from src.config_model.model import load_config
    return load_config(str(cfg_path))

@pytest.fixture
def tmp_out(tmp_path: Path) -> Path:
    d = tmp_path / "out"
    d.mkdir(parents=True, exist_ok=True)
    return d

@pytest.fixture
def ab_schema() -> FeatureSchema:
    # 0: id (not categorical), 1/2: {A,B}, 3: {x,y,z}, 4: single category
    return FeatureSchema((
        FeatureField("id", 0, "string"),
        FeatureField("left", 1, "categorical", ("A", "B")),
        FeatureField("right", 2, "categorical", ("A", "B")),
        FeatureField("tri", 3, "categorical", ("x", "y", "z")),
        FeatureField("mono", 4, "categorical", ("only",)),
    ))

def scenario_records() -> List[str]:
    # (A,A) x3, (A,B) x1, (B,A) x1, (B,B) x3 -> [[3,1],[1,3]]
    rows = [("A", "A")] * 3 + [("A", "B")] + [("B", "A")] + [("B", "B")] * 3
    return [f"r{i},{a},{b},x,only" for i, (a, b) in enumerate(rows)]

@pytest.fixture
def records() -> List[str]:
    return scenario_records()

@pytest.fixture
def schema_file(tmp_path: Path) -> Path:
    p = tmp_path / "schema.json"
    p.write_text(json.dumps({"fields": [
        {"name": "id", "ordinal": 0, "dataType": "string"},
        {"name": "left", "ordinal": 1, "dataType": "categorical", "cardinality": ["A", "B"]},
        {"name": "right", "ordinal": 2, "dataType": "categorical", "cardinality": ["A", "B"]},
        {"name": "tri", "ordinal": 3, "dataType": "categorical", "cardinality": ["x", "y", "z"]},
        {"name": "mono", "ordinal": 4, "dataType": "categorical", "cardinality": ["only"]},
    ]}), encoding="utf-8")
    return p
