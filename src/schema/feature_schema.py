from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple
import json
import os

import tomlkit

from ..utils.errors import SchemaError, UnrecognizedCategoryError

CATEGORICAL = "categorical"


@dataclass(frozen=True)
class FeatureField:
    name: str
    ordinal: int
    data_type: str = CATEGORICAL
    cardinality: Tuple[str, ...] = ()
    _index: Dict[str, int] = field(init=False, repr=False, compare=False, default_factory=dict)

    def __post_init__(self) -> None:
        cats = tuple(str(c) for c in self.cardinality)
        object.__setattr__(self, "cardinality", cats)
        # first occurrence wins if a label is listed twice
        idx: Dict[str, int] = {}
        for i, c in enumerate(cats):
            idx.setdefault(c, i)
        object.__setattr__(self, "_index", idx)

    @property
    def is_categorical(self) -> bool:
        return self.data_type.lower() == CATEGORICAL

    @property
    def size(self) -> int:
        return len(self.cardinality)

    def category_index(self, value: str) -> int:
        try:
            return self._index[value.strip()]
        except KeyError:
            raise UnrecognizedCategoryError(self.name, value) from None


@dataclass(frozen=True)
class FeatureSchema:
    fields: Tuple[FeatureField, ...]
    _by_ordinal: Dict[int, FeatureField] = field(init=False, repr=False, compare=False, default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        by_ord: Dict[int, FeatureField] = {}
        for f in self.fields:
            if f.ordinal in by_ord:
                raise SchemaError(f"duplicate ordinal {f.ordinal} ({by_ord[f.ordinal].name!r}, {f.name!r})")
            if f.is_categorical and f.size == 0:
                raise SchemaError(f"categorical field {f.name!r} declares no categories")
            by_ord[f.ordinal] = f
        object.__setattr__(self, "_by_ordinal", by_ord)

    def find_by_ordinal(self, ordinal: int) -> FeatureField:
        try:
            return self._by_ordinal[int(ordinal)]
        except KeyError:
            raise SchemaError(f"no field with ordinal {ordinal} in schema") from None

    def categorical_field(self, ordinal: int) -> FeatureField:
        f = self.find_by_ordinal(ordinal)
        if not f.is_categorical:
            raise SchemaError(f"field {f.name!r} (ordinal {ordinal}) is {f.data_type}, not categorical")
        return f

    @property
    def max_ordinal(self) -> int:
        return max((f.ordinal for f in self.fields), default=-1)


# ------------------------------ loading ------------------------------

def _field_from_dict(d: Mapping[str, Any]) -> FeatureField:
    try:
        name = str(d["name"])
        ordinal = int(d["ordinal"])
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaError(f"field entry needs 'name' and integer 'ordinal': {dict(d)!r}") from e
    data_type = str(d.get("dataType") or d.get("data_type") or CATEGORICAL)
    cardinality = d.get("cardinality") or []
    if isinstance(cardinality, str):
        cardinality = [c for c in cardinality.split(",") if c.strip()]
    return FeatureField(
        name=name,
        ordinal=ordinal,
        data_type=data_type,
        cardinality=tuple(str(c).strip() for c in cardinality),
    )


def schema_from_dict(obj: Mapping[str, Any]) -> FeatureSchema:
    raw_fields = obj.get("fields") or obj.get("attributes") or []
    if not isinstance(raw_fields, list) or not raw_fields:
        raise SchemaError("schema must contain a non-empty 'fields' list")
    return FeatureSchema(tuple(_field_from_dict(d) for d in raw_fields))


def load_schema(path: str | os.PathLike[str]) -> FeatureSchema:
    """
    Load a feature schema from JSON (``{"fields": [...]}``, camelCase
    ``dataType`` accepted) or TOML (``[[fields]]`` tables).
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise SchemaError(f"cannot read feature schema at {p}: {e}") from e

    if p.suffix.lower() == ".toml":
        try:
            raw = tomlkit.loads(text).unwrap()
        except Exception as e:
            raise SchemaError(f"invalid TOML feature schema at {p}") from e
    else:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaError(f"invalid JSON feature schema at {p}: {e.msg} (line {e.lineno})") from e
    if not isinstance(raw, dict):
        raise SchemaError(f"feature schema at {p} must be an object")
    return schema_from_dict(raw)
