from __future__ import annotations

from .feature_schema import FeatureField, FeatureSchema, load_schema, schema_from_dict
