from __future__ import annotations
from typing import Any, List, Literal, Optional
from pathlib import Path
import os
import tomllib
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)


# ---------- Leaf models ----------

class EnvCfg(BaseModel):
    project_name: str = "cramer-correlation"


class JobCfg(BaseModel):
    input_paths: List[str] = []
    output_path: str = "data/output/cramer"
    field_delim_regex: str = ","
    field_delim_out: str = ","
    source_attributes: List[int] = []
    dest_attributes: List[int] = []
    num_mappers: int = Field(4, ge=1)
    num_reducers: int = Field(1, ge=1)
    split_size: int = Field(100_000, ge=1)
    executor: Literal["serial", "thread", "process"] = "process"
    overwrite: bool = False

    @field_validator("input_paths", mode="before")
    @classmethod
    def _paths_from_str(cls, v: Any) -> Any:
        # TOML may give a single path
        return [v] if isinstance(v, str) else v

    @field_validator("source_attributes", "dest_attributes", mode="before")
    @classmethod
    def _ordinals_from_str(cls, v: Any) -> Any:
        # accept "1,2,3" like the original job properties
        if isinstance(v, str):
            return [int(x) for x in v.split(",") if x.strip()]
        return v


class SchemaCfg(BaseModel):
    feature_schema_file_path: str = "config/feature_schema.json"


class ScoringCfg(BaseModel):
    correlation_scale: int = Field(1000, ge=1)
    undefined_marker: str = "undefined"
    include_chi2: bool = False


class StorageMinioCfg(BaseModel):
    enabled: bool = False
    endpoint: str = "http://minio:9000"
    access_key: str = "admin"
    secret_key: str = "admin"
    secure: bool = False


class StorageCfg(BaseModel):
    minio: StorageMinioCfg = StorageMinioCfg()


class LoggingCfg(BaseModel):
    name: str = "cramer"
    level: str = "INFO"
    structured_json: bool = True
    debug_on: bool = False


# ---------- Root ----------

class RootCfg(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    env: EnvCfg = EnvCfg()
    job: JobCfg = JobCfg()
    schema_: SchemaCfg = Field(SchemaCfg(), alias="schema")
    scoring: ScoringCfg = ScoringCfg()
    storage: StorageCfg = StorageCfg()
    logging: LoggingCfg = LoggingCfg()

    # Private attribute (not a field); used only to resolve relative paths
    _config_dir: Optional[Path] = PrivateAttr(default=None)

    @property
    def feature_schema(self) -> SchemaCfg:
        return self.schema_

    def require_runnable(self) -> "RootCfg":
        """Checks that only matter when a job is actually launched."""
        missing = []
        if not self.job.input_paths:
            missing.append("job.input_paths")
        if not self.job.source_attributes:
            missing.append("job.source_attributes")
        if not self.job.dest_attributes:
            missing.append("job.dest_attributes")
        if missing:
            raise ValueError(f"configuration incomplete, set: {', '.join(missing)}")
        return self

    @model_validator(mode="after")
    def _normalize_paths(self):
        if self._config_dir:
            # A config file inside a "config" folder resolves paths against the
            # project root (its parent); anywhere else, against its own folder.
            base_dir = self._config_dir.parent if self._config_dir.name.lower() == "config" else self._config_dir

            def _abs(p: str) -> str:
                if p.startswith("s3://"):
                    return p
                pp = Path(p)
                return str(pp if pp.is_absolute() else (base_dir / pp).resolve())

            self.job.input_paths = [_abs(p) for p in self.job.input_paths]
            self.job.output_path = _abs(self.job.output_path)
            self.schema_.feature_schema_file_path = _abs(self.schema_.feature_schema_file_path)
        return self

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str]) -> "RootCfg":
        p = Path(path)
        # utf-8-sig strips a BOM some editors leave behind
        text = p.read_text(encoding="utf-8-sig")
        try:
            raw = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            snippet = text.strip()[:80].replace("\n", "\\n")
            raise RuntimeError(f"Failed to parse TOML at {p}. First chars: {snippet!r}") from e

        cfg = cls.model_validate(raw)
        cfg._config_dir = p.parent.resolve()
        return cfg._normalize_paths()

    @classmethod
    def load(cls, path: str | None = None) -> "RootCfg":
        final = Path(path or os.environ.get("CRAMER_CFG", "config/config.toml")).resolve()
        return cls.from_toml(final)

    def with_job_overrides(self, **updates: Any) -> "RootCfg":
        """Copy with non-None job fields replaced (CLI overrides)."""
        upd = {k: v for k, v in updates.items() if v is not None}
        if not upd:
            return self
        job = JobCfg.model_validate({**self.job.model_dump(), **upd})
        out = self.model_copy(update={"job": job})
        out._config_dir = self._config_dir
        return out


def load_config(path: str | None = None) -> RootCfg:
    return RootCfg.load(path)
