from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple
import shutil

# Optional deps (declared in pyproject)
# We import lazily so local FS still works if S3/MinIO libs aren't present.
try:
    import s3fs  # type: ignore
except Exception:
    s3fs = None  # type: ignore

# -------- Public interface (easy to mock in tests) --------

class BlobStore(Protocol):
    def exists(self, path: str) -> bool: ...
    def ls(self, prefix: str) -> List[str]: ...
    def read_bytes(self, path: str) -> bytes: ...
    def write_bytes(self, path: str, data: bytes) -> None: ...
    def remove_tree(self, path: str) -> None: ...
    def open(self, path: str, mode: str = "rb"): ...  # returns file-like (context manager)

@dataclass(frozen=True)
class StoreConfig:
    s3_enabled: bool = False
    s3_endpoint: Optional[str] = None
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_secure: bool = False

# -------- Helpers --------

def _is_s3_uri(p: str) -> bool:
    return p.startswith("s3://")

def _strip_scheme_file(p: str) -> str:
    return p[7:] if p.startswith("file://") else p

def _relative_parts(path: str, root: Optional[str]) -> Tuple[str, ...]:
    name = path.rstrip("/").rsplit("/", 1)[-1]
    if not root:
        return (name,)
    if _is_s3_uri(root):
        base = root.rstrip("/") + "/"
        rel = path[len(base):] if path.startswith(base) else name
        return tuple(p for p in rel.split("/") if p) or (name,)
    try:
        parts = Path(_strip_scheme_file(path)).relative_to(Path(_strip_scheme_file(root))).parts
    except ValueError:
        return (name,)
    return parts or (name,)

def is_data_file(path: str, root: Optional[str] = None) -> bool:
    """
    Hidden files and job markers (``_SUCCESS``, ``_logs``) are not input, nor
    is anything below a hidden or ``_``-prefixed directory under ``root``
    (``.ipynb_checkpoints/``, ``_temporary/``).
    """
    parts = _relative_parts(path, root)
    return all(p and not p.startswith((".", "_")) for p in parts)

# -------- Local FS backend --------

class LocalStore(BlobStore):
    def exists(self, path: str) -> bool:
        return Path(_strip_scheme_file(path)).exists()

    def ls(self, prefix: str) -> List[str]:
        base = Path(_strip_scheme_file(prefix))
        if base.is_file():
            return [str(base)]
        if not base.exists():
            return []
        return sorted(str(p) for p in base.rglob("*") if p.is_file())

    def read_bytes(self, path: str) -> bytes:
        return Path(_strip_scheme_file(path)).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        p = Path(_strip_scheme_file(path))
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def remove_tree(self, path: str) -> None:
        p = Path(_strip_scheme_file(path))
        if p.is_dir():
            shutil.rmtree(p)
        elif p.exists():
            p.unlink()

    def open(self, path: str, mode: str = "rb"):
        p = Path(_strip_scheme_file(path))
        if any(c in mode for c in "wax"):
            p.parent.mkdir(parents=True, exist_ok=True)
        return p.open(mode)

# -------- S3/MinIO backend via s3fs --------

class S3Store(BlobStore):
    def __init__(
        self,
        endpoint_url: Optional[str],
        key: Optional[str],
        secret: Optional[str],
        secure: bool = False,
    ) -> None:
        if s3fs is None:
            raise RuntimeError("s3fs is not installed. Install the 's3' extra.")
        client_kwargs = {}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        self._fs = s3fs.S3FileSystem(
            key=key or None,
            secret=secret or None,
            client_kwargs=client_kwargs,  # works for MinIO, too
            use_ssl=bool(secure),
        )

    def exists(self, path: str) -> bool:
        return self._fs.exists(path)

    def ls(self, prefix: str) -> List[str]:
        try:
            items = self._fs.find(prefix)
        except FileNotFoundError:
            return []
        return sorted(f"s3://{p}" if not p.startswith("s3://") else p for p in items)

    def read_bytes(self, path: str) -> bytes:
        with self._fs.open(path, "rb") as f:
            return f.read()

    def write_bytes(self, path: str, data: bytes) -> None:
        with self._fs.open(path, "wb") as f:
            f.write(data)

    def remove_tree(self, path: str) -> None:
        if self._fs.exists(path):
            self._fs.rm(path, recursive=True)

    def open(self, path: str, mode: str = "rb"):
        # Caller must close; usually used in a context manager
        return self._fs.open(path, mode)

# -------- Composite router --------

class Storage:
    """
    Routes ``s3://`` paths to S3Store and everything else (plain or
    ``file://``) to the local filesystem.
    """
    def __init__(self, cfg: Optional[StoreConfig] = None) -> None:
        self.cfg = cfg or StoreConfig()
        self._local = LocalStore()
        self._s3: Optional[S3Store] = None
        if self.cfg.s3_enabled:
            self._s3 = S3Store(
                endpoint_url=self.cfg.s3_endpoint,
                key=self.cfg.s3_access_key,
                secret=self.cfg.s3_secret_key,
                secure=self.cfg.s3_secure,
            )

    def _backend(self, path: str) -> BlobStore:
        if _is_s3_uri(path):
            if not self._s3:
                raise RuntimeError("S3 access requested but not enabled/configured.")
            return self._s3
        return self._local

    def exists(self, path: str) -> bool:
        return self._backend(path).exists(path)

    def ls(self, prefix: str) -> List[str]:
        return self._backend(prefix).ls(prefix)

    def read_bytes(self, path: str) -> bytes:
        return self._backend(path).read_bytes(path)

    def write_bytes(self, path: str, data: bytes) -> None:
        self._backend(path).write_bytes(path, data)

    def remove_tree(self, path: str) -> None:
        self._backend(path).remove_tree(path)

    def open(self, path: str, mode: str = "rb"):
        return self._backend(path).open(path, mode)

    def list_inputs(self, paths: List[str]) -> List[str]:
        """Expand files/directories into data files, sorted within each root."""
        out: List[str] = []
        for root in paths:
            files = [p for p in self.ls(root) if is_data_file(p, root)]
            if not files:
                raise FileNotFoundError(f"no input files under {root}")
            out.extend(files)
        return out

    @staticmethod
    def join(base: str, *parts: str) -> str:
        if _is_s3_uri(base):
            return "/".join([base.rstrip("/"), *[p.strip("/") for p in parts if p]])
        return str(Path(_strip_scheme_file(base)).joinpath(*parts))

# -------- Factory from RootCfg --------

def build_storage_from_config(root_cfg) -> Storage:
    # root_cfg is src.config_model.model.RootCfg
    s3 = root_cfg.storage.minio
    return Storage(StoreConfig(
        s3_enabled=bool(s3.enabled),
        s3_endpoint=s3.endpoint if s3.enabled else None,
        s3_access_key=s3.access_key if s3.enabled else None,
        s3_secret_key=s3.secret_key if s3.enabled else None,
        s3_secure=bool(s3.secure) if s3.enabled else False,
    ))
