from __future__ import annotations
from typing import Iterable, List

from .storage import Storage

SUCCESS_MARKER = "_SUCCESS"


def part_name(reducer: int) -> str:
    return f"part-r-{reducer:05d}"


def write_part(storage: Storage, output_dir: str, reducer: int, lines: Iterable[str]) -> str:
    """Write one reducer's output lines; an empty reducer still gets a file."""
    path = storage.join(output_dir, part_name(reducer))
    body = "".join(f"{line}\n" for line in lines)
    storage.write_bytes(path, body.encode("utf-8"))
    return path


def write_success(storage: Storage, output_dir: str) -> str:
    path = storage.join(output_dir, SUCCESS_MARKER)
    storage.write_bytes(path, b"")
    return path


def prepare_output(storage: Storage, output_dir: str, *, overwrite: bool = False) -> None:
    """
    Refuse to write into an existing output directory unless ``overwrite``;
    with ``overwrite`` any output of an earlier (possibly failed) run is removed
    first, so a rerun never mixes with stale part files.
    """
    if storage.exists(output_dir):
        if not overwrite:
            raise FileExistsError(f"output path already exists: {output_dir}")
        storage.remove_tree(output_dir)


def list_parts(storage: Storage, output_dir: str) -> List[str]:
    return sorted(p for p in storage.ls(output_dir) if "part-r-" in p)
