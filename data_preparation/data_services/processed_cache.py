"""
Processed-CSV caches tied to the raw file they were built from.

Each processed CSV gets a JSON sidecar recording the raw file's resolved
path, size and modification time, the options that shape the output (case
snapshot date, estimate column, vocabulary version) and a few ingestion
counts. A cache is reused only when the sidecar matches the current raw
file and options; anything else is reprocessed.
"""

import json
from pathlib import Path

import pandas as pd


def sidecar_path(processed_path: Path) -> Path:
    processed_path = Path(processed_path)
    return processed_path.with_name(processed_path.name + ".source.json")


def source_signature(raw_path: Path, **options) -> dict:
    raw_path = Path(raw_path)
    signature = {
        "raw_path": str(raw_path.resolve()),
        "options": {k: None if v is None else str(v) for k, v in sorted(options.items())},
    }
    if raw_path.exists():
        stat = raw_path.stat()
        signature["size"] = stat.st_size
        signature["mtime_ns"] = stat.st_mtime_ns
    return signature


def is_fresh(processed_path: Path, signature: dict) -> bool:
    processed_path = Path(processed_path)
    sidecar = sidecar_path(processed_path)
    if not processed_path.exists() or not sidecar.exists():
        return False

    with open(sidecar) as f:
        stored = json.load(f)

    if stored.get("raw_path") != signature["raw_path"]:
        return False
    if stored.get("options") != signature["options"]:
        return False
    # raw file gone: the cache is all that is left of it
    if "size" not in signature:
        return True
    return stored.get("size") == signature["size"] and stored.get("mtime_ns") == signature["mtime_ns"]


def write(processed_path: Path, df: pd.DataFrame, signature: dict, **stats) -> None:
    processed_path = Path(processed_path)
    processed_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(processed_path, index=False)
    with open(sidecar_path(processed_path), "w") as f:
        json.dump({**signature, "stats": stats}, f, indent=2)
    print(f"Saved to {processed_path}")


def read_stats(processed_path: Path) -> dict:
    with open(sidecar_path(processed_path)) as f:
        return json.load(f).get("stats", {})
