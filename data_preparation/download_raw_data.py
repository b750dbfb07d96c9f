import sys
import time
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

from . import config

session = requests.Session()
retry = Retry(
    total=5,
    backoff_factor=2,
    allowed_methods=["GET"],
    status_forcelist=[502, 503, 504],
    raise_on_status=False,
)
session.mount("https://", HTTPAdapter(max_retries=retry))


def stream_with_resume(url: str, out_path: Path, chunk=1 << 20):
    done = out_path.exists() and out_path.stat().st_size or 0
    headers = {"Range": f"bytes={done}-"} if done else {}
    with session.get(url, headers=headers, stream=True, timeout=(10, 120)) as r:
        if r.status_code not in (200, 206):
            r.raise_for_status()
        # server ignored the range request, start over
        if r.status_code == 200:
            done = 0
        total = (
            int(r.headers.get("Content-Range", "bytes */0").split("/")[-1])
            if "Content-Range" in r.headers
            else int(r.headers.get("Content-Length", 0))
        )
        mode = "ab" if done else "wb"
        start_time, bytes_so_far = time.time(), done
        with open(out_path, mode) as f:
            for chunk_bytes in r.iter_content(chunk_size=chunk):
                if chunk_bytes:
                    f.write(chunk_bytes)
                    bytes_so_far += len(chunk_bytes)
                    speed = bytes_so_far / 1024 / max(time.time() - start_time, 0.1)
                    sys.stdout.write(
                        f"\r{out_path.name}: "
                        f"{bytes_so_far/1e6:,.1f} MB / {total/1e6:,.1f} MB "
                        f"({speed:,.0f} KB/s)"
                    )
                    sys.stdout.flush()
    print()


def fetch(url: str, out_path: Path, force: bool = False) -> Path:
    """
    Download url to out_path once. A file already on disk is the cache and
    is returned untouched unless force is set.
    """
    out_path = Path(out_path)
    if out_path.exists() and not force:
        print(f"Using cached file {out_path}")
        return out_path

    out_path.parent.mkdir(parents=True, exist_ok=True)
    partial = out_path.with_name(out_path.name + ".part")
    if force and partial.exists():
        partial.unlink()

    print(f"Downloading {url}")
    stream_with_resume(url, partial)
    partial.replace(out_path)
    print(f"Saved: {out_path}")
    return out_path


SOURCES = {
    "incidents": (config.INCIDENT_URL, config.INCIDENT_RAW_PATH),
    "cases": (config.COVID_URL, config.COVID_RAW_PATH),
    "economic": (config.ECONOMIC_URL, config.ECONOMIC_RAW_PATH),
    "population": (config.POPULATION_URL, config.POPULATION_RAW_PATH),
}


def main(force: bool = False, paths: dict | None = None, sources=None) -> dict:
    """
    Fetch each source (all by default) to its configured raw path, or to
    paths[name] when the caller points that source somewhere else.
    """
    paths = paths or {}
    print("Starting raw data download...")
    fetched = {}
    for name in tqdm(sources or list(SOURCES), desc="sources"):
        url, default_path = SOURCES[name]
        fetched[name] = fetch(url, paths.get(name, default_path), force)
    print("All raw data downloaded.")
    return fetched


if __name__ == "__main__":
    main(force="--force" in sys.argv[1:])
