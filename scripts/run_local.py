from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_ENTRYPOINT = REPO_ROOT / "backend" / "server.py"
DATA_DIR = REPO_ROOT / "data"


def build_env(port: int | None = None, data_path: str | None = None) -> dict:
    """Environment for the API process; explicit options override inherited values."""
    env = dict(os.environ)
    if port is not None:
        env["PORT"] = str(port)
    if data_path:
        env["DATA_PATH"] = str(Path(data_path).resolve())
    return env


def run_local(port: int | None = None, data_path: str | None = None) -> int:
    if not BACKEND_ENTRYPOINT.is_file():
        print(
            f"[run-local] ERROR: backend entrypoint missing: {BACKEND_ENTRYPOINT}",
            file=sys.stderr,
            flush=True,
        )
        return 1

    data_dir = Path(data_path) if data_path else DATA_DIR
    if not data_dir.is_dir():
        print(f"[run-local] ERROR: data directory not found: {data_dir}", file=sys.stderr, flush=True)
        return 1

    env = build_env(port, data_path)
    print(
        f"[run-local] Starting degree builder API on port {env.get('PORT', '5000')} "
        f"(data: {data_dir})...",
        flush=True,
    )
    try:
        proc = subprocess.run([sys.executable, str(BACKEND_ENTRYPOINT)], cwd=str(REPO_ROOT), env=env)
        return proc.returncode
    except KeyboardInterrupt:
        print("\n[run-local] Stopped by user.", flush=True)
        return 130


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Run the degree builder API locally.")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: $PORT or 5000)")
    parser.add_argument("--data", default=None, help="Data directory (default: $DATA_PATH or ./data)")
    opts = parser.parse_args(args)
    return run_local(port=opts.port, data_path=opts.data)


if __name__ == "__main__":
    raise SystemExit(main())
