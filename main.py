"""Arkham Keeper dev launcher. Starts the API server in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Arkham Keeper dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean sessions and create a demo session")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", default=BACKEND_PORT)
    args = parser.parse_args()

    data_dir = args.data_dir or Path("data")
    if args.demo:
        from arkham_keeper.storage import Storage
        from backend.demo import create_demo_data
        session = create_demo_data(Storage(data_dir))
        print(f"Demo session ready: {session.id}")

    # Build env for the subprocess so the backend picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir.resolve())

    proc = subprocess.Popen(
        ["uvicorn", "backend.app:app", "--reload", "--host", args.host, "--port", str(args.port)],
        cwd=ROOT, env=env,
    )

    def shutdown(*_):
        print("\nShutting down...")
        proc.terminate()
        proc.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{args.port} ...")
    proc.wait()


if __name__ == "__main__":
    main()
