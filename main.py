"""Ashbound — dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Ashbound dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean saved worlds and create the demo world")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for event magnitude/duration draws")
    parser.add_argument("--log-level", default="info",
                        choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The reloaded server process reads these back through backend.app
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())
    if args.seed is not None:
        os.environ["ASHBOUND_SEED"] = str(args.seed)

    if args.demo:
        from backend import storage
        from backend.demo import create_demo_world
        storage.init_storage(args.data_dir or ROOT / "data")
        create_demo_world()
        print("Demo world saved; load it with POST /api/worlds/the-ember-vale/load")

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    uvicorn.run(
        "backend.app:app",
        host=HOST,
        port=int(BACKEND_PORT),
        reload=True,
        reload_dirs=[str(ROOT / "ashbound"), str(ROOT / "backend")],
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
