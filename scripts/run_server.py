from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import uvicorn

REPO_ROOT = Path(__file__).resolve().parents[1]


def _ensure_repo_on_path() -> None:
    # `python scripts/run_server.py` puts scripts/ first on sys.path.
    root = str(REPO_ROOT)
    if root not in sys.path:
        sys.path.insert(0, root)


def main(argv: list[str] | None = None) -> int:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None, help="YAML overlay (default: config/app.yaml)")
    pre.add_argument("--env-file", default=None)
    known, _ = pre.parse_known_args(argv)

    if known.config:
        # The app factory re-reads settings inside uvicorn (and in reload workers).
        os.environ["LIVE2D_CONFIG_FILE"] = str(Path(known.config).resolve())

    _ensure_repo_on_path()
    from apps.live2d_planner.core.settings import load_settings

    settings = load_settings(env_file=Path(known.env_file) if known.env_file else None)

    parser = argparse.ArgumentParser(
        parents=[pre], description="Serve the Live2D timeline planner with uvicorn"
    )
    parser.add_argument("--host", default=settings.server_host)
    parser.add_argument("--port", type=int, default=settings.server_port)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument("--access-log", action="store_true")
    parser.add_argument("--log-level", default=settings.log_level.lower())
    args = parser.parse_args(argv)

    try:
        uvicorn.run(
            "apps.live2d_planner.server.main:create_app",
            factory=True,
            host=args.host,
            port=int(args.port),
            reload=bool(args.reload),
            reload_dirs=[str(REPO_ROOT / "apps")] if args.reload else None,
            access_log=bool(args.access_log),
            log_level=str(args.log_level),
        )
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
