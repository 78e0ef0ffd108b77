from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

_DEF_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logger(
    *,
    name: str = "live2d_planner",
    logs_dir: Optional[Path] = None,
    level: str = "INFO",
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    logger.propagate = False

    # Avoid duplicate handlers if re-initialized.
    if logger.handlers:
        return logger

    fmt = logging.Formatter(_DEF_FORMAT)

    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    if logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logs_dir / f"{name}.log", encoding="utf-8")
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def get_logger(name: str = "live2d_planner") -> logging.Logger:
    return logging.getLogger(name)
