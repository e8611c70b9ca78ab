# src/flow_sim/utils.py
from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import matplotlib.image as mpimg
import numpy as np

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass
class FlowResult:
    """Common container for FLOW outputs."""

    colors: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None


def clock_str(moment: datetime) -> str:
    """``HH:MM:SS.mmm`` wall-clock time."""
    return moment.strftime("%H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def duration_str(seconds: float) -> str:
    """``HH:MM:SS.mmm`` for a duration in seconds."""
    millis = int(round(seconds * 1000))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def next_output_path(directory: str | os.PathLike[str], ext: str = "png") -> Path:
    """
    Next free index-named file in ``directory``: 00001.png, 00002.png, ...
    Files whose stem is not a number are ignored.
    """
    out_dir = Path(directory)
    ext = ext.lstrip(".").lower()
    last = 0
    if out_dir.exists():
        if not out_dir.is_dir():
            raise NotADirectoryError(f"{out_dir} is not a directory")
        for path in out_dir.iterdir():
            if path.suffix.lstrip(".").lower() == ext and re.fullmatch(r"\d+", path.stem):
                last = max(last, int(path.stem))
    return out_dir / f"{last + 1:05d}.{ext}"


def save_image(path: str | os.PathLike[str], image: np.ndarray) -> None:
    """Writes an RGB or RGBA uint8 image (``(height, width, 3|4)``) as PNG."""
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"Expected (height, width, 3|4) image, got shape {image.shape}")
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    mpimg.imsave(str(path), image.astype(np.uint8))


def save_result(
    path: str | os.PathLike[str], result: FlowResult, *, overwrite: bool = True
) -> None:
    """Serialize a FlowResult to .npz."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    if result.colors is not None:
        out["colors"] = np.asarray(result.colors, dtype=np.uint8)

    # numpy arrays go to the top level, everything else stays in meta
    meta = result.meta or {}
    meta_clean = {}
    for key, value in meta.items():
        if isinstance(value, np.ndarray):
            out[key] = value
        else:
            meta_clean[key] = value
    out["meta"] = meta_clean

    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(path, **out)


def load_result(path: str | os.PathLike[str]) -> FlowResult:
    """Load a .npz written by save_result."""
    data = np.load(path, allow_pickle=True)
    colors = data["colors"].astype(np.uint8) if "colors" in data else None
    meta: Dict[str, Any] = {}
    if "meta" in data:
        meta = dict(data["meta"].item())
    for key in data.files:
        if key not in ("colors", "meta"):
            meta[key] = data[key]
    return FlowResult(colors=colors, meta=meta)


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")
