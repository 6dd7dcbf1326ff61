"""Loading a device model from disk."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import aiofiles

from fleet_sim.core.errors import DataModelLoadError
from fleet_sim.core.logging_utils import get_module_logger

from .model import DeviceModel, build_device_model
from .parser import detect_format, parse_data_model

logger = get_module_logger("DataModelLoader")


def _build(text: str, path: Path) -> DeviceModel:
    fmt = detect_format(path)
    raw = parse_data_model(text, source=path, fmt=fmt)
    model = build_device_model(raw, source=path)
    logger.debug(
        "Loaded %s data model %s: %d objects, %d leaves",
        fmt,
        path,
        len(model.objects()),
        len(model.leaves()),
    )
    return model


async def load_device_model(path: Union[str, Path]) -> DeviceModel:
    """Read, parse and validate the data model at ``path``."""
    path = Path(path)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as fh:
            text = await fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise DataModelLoadError(f"cannot read data model: {exc}", source=path) from exc
    return _build(text, path)


def load_device_model_sync(path: Union[str, Path]) -> DeviceModel:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DataModelLoadError(f"cannot read data model: {exc}", source=path) from exc
    return _build(text, path)


__all__ = ["load_device_model", "load_device_model_sync"]
