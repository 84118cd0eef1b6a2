# analysis/motion/config.py
"""Runtime overrides for the motion dataclass configs.

A config module is located the same way the rest of the stack does it:
``MOTIONWATCH_CONFIG_MODULE`` first, then a couple of conventional names.
Its UPPER_CASE attributes override dataclass fields of the same (lower-case)
name, e.g. ``THRESHOLD = 20`` or ``GRACE_MS = 750``.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from importlib import import_module
from types import ModuleType
from typing import Any, Dict, Mapping, Optional, TypeVar

from common.geometry import Rect

from .model import BlobBounds

_LOG = logging.getLogger(__name__)

ENV_VAR = "MOTIONWATCH_CONFIG_MODULE"
_CANDIDATES = ("motionwatch_config", "config")

T = TypeVar("T")


def find_config_module(name: Optional[str] = None) -> Optional[ModuleType]:
    """Import the first config module that can be found, or None.

    An explicitly requested module (argument or env var) must import;
    the conventional fallbacks are optional.
    """
    explicit = name or os.environ.get(ENV_VAR)
    if explicit:
        return import_module(explicit)
    for candidate in _CANDIDATES:
        try:
            return import_module(candidate)
        except ImportError:
            continue
    return None


def load_overrides(name: Optional[str] = None) -> Dict[str, Any]:
    mod = find_config_module(name)
    if mod is None:
        return {}
    out = {k.lower(): getattr(mod, k) for k in dir(mod) if k.isupper() and not k.startswith("_")}
    _LOG.info("Loaded %d config override(s) from %s", len(out), mod.__name__)
    return out


def _coerce(current: Any, value: Any) -> Any:
    if isinstance(value, str) and (current is None or isinstance(current, Rect)):
        return Rect.parse(value)
    if isinstance(value, (tuple, list)) and (current is None or isinstance(current, Rect)):
        return Rect(*[int(v) for v in value])
    return value


def apply_overrides(cfg: T, overrides: Mapping[str, Any]) -> T:
    """Return a copy of dataclass ``cfg`` with matching fields replaced.

    ``BlobBounds`` fields (``min_width`` etc.) are applied to a nested
    ``blob_bounds`` field when present. Unknown keys are ignored.
    """
    if not overrides:
        return cfg
    changes: Dict[str, Any] = {}
    for f in dataclasses.fields(cfg):  # type: ignore[arg-type]
        if f.name in overrides:
            changes[f.name] = _coerce(getattr(cfg, f.name), overrides[f.name])
        elif f.name == "blob_bounds":
            bounds = getattr(cfg, f.name)
            if isinstance(bounds, BlobBounds):
                nested = apply_overrides(bounds, overrides)
                if nested != bounds:
                    changes[f.name] = nested
    return dataclasses.replace(cfg, **changes) if changes else cfg  # type: ignore[type-var]
