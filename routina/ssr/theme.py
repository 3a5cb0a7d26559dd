"""
Theme for server-rendered pages.

A theme is a plain nested dict (palette, typography, spacing) so it can be
handed to the page tree and serialized as-is.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional

# Material colour swatches used by the palette.
indigo: Dict[str, str] = {
    "50": "#e8eaf6",
    "100": "#c5cae9",
    "200": "#9fa8da",
    "300": "#7986cb",
    "400": "#5c6bc0",
    "500": "#3f51b5",
    "600": "#3949ab",
    "700": "#303f9f",
    "800": "#283593",
    "900": "#1a237e",
    "A100": "#8c9eff",
    "A200": "#536dfe",
    "A400": "#3d5afe",
    "A700": "#304ffe",
}

pink: Dict[str, str] = {
    "50": "#fce4ec",
    "100": "#f8bbd0",
    "200": "#f48fb1",
    "300": "#f06292",
    "400": "#ec407a",
    "500": "#e91e63",
    "600": "#d81b60",
    "700": "#c2185b",
    "800": "#ad1457",
    "900": "#880e4f",
    "A100": "#ff80ab",
    "A200": "#ff4081",
    "A400": "#f50057",
    "A700": "#c51162",
}

PALETTE: Dict[str, Any] = {
    "primary": {
        "light": "#fff",
        "main": "#333",
        "dark": "#002984",
        "contrastText": "#fff",
    },
    "secondary": {
        "light": "#ff79b0",
        "main": "#ff4081",
        "dark": "#c60055",
        "contrastText": "#000",
    },
    "openTitle": indigo["400"],
    "protectedTitle": pink["400"],
    "type": "light",
}

TYPOGRAPHY: Dict[str, Any] = {
    "fontFamily": '"Roboto", "Helvetica", "Arial", sans-serif',
    "fontSize": 14,
}


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def create_theme(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Build a fresh theme dict.

    ``overrides`` is deep-merged on top of the defaults; callers may mutate
    the result freely.
    """
    theme: Dict[str, Any] = {
        "palette": copy.deepcopy(PALETTE),
        "typography": dict(TYPOGRAPHY),
        "spacing": {"unit": 8},
    }
    if overrides:
        _merge(theme, overrides)
    return theme
