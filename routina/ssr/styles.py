"""
Style sheet registry.

Components register their styles while rendering; the registry's text is
then inlined into the document so the first paint is styled.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

# Unitless properties that must not get a "px" suffix.
_UNITLESS = frozenset({
    "flex", "flex-grow", "flex-shrink", "font-weight", "line-height",
    "opacity", "order", "z-index", "zoom",
})


def _property(name: str) -> str:
    return _CAMEL_RE.sub("-", name).lower()


def _value(prop: str, value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value != 0 and prop not in _UNITLESS:
            return f"{value}px"
    return str(value)


class StyleSheet:
    """One component's rules: selector → declarations."""

    def __init__(self, name: str, rules: Mapping[str, Mapping[str, Any]]):
        self.name = name
        self.rules: Dict[str, Dict[str, Any]] = {sel: dict(decl) for sel, decl in rules.items()}

    def to_string(self) -> str:
        blocks = []
        for selector, declarations in self.rules.items():
            lines = []
            for name, value in declarations.items():
                prop = _property(name)
                lines.append(f"  {prop}: {_value(prop, value)};")
            blocks.append(selector + " {\n" + "\n".join(lines) + "\n}")
        return "\n".join(blocks)


class StyleSheetRegistry:
    """
    Collects the style sheets used during one render.

    Create one per request; class names are numbered per registry.
    """

    def __init__(self):
        self._sheets: List[StyleSheet] = []
        self._counter = 0

    def __len__(self) -> int:
        return len(self._sheets)

    def add(self, sheet: StyleSheet) -> StyleSheet:
        self._sheets.append(sheet)
        return sheet

    def create_style_sheet(
        self, name: str, styles: Mapping[str, Mapping[str, Any]]
    ) -> Dict[str, str]:
        """
        Register ``styles`` (rule key → declarations) under generated class
        names and return the key → class name mapping.
        """
        classes: Dict[str, str] = {}
        rules: Dict[str, Mapping[str, Any]] = {}
        for key, declarations in styles.items():
            self._counter += 1
            class_name = f"{name}-{key}-{self._counter}"
            classes[key] = class_name
            rules[f".{class_name}"] = declarations
        self.add(StyleSheet(name, rules))
        return classes

    def to_string(self) -> str:
        return "\n".join(sheet.to_string() for sheet in self._sheets if sheet.rules)
