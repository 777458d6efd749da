"""
``{{variable}}`` substitution for personalizing template text.

Values are inserted as plain strings; escaping is the caller's job.
"""
import re
from typing import Any, Dict, List

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def interpolate(text: str, data: Dict[str, Any]) -> str:
    """Replace each ``{{key}}`` with ``str(data[key])``; unknown or None keys stay verbatim."""

    def replace(match):
        value = data.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return VARIABLE_PATTERN.sub(replace, text)


def extract_variables(text: str) -> List[str]:
    variables = []
    for name in VARIABLE_PATTERN.findall(text):
        if name not in variables:
            variables.append(name)
    return variables


def interpolate_component(component: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a builder component with its string props interpolated."""
    interpolated = dict(component)
    props = interpolated.get("props")
    if isinstance(props, dict):
        interpolated["props"] = {
            key: interpolate(value, data) if isinstance(value, str) else value
            for key, value in props.items()
        }
    return interpolated
