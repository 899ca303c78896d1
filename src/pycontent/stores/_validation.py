"""Input checks shared by the domain stores."""

from __future__ import annotations

from pycontent.exceptions import ContentValidationError


def validate_node_id(node_id: object) -> int:
    if isinstance(node_id, bool) or not isinstance(node_id, int) or node_id <= 0:
        raise ContentValidationError(f"node id must be a positive integer, got {node_id!r}")
    return node_id


def validate_choice(name: str, value: object, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ContentValidationError(f"{name} must be one of {choices}, got {value!r}")
    return str(value)
