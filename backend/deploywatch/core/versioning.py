"""
DeployWatch - Version Comparison
Dotted numeric versions only ("1.2.3"); no pre-release or build metadata.
"""
import re
from typing import List, Optional

from deploywatch.core.models import ChangeType

# Version recorded for endpoints that never advertised one
INITIAL_SENTINEL = "0.0.0"

_NUMERIC = re.compile(r"[0-9]+")


def _parse_parts(version: str) -> List[int]:
    """Split on '.' into integers; raises ValueError on any non-numeric part"""
    parts = []
    for raw in version.split("."):
        if not _NUMERIC.fullmatch(raw):
            raise ValueError(f"Non-numeric version component {raw!r} in {version!r}")
        parts.append(int(raw))
    return parts


def compare_versions(v1: Optional[str], v2: Optional[str]) -> int:
    """
    Compare two dotted numeric versions.

    Returns -1, 0 or 1. Missing trailing components count as 0, so
    "1.2" == "1.2.0". A None or non-numeric input is incomparable and
    reports 0, which never raises an ordering violation.
    """
    if v1 is None or v2 is None:
        return 0

    try:
        a = _parse_parts(v1)
        b = _parse_parts(v2)
    except ValueError:
        return 0

    length = max(len(a), len(b))
    a += [0] * (length - len(a))
    b += [0] * (length - len(b))

    for x, y in zip(a, b):
        if x != y:
            return 1 if x > y else -1
    return 0


def classify_change(previous: Optional[str], new: str) -> ChangeType:
    """
    Classify the transition previous -> new.

    Only the major and minor components are inspected; anything else
    that changed is a patch. Minor is compared only when both versions
    have at least two components.
    """
    if previous is None or previous == INITIAL_SENTINEL:
        return ChangeType.INITIAL

    try:
        old_parts = previous.split(".")
        new_parts = new.split(".")

        if _component(old_parts[0]) != _component(new_parts[0]):
            return ChangeType.MAJOR

        if len(old_parts) >= 2 and len(new_parts) >= 2:
            if _component(old_parts[1]) != _component(new_parts[1]):
                return ChangeType.MINOR

        return ChangeType.PATCH
    except (ValueError, AttributeError):
        return ChangeType.UNKNOWN


def _component(raw: str) -> int:
    if not _NUMERIC.fullmatch(raw):
        raise ValueError(raw)
    return int(raw)
