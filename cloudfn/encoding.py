"""
Helpers for copying option values into wire-format dicts.

A value is present when its key exists and it is not None. False and 0
are present values.
"""

from typing import Any, Callable, Dict, Mapping, Optional


def is_present(src: Mapping[str, Any], key: str) -> bool:
    return key in src and src[key] is not None


def copy_if_present(dest: Dict[str, Any], src: Mapping[str, Any], *fields: str) -> None:
    """Copy each field from src to dest under the same name if present"""
    for name in fields:
        if is_present(src, name):
            dest[name] = src[name]


def convert_if_present(
    dest: Dict[str, Any],
    src: Mapping[str, Any],
    dest_field: str,
    src_field: str,
    converter: Optional[Callable[[Any], Any]] = None,
) -> None:
    """Copy src[src_field] to dest[dest_field], converting it on the way"""
    if not is_present(src, src_field):
        return
    value = src[src_field]
    dest[dest_field] = converter(value) if converter else value


def duration_from_seconds(seconds: int) -> str:
    """Format a number of seconds as a protobuf Duration string"""
    return f"{seconds}s"
