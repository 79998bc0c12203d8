from __future__ import annotations

from collections.abc import Mapping


def merge_maps(base: Mapping[str, str] | None, overlay: Mapping[str, str] | None) -> dict[str, str]:
    """Return a new dict with every key of ``base`` and ``overlay``.

    Keys present in both take the value from ``overlay``. Neither input is mutated.
    """
    merged: dict[str, str] = dict(base or {})
    merged.update(overlay or {})
    return merged


def without_prefix(mapping: Mapping[str, str] | None, prefix: str) -> dict[str, str]:
    """Return a copy of ``mapping`` without keys under the ``prefix/`` domain."""
    return {k: v for k, v in (mapping or {}).items() if not k.startswith(f"{prefix}/")}
