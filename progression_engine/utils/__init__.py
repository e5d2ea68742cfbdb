"""Utility modules for the progression engine."""

from progression_engine.utils.timestamps import ensure_utc_aware, from_iso, to_iso, utc_now


__all__ = ["ensure_utc_aware", "from_iso", "to_iso", "utc_now"]
