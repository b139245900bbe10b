"""Variant store module.

Per-test creative/metrics blob handling:
- normalize: migrate any stored shape to the canonical A..E document
- set_variant_image / set_variant_metric / append_ai_history: edits
- Forbidden: DB access, metric math, HTTP concerns
"""

from growthlab.variants.normalize import (
    VARIANT_KEYS,
    append_ai_history,
    get_variant_image,
    get_variant_images,
    insight_from_value,
    normalize,
    set_variant_image,
    set_variant_metric,
    try_parse_json,
)

__all__ = [
    "VARIANT_KEYS",
    "append_ai_history",
    "get_variant_image",
    "get_variant_images",
    "insight_from_value",
    "normalize",
    "set_variant_image",
    "set_variant_metric",
    "try_parse_json",
]
