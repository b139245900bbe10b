"""Variant store normalization.

A test's creative data lives in a loosely-shaped JSON blob that has been
written by several generations of the editor. This module converts any of
those shapes into the canonical document:

- "A".."E": per-variant records, each with assets.images (list of URLs)
- assets.images: {key: first image} map, rebuilt from the per-variant lists
- insight / assets.insight: latest AI insight as display text (mirrored)
- ai.latest: latest AI result in its original shape
- ai.history: previous results, most-recent-first, timestamped

Every function here is pure and tolerant: malformed input degrades to an
empty document rather than raising.
"""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime
from typing import Any

from growthlab.models.domain import Insight, StructuredInsight, TextInsight

logger = logging.getLogger(__name__)

VARIANT_KEYS: tuple[str, ...] = ("A", "B", "C", "D", "E")
METRIC_KEYS: tuple[str, ...] = ("ctr", "cr")

HISTORY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _safe_json_parse(raw: Any) -> Any:
    """Parse a stored variants blob, returning None on anything unusable."""
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        logger.debug(f"Ignoring malformed variants JSON: {raw[:80]!r}")
        return None


def _check_variant_key(key: str) -> None:
    if key not in VARIANT_KEYS:
        raise ValueError(f"Unknown variant key: {key!r}")


def normalize(raw_variants: Any, legacy_images: Any = None) -> dict:
    """Build the canonical variant document.

    Args:
        raw_variants: Stored blob: a dict, a JSON string, None, or garbage.
        legacy_images: Optional flat list of image URLs ordered A..E, from
            tests created before per-variant assets existed.

    Returns:
        A new dict with all five variant keys. The input is never mutated.
    """
    parsed = _safe_json_parse(raw_variants)
    doc: dict = copy.deepcopy(parsed) if isinstance(parsed, dict) else {}

    assets = doc.get("assets")
    doc["assets"] = dict(assets) if isinstance(assets, dict) else {}

    legacy_map = doc["assets"].get("images")
    if not isinstance(legacy_map, dict):
        legacy_map = {}
    legacy_list = list(legacy_images) if isinstance(legacy_images, (list, tuple)) else []

    images_map: dict[str, str] = {}

    for index, key in enumerate(VARIANT_KEYS):
        variant = doc.get(key)
        variant = dict(variant) if isinstance(variant, dict) else {}
        variant_assets = variant.get("assets")
        variant_assets = dict(variant_assets) if isinstance(variant_assets, dict) else {}

        existing = variant_assets.get("images")
        images = [u for u in existing if _is_non_empty_string(u)] if isinstance(existing, list) else []

        if not images:
            # Map entry wins over the positional list
            map_url = legacy_map.get(key)
            list_url = legacy_list[index] if index < len(legacy_list) else None
            if _is_non_empty_string(map_url):
                images = [map_url]
            elif _is_non_empty_string(list_url):
                images = [list_url]

        variant_assets["images"] = images
        variant["assets"] = variant_assets
        doc[key] = variant

        if images:
            images_map[key] = images[0]

    doc["assets"]["images"] = images_map

    if not _is_non_empty_string(doc.get("insight")):
        assets_insight = doc["assets"].get("insight")
        doc["insight"] = assets_insight if _is_non_empty_string(assets_insight) else ""
    # insight wins when both are set
    doc["assets"]["insight"] = doc["insight"]

    ai = doc.get("ai")
    ai = dict(ai) if isinstance(ai, dict) else {}
    if not isinstance(ai.get("history"), list):
        ai["history"] = []

    if ai.get("latest") is None:
        legacy_ai = doc["assets"].get("ai")
        last_json = legacy_ai.get("last_json") if isinstance(legacy_ai, dict) else None
        if last_json:
            ai["latest"] = last_json
        elif _is_non_empty_string(doc["assets"].get("insight")):
            ai["latest"] = doc["assets"]["insight"]
        elif doc.get("ai_mixer_v3"):
            ai["latest"] = doc["ai_mixer_v3"]
        else:
            ai["latest"] = None
    doc["ai"] = ai

    return doc


def get_variant_images(document: Any, key: str) -> list[str]:
    """Get all non-blank images for a variant."""
    doc = normalize(document)
    images = doc.get(key, {}).get("assets", {}).get("images", [])
    return [u for u in images if _is_non_empty_string(u)]


def get_variant_image(document: Any, key: str) -> str:
    """Get the representative image for a variant, or "" when it has none."""
    doc = normalize(document)
    images = doc.get(key, {}).get("assets", {}).get("images", [])
    if images:
        return images[0]
    return doc["assets"]["images"].get(key, "")


def set_variant_image(document: Any, key: str, url: str | None) -> dict:
    """Replace a variant's image list with a single URL.

    A blank URL empties the list and drops the key from the top-level map.

    Raises:
        ValueError: If key is not one of A..E.
    """
    _check_variant_key(key)
    doc = normalize(document)

    if _is_non_empty_string(url):
        doc[key]["assets"]["images"] = [url]
        doc["assets"]["images"][key] = url
    else:
        doc[key]["assets"]["images"] = []
        doc["assets"]["images"].pop(key, None)

    return doc


def set_variant_metric(document: Any, key: str, metric_key: str, value: Any) -> dict:
    """Store a raw metric value (as typed by the user) on a variant.

    None or a blank string removes the metric.

    Raises:
        ValueError: If key or metric_key is unknown.
    """
    _check_variant_key(key)
    if metric_key not in METRIC_KEYS:
        raise ValueError(f"Unknown metric key: {metric_key!r}")

    doc = normalize(document)
    if value is None or (isinstance(value, str) and not value.strip()):
        doc[key].pop(metric_key, None)
    else:
        doc[key][metric_key] = value
    return doc


def try_parse_json(text: Any) -> Any:
    """Parse text that looks like a JSON object or array.

    Returns None unless the trimmed text starts with "{" or "[" and
    decodes cleanly. Used to tell structured AI output from free text
    in persisted insights.
    """
    if not _is_non_empty_string(text):
        return None
    stripped = text.strip()
    if not (stripped.startswith("{") or stripped.startswith("[")):
        return None
    try:
        return json.loads(stripped)
    except (ValueError, RecursionError):
        return None


def serialize_insight(value: Any) -> str:
    """Render an AI result as the display string kept in `insight`."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def insight_from_value(value: Any) -> Insight | None:
    """Tag a raw AI result as text or structured.

    Persisted strings are sniffed with try_parse_json; fresh results
    should be tagged where they are produced instead.
    """
    if value is None or isinstance(value, (TextInsight, StructuredInsight)):
        return value
    if isinstance(value, (dict, list)):
        return StructuredInsight(data=value)
    if isinstance(value, str):
        parsed = try_parse_json(value)
        if isinstance(parsed, (dict, list)):
            return StructuredInsight(data=parsed)
        return TextInsight(text=value)
    return TextInsight(text=str(value))


def _unwrap_insight(value: Any) -> Any:
    if isinstance(value, TextInsight):
        return value.text
    if isinstance(value, StructuredInsight):
        return value.data
    return value


def _to_history_entry(value: Any, stamp: str) -> dict:
    if isinstance(value, dict) and "timestamp" in value and "value" in value:
        return value
    return {"timestamp": stamp, "value": value}


def append_ai_history(document: Any, latest: Any, now: datetime | None = None) -> dict:
    """Record a new AI result.

    The previous non-empty ai.latest moves to the front of ai.history,
    ai.latest becomes the new result and insight / assets.insight are
    re-derived from it.

    Args:
        document: Variant document in any stored shape.
        latest: New result: str, dict/list, or a tagged insight.
        now: Timestamp for newly wrapped history entries (local time).

    Returns:
        Updated document.
    """
    doc = normalize(document)
    latest = _unwrap_insight(latest)
    stamp = (now or datetime.now()).strftime(HISTORY_TIMESTAMP_FORMAT)

    history = list(doc["ai"]["history"])
    previous = doc["ai"].get("latest")
    if previous is not None:
        has_content = previous.strip() != "" if isinstance(previous, str) else True
        if has_content:
            history.insert(0, _to_history_entry(previous, stamp))

    doc["ai"]["latest"] = latest
    doc["ai"]["history"] = [_to_history_entry(entry, stamp) for entry in history]

    if isinstance(latest, str) or latest:
        rendered = serialize_insight(latest)
        doc["insight"] = rendered
        doc["assets"]["insight"] = rendered

    return doc
