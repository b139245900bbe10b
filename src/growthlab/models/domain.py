"""Domain models for growthlab.

Pure Python dataclasses representing domain entities.
These models are independent of SQLAlchemy and used throughout
the application for clean separation from the database layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

# ============================================================================
# Test Domain
# ============================================================================

VariantKey = Literal["A", "B", "C", "D", "E"]
TestType = Literal["CTR", "CR", "RICH"]
MetricKey = Literal["ctr", "cr"]


@dataclass
class ABTestEntity:
    """Domain model for an A/B test record.

    `variants` holds the raw JSON blob as stored; `images` is the legacy
    flat image list ordered A..E.
    """

    id: int
    sku: str
    product_name: str
    category: str
    platform: str
    test_type: str
    status: str = "backlog"
    tier: str = "3"
    description: str | None = None
    images: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    metric_current: str | None = None
    metric_goal: str | None = None
    variants: Any = None
    winner: str | None = None
    target_multiplier: float | None = None
    vois_benchmark: float | None = None
    manager: str | None = None
    content_manager: str | None = None
    designer_gen: str | None = None
    designer_tech: str | None = None
    assignees: dict = field(default_factory=dict)
    visibility: dict = field(default_factory=dict)
    show_in_lab: bool = False
    created_at: datetime | None = None


# ============================================================================
# People / Catalog Domain
# ============================================================================


@dataclass
class UserEntity:
    """Domain model for a team member."""

    id: int
    username: str
    name: str
    role: str
    email: str | None = None
    is_admin: bool = False
    is_active: bool = True


@dataclass
class ProductEntity:
    """Domain model for a catalog product."""

    id: int
    sku: str
    product_name: str
    category: str
    platform: str | None = None
    is_active: bool = True


# ============================================================================
# AI Insight Domain
# ============================================================================


@dataclass(frozen=True)
class TextInsight:
    """Free-text commentary returned by the AI mixer."""

    text: str


@dataclass(frozen=True)
class StructuredInsight:
    """Structured (JSON object or array) AI result."""

    data: dict | list


Insight = TextInsight | StructuredInsight
