"""Database schema for growthlab.

Tests carry their variant document as a JSON column; the legacy flat
image list is kept alongside it for records written before per-variant
assets existed.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class User(Base):
    """Team member (designers, content managers, admins)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False, default="user")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )


class Product(Base):
    """Catalog product a test can target."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    product_name: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[str] = mapped_column(String(128), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ABTest(Base):
    """A/B test hypothesis and its variant document."""

    __tablename__ = "ab_tests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    product_name: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[str] = mapped_column(String(128), nullable=False)
    platform: Mapped[str] = mapped_column(String(64), nullable=False)
    test_type: Mapped[str] = mapped_column(String(16), nullable=False)
    tier: Mapped[str] = mapped_column(String(8), nullable=False, default="3")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="backlog")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    references: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    metric_current: Mapped[str | None] = mapped_column(String(32), nullable=True)
    metric_goal: Mapped[str | None] = mapped_column(String(32), nullable=True)
    variants: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    winner: Mapped[str | None] = mapped_column(String(8), nullable=True)
    target_multiplier: Mapped[float | None] = mapped_column(Float, nullable=True)
    vois_benchmark: Mapped[float | None] = mapped_column(Float, nullable=True)
    manager: Mapped[str | None] = mapped_column(String(128), nullable=True)
    content_manager: Mapped[str | None] = mapped_column(String(128), nullable=True)
    designer_gen: Mapped[str | None] = mapped_column(String(128), nullable=True)
    designer_tech: Mapped[str | None] = mapped_column(String(128), nullable=True)
    assignees: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    visibility: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    show_in_lab: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=lambda: datetime.now(timezone.utc)
    )
