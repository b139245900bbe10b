"""Repository pattern for database operations.

Encapsulates all SQLAlchemy queries, keeping domain logic pure.
Returns domain models (not SQLAlchemy entities) to external callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from growthlab.db.schema import ABTest, Product, User
from growthlab.models.domain import ABTestEntity, ProductEntity, UserEntity

if TYPE_CHECKING:
    from sqlalchemy.orm import Session as DbSession
else:
    DbSession = Session

# Re-export for external use
__all__ = ["DbSession"]


# ============================================================================
# Converters: SQLAlchemy -> Domain
# ============================================================================


def _test_to_entity(test: ABTest) -> ABTestEntity:
    """Convert SQLAlchemy ABTest to domain entity."""
    return ABTestEntity(
        id=test.id,
        sku=test.sku,
        product_name=test.product_name,
        category=test.category,
        platform=test.platform,
        test_type=test.test_type,
        status=test.status,
        tier=test.tier,
        description=test.description,
        images=list(test.images or []),
        references=list(test.references or []),
        metric_current=test.metric_current,
        metric_goal=test.metric_goal,
        variants=test.variants,
        winner=test.winner,
        target_multiplier=test.target_multiplier,
        vois_benchmark=test.vois_benchmark,
        manager=test.manager,
        content_manager=test.content_manager,
        designer_gen=test.designer_gen,
        designer_tech=test.designer_tech,
        assignees=dict(test.assignees or {}),
        visibility=dict(test.visibility or {}),
        show_in_lab=test.show_in_lab,
        created_at=test.created_at,
    )


def _user_to_entity(user: User) -> UserEntity:
    """Convert SQLAlchemy User to domain entity."""
    return UserEntity(
        id=user.id,
        username=user.username,
        name=user.name,
        role=user.role,
        email=user.email,
        is_admin=user.is_admin,
        is_active=user.is_active,
    )


def _product_to_entity(product: Product) -> ProductEntity:
    """Convert SQLAlchemy Product to domain entity."""
    return ProductEntity(
        id=product.id,
        sku=product.sku,
        product_name=product.product_name,
        category=product.category,
        platform=product.platform,
        is_active=product.is_active,
    )


# ============================================================================
# Test Repository
# ============================================================================


def get_test(session: DbSession, test_id: int) -> ABTestEntity | None:
    """Get test by ID."""
    test = session.query(ABTest).filter(ABTest.id == test_id).first()
    return _test_to_entity(test) if test else None


def list_tests(session: DbSession) -> list[ABTestEntity]:
    """Get all tests, newest first."""
    tests = session.query(ABTest).order_by(ABTest.id.desc()).all()
    return [_test_to_entity(t) for t in tests]


def create_test(session: DbSession, entity: ABTestEntity) -> ABTestEntity:
    """Create a new test.

    The database assigns the id when entity.id is 0; the returned entity
    carries it.
    """
    test = ABTest(
        sku=entity.sku,
        product_name=entity.product_name,
        category=entity.category,
        platform=entity.platform,
        test_type=entity.test_type,
        status=entity.status,
        tier=entity.tier,
        description=entity.description,
        images=list(entity.images),
        references=list(entity.references),
        metric_current=entity.metric_current,
        metric_goal=entity.metric_goal,
        variants=entity.variants,
        winner=entity.winner,
        target_multiplier=entity.target_multiplier,
        vois_benchmark=entity.vois_benchmark,
        manager=entity.manager,
        content_manager=entity.content_manager,
        designer_gen=entity.designer_gen,
        designer_tech=entity.designer_tech,
        assignees=dict(entity.assignees),
        visibility=dict(entity.visibility),
        show_in_lab=entity.show_in_lab,
    )
    if entity.id:
        test.id = entity.id
    if entity.created_at is not None:
        test.created_at = entity.created_at
    session.add(test)
    session.flush()
    return _test_to_entity(test)


def update_test_variants(session: DbSession, test_id: int, variants: dict) -> None:
    """Replace a test's variant document."""
    test = session.query(ABTest).filter(ABTest.id == test_id).first()
    if test:
        test.variants = variants


# ============================================================================
# People / Catalog Repository
# ============================================================================


def list_active_users(session: DbSession) -> list[UserEntity]:
    """Get all active users."""
    users = session.query(User).filter(User.is_active.is_(True)).all()
    return [_user_to_entity(u) for u in users]


def list_products(session: DbSession) -> list[ProductEntity]:
    """Get all catalog products."""
    products = session.query(Product).all()
    return [_product_to_entity(p) for p in products]


# ============================================================================
# Batch Operations
# ============================================================================


def commit(session: DbSession) -> None:
    """Commit current transaction."""
    session.commit()
