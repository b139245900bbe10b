#!/usr/bin/env python3
"""Seed a demo lab database.

Usage:
    python scripts/seed_demo.py

This script:
1. Initializes the demo database (demo.db in the project root)
2. Seeds designers, content managers and catalog products
3. Creates lab tests in several historical variant-document shapes
   (per-variant assets, legacy image map, legacy flat image list)
4. Prints the resulting lab report KPIs
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from growthlab.aggregation.report import summarize_lab  # noqa: E402
from growthlab.db import repo  # noqa: E402
from growthlab.db.schema import ABTest, Product, User  # noqa: E402
from growthlab.db.session import get_db_session, init_db  # noqa: E402
from growthlab.models.domain import ABTestEntity  # noqa: E402

DEMO_DB_PATH = PROJECT_ROOT / "demo.db"

DEMO_USERS = [
    ("ann", "Ann", "designer"),
    ("boris", "Boris", "designer"),
    ("clara", "Clara", "content_manager"),
]

DEMO_PRODUCTS = [
    ("SKU-1001", "Ceramic Mug", "Kitchen", "WB"),
    ("SKU-1002", "Linen Towel", "Home", "Ozon"),
    ("SKU-1003", "Desk Lamp", "Home", "WB"),
]


def _demo_tests(now: datetime) -> list[ABTestEntity]:
    """Build demo tests covering every stored document shape."""
    return [
        ABTestEntity(
            id=0,
            sku="SKU-1001",
            product_name="Ceramic Mug",
            category="Kitchen",
            platform="WB",
            test_type="CTR",
            status="active",
            variants={
                "A": {"ctr": "2,1", "assets": {"images": ["/uploads/mug-a.jpg"]}},
                "B": {"ctr": "2.6%", "assets": {"images": ["/uploads/mug-b.jpg"]}},
                "C": {"ctr": 2.3, "assets": {"images": ["/uploads/mug-c.jpg"]}},
            },
            winner="B",
            target_multiplier=1.2,
            designer_gen="Ann",
            content_manager="Clara",
            visibility={"lab": True},
            created_at=now - timedelta(days=3),
        ),
        ABTestEntity(
            id=0,
            sku="SKU-1002",
            product_name="Linen Towel",
            category="Home",
            platform="Ozon",
            test_type="cr",
            status="completed",
            # Legacy shape: top-level image map, insight stored under assets
            variants=json.dumps(
                {
                    "A": {"cr": "4.0"},
                    "B": {"cr": "4.4"},
                    "assets": {
                        "images": {"A": "/uploads/towel-a.jpg", "B": "/uploads/towel-b.jpg"},
                        "insight": "Brighter background on B lifts add-to-cart.",
                    },
                }
            ),
            vois_benchmark=4.2,
            assignees={"designer": "Boris"},
            visibility={"lab": True},
            created_at=now - timedelta(days=12),
        ),
        ABTestEntity(
            id=0,
            sku="SKU-1003",
            product_name="Desk Lamp",
            category="Home",
            platform="WB",
            test_type="РИЧ",
            status="backlog",
            # Oldest shape: flat image list ordered A..E, no metrics yet
            images=["/uploads/lamp-a.jpg", "/uploads/lamp-b.jpg"],
            show_in_lab=True,
            created_at=now - timedelta(days=40),
        ),
    ]


def seed_demo(db_path: Path = DEMO_DB_PATH) -> None:
    """Seed the demo database if it has no tests yet."""
    init_db(db_path)
    now = datetime.now(timezone.utc)

    with get_db_session(db_path) as session:
        if session.query(ABTest).count() > 0:
            print(f"Demo database already seeded: {db_path}")
        else:
            for username, name, role in DEMO_USERS:
                session.add(User(username=username, name=name, role=role))
            for sku, product_name, category, platform in DEMO_PRODUCTS:
                session.add(
                    Product(
                        sku=sku,
                        product_name=product_name,
                        category=category,
                        platform=platform,
                    )
                )
            for entity in _demo_tests(now):
                created = repo.create_test(session, entity)
                print(f"Created test #{created.id} ({created.sku}, {created.test_type})")

    with get_db_session(db_path) as session:
        kpis = summarize_lab(session).kpis
        print(
            f"Lab report: {kpis.total_tests} tests, {kpis.winners} winners, "
            f"{kpis.goal1_reached} reached goal 1, "
            f"missing control images: {kpis.data_quality.missing_images}"
        )


if __name__ == "__main__":
    seed_demo()
