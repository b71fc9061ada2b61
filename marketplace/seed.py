"""
Seed demo data
- Creates a demo user, two shops, one product per shop and one open task
- Only runs against an empty shops table, and never in production

Usage:
  python -m marketplace.seed
  python -m marketplace.seed --database-url sqlite:///./demo.db
"""
import argparse
import logging
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from . import crud, schemas
from .auth import Identity
from .config import get_settings
from .db import Base

logger = logging.getLogger(__name__)

DEMO_USER = Identity(subject="demo-user", email="demo@example.com", name="Demo User", picture=None)

DEMO_SHOPS = [
    (
        schemas.ShopCreate(
            name="Gogo's Sewing & Tailoring",
            description="Expert alterations and traditional Shweshwe designs. Fast and reliable service.",
            category="tailor",
            image_url="https://images.unsplash.com/photo-1556905055-8f358a7a47b2?auto=format&fit=crop&q=80&w=1000",
            location="Shop 4, Soweto Market",
        ),
        schemas.ProductCreate(
            name="Traditional Dress Alteration",
            description="Fitting and adjustment for traditional wedding dresses.",
            price=Decimal("450.00"),
            image_url="https://images.unsplash.com/photo-1556905055-8f358a7a47b2?auto=format&fit=crop&q=80&w=1000",
            in_stock=True,
        ),
    ),
    (
        schemas.ShopCreate(
            name="Sparkle Clean Laundry",
            description="Wash, dry, and fold service. We pick up and deliver in the CBD area.",
            category="laundry",
            image_url="https://images.unsplash.com/photo-1545173168-9f1947eebb8f?auto=format&fit=crop&q=80&w=1000",
            location="12 Nelson Mandela Ave, CBD",
        ),
        schemas.ProductCreate(
            name="Full Load Wash & Fold",
            description="Up to 5kg of laundry washed, dried, and neatly folded.",
            price=Decimal("120.00"),
            image_url="https://images.unsplash.com/photo-1582735689369-4fe89db7114c?auto=format&fit=crop&q=80&w=1000",
            in_stock=True,
        ),
    ),
]

DEMO_TASK = schemas.TaskCreate(
    title="Deliver groceries to Gogo Dlamini",
    description="Need someone to pick up a grocery order from Checkers and deliver to 45 Vilakazi St.",
    budget=Decimal("150.00"),
    location="Vilakazi St, Soweto",
)


def seed(db: Session) -> bool:
    """Fill an empty database with demo rows. Returns False if shops already exist."""
    if crud.list_shops(db):
        return False

    user = crud.ensure_profile(db, DEMO_USER)
    for shop_in, product_in in DEMO_SHOPS:
        shop = crud.create_shop(db, user.id, shop_in)
        crud.create_product(db, shop.id, product_in)
    crud.create_task(db, user.id, DEMO_TASK)
    return True


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL; defaults to DATABASE_URL")
    args = parser.parse_args(argv)

    settings = get_settings()
    if settings.is_production:
        raise SystemExit("refusing to seed demo data in production")

    logging.basicConfig(level=settings.log_level)
    engine = create_engine(args.database_url or settings.database_url, future=True)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    with SessionLocal() as db:
        if seed(db):
            logger.info("seeded demo data")
        else:
            logger.info("shops already present; nothing to seed")


if __name__ == "__main__":
    main()
