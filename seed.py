import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Base, SessionLocal, engine
from models import Category

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Sports", "icon": "Trophy", "color": "#22c55e"},
    {"name": "Outings", "icon": "MapPin", "color": "#3b82f6"},
    {"name": "Food", "icon": "UtensilsCrossed", "color": "#f59e0b"},
    {"name": "Transport", "icon": "Car", "color": "#8b5cf6"},
    {"name": "Entertainment", "icon": "Gamepad2", "color": "#ec4899"},
    {"name": "Education", "icon": "BookOpen", "color": "#06b6d4"},
    {"name": "Other", "icon": "MoreHorizontal", "color": "#6b7280"},
]


def existing_category_names(db: Session) -> set:
    return {name for (name,) in db.query(Category.name).all()}


def seed_categories(db: Session) -> int:
    """Insert any default category that is missing; existing rows stay as they are."""
    existing = existing_category_names(db)

    created = 0
    for data in DEFAULT_CATEGORIES:
        if data["name"] in existing:
            continue
        db.add(Category(**data))
        created += 1

    try:
        db.commit()
    except IntegrityError:
        # another worker seeded the same names first
        db.rollback()
        logger.info("Categories already seeded by another process")
        return 0

    if created:
        logger.info("Seeded %d categories", created)
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_categories(db)
    finally:
        db.close()
