# seed.py: пересоздать таблицы и наполнить демо-данными
from decimal import Decimal

from flowershop.context import AppContext
from flowershop.db import Base
from flowershop.logger import logger, setup_logging
from flowershop.models.catalog import Category, Flower
from flowershop.models.user import User
from flowershop.utils.security import hash_password

CATEGORIES = [
    ("Розы", "rozy", "Классические и кустовые розы"),
    ("Тюльпаны", "tyulpany", "Весенние тюльпаны"),
    ("Букеты", "bukety", "Готовые авторские букеты"),
    ("Комнатные растения", "komnatnye-rasteniya", "Растения в горшках"),
]

FLOWERS = [
    # name, category slug, price, stock
    ("Роза красная", "rozy", "150.00", 120),
    ("Роза белая", "rozy", "160.00", 80),
    ("Тюльпан жёлтый", "tyulpany", "90.00", 200),
    ("Букет «Нежность»", "bukety", "3500.00", 10),
    ("Фикус", "komnatnye-rasteniya", "1800.00", 5),
]


def run_seed(database_url=None):
    setup_logging()
    ctx = AppContext.create(database_url)

    # === RESET ===
    Base.metadata.drop_all(bind=ctx.engine)
    ctx.init_schema()

    db = ctx.session_factory()
    try:
        by_slug = {}
        for name, slug, description in CATEGORIES:
            category = Category(name=name, slug=slug, description=description)
            db.add(category)
            by_slug[slug] = category
        db.flush()

        for name, slug, price, stock in FLOWERS:
            db.add(Flower(
                name=name,
                category_id=by_slug[slug].id,
                price=Decimal(price),
                stock_quantity=stock,
                is_available=True,
            ))

        db.add(User(
            email="admin@flowershop.local",
            password_hash=hash_password("admin123"),
            first_name="Администратор",
            is_admin=True,
        ))
        db.commit()
        logger.info("seed_done", categories=len(CATEGORIES), flowers=len(FLOWERS))
    finally:
        db.close()
        ctx.dispose()


if __name__ == "__main__":
    run_seed()
