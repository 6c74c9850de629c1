# seed_products.py

from decimal import Decimal

from sqlmodel import Session

from app.database import create_db_and_tables, engine
from app.models.product import Product
from app.repositories.product_repo import ProductRepository

DEMO_PRODUCTS = [
    ("Linen Shirt", "39.00", 25),
    ("Canvas Tote", "18.50", 40),
    ("Wool Beanie", "12.00", 15),
    ("Leather Belt", "45.00", 8),
]


def main():
    create_db_and_tables()
    repo = ProductRepository()

    with Session(engine) as session:
        if repo.list(session, limit=1, only_active=False):
            print("Products already present, nothing to seed.")
            return

        for name, price, inventory in DEMO_PRODUCTS:
            product = repo.create(
                session,
                Product(name=name, price=Decimal(price), inventory=inventory),
            )
            print(f"Created {product.name} ({product.id}) x{product.inventory}")


if __name__ == "__main__":
    main()
