"""Pytest configuration for storefront-search tests."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from storefront_search.core.config import SearchConfig
from storefront_search.data.database import Base, create_db_engine, create_session_factory
from storefront_search.data.models import (
    Brand,
    Category,
    Collection,
    CollectionType,
    Product,
    ProductCollection,
    ProductSpecificationValue,
    SpecificationDefinition,
    SpecificationType,
    StockStatus,
)

TEST_DATABASE_URL = "sqlite:///./test_storefront_search.db"

BASE_CREATED_AT = datetime(2024, 1, 1, 12, 0, 0)

BRANDS = [("brand-apple", "Apple", "apple"), ("brand-samsung", "Samsung", "samsung"), ("brand-dell", "Dell", "dell")]

LAPTOP_RAM = ["8GB", "16GB", "32GB"]
LAPTOP_COLORS = ["Black", "Silver"]
PHONE_COLORS = ["Black", "Blue"]
PHONE_STORAGE = ["128GB", "256GB"]


def product_category(i: int) -> str:
    if i < 12:
        return "cat-laptops"
    if i < 24:
        return "cat-phones"
    return "cat-kitchen"


@pytest.fixture
def db_engine():
    """Fresh SQLite file database per test."""
    engine = create_db_engine(TEST_DATABASE_URL)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def config():
    """Defaults from the dataclass; no YAML or environment overrides."""
    return SearchConfig(database_url=TEST_DATABASE_URL, cache_enabled=False)


@pytest.fixture
def catalog(session_factory):
    """
    30 active products plus one inactive product.

    - prod-000..011 in Laptops, 012..023 in Phones (both under Electronics),
      024..029 in Kitchen (under Home)
    - brand cycles Apple, Samsung, Dell (10 each)
    - price = 100 + 10 * i
    - OUT_OF_STOCK when i % 5 == 0 (6 products), otherwise IN_STOCK
    - sales_count = 7 * i % 30 (all distinct), created_at = base + i days
    - collections: new-arrivals (i >= 20), summer-sale (i % 4 == 0),
      flash-deals (i < 3, FLASH_SALE)
    - laptops: ram = LAPTOP_RAM[i % 3], color = LAPTOP_COLORS[i % 2]
    - phones: color = PHONE_COLORS[i % 2], storage = PHONE_STORAGE[(i // 2) % 2]
    """
    db = session_factory()

    db.add_all([
        Category(id="cat-electronics", name="Electronics", slug="electronics"),
        Category(id="cat-home", name="Home", slug="home"),
    ])
    db.flush()
    db.add_all([
        Category(id="cat-laptops", name="Laptops", slug="laptops", parent_id="cat-electronics"),
        Category(id="cat-phones", name="Phones", slug="phones", parent_id="cat-electronics"),
        Category(id="cat-kitchen", name="Kitchen", slug="kitchen", parent_id="cat-home"),
    ])
    db.add_all([Brand(id=bid, name=name, slug=slug) for bid, name, slug in BRANDS])
    db.add_all([
        Collection(id="col-new", name="New Arrivals", slug="new-arrivals", collection_type=CollectionType.STATIC),
        Collection(id="col-summer", name="Summer Sale", slug="summer-sale", collection_type=CollectionType.SEASONAL),
        Collection(id="col-flash", name="Flash Deals", slug="flash-deals", collection_type=CollectionType.FLASH_SALE),
    ])
    db.add_all([
        SpecificationDefinition(id="spec-laptop-ram", key="ram", name="RAM",
                                type=SpecificationType.SELECT, category_id="cat-laptops"),
        SpecificationDefinition(id="spec-laptop-color", key="color", name="Color",
                                type=SpecificationType.COLOR, category_id="cat-laptops"),
        SpecificationDefinition(id="spec-phone-color", key="color", name="Color",
                                type=SpecificationType.COLOR, category_id="cat-phones"),
        SpecificationDefinition(id="spec-phone-storage", key="storage", name="Storage",
                                type=SpecificationType.SELECT, category_id="cat-phones"),
    ])
    db.flush()

    for i in range(30):
        brand_id, brand_name, _ = BRANDS[i % 3]
        category_id = product_category(i)
        db.add(Product(
            id=f"prod-{i:03d}",
            name=f"{brand_name} {category_id[4:].title()} Model {i}",
            slug=f"product-{i:03d}",
            short_description=f"Short description {i}",
            description=f"Full description for product {i}",
            price=100.0 + 10 * i,
            original_price=150.0 + 10 * i if i % 6 == 0 else None,
            main_image=f"/images/{i}.jpg",
            category_id=category_id,
            brand_id=brand_id,
            stock_status=StockStatus.OUT_OF_STOCK if i % 5 == 0 else StockStatus.IN_STOCK,
            is_active=True,
            sales_count=(7 * i) % 30,
            created_at=BASE_CREATED_AT + timedelta(days=i),
        ))
    db.add(Product(
        id="prod-inactive",
        name="Apple Laptops Discontinued",
        slug="product-inactive",
        price=50.0,
        category_id="cat-laptops",
        brand_id="brand-apple",
        stock_status=StockStatus.DISCONTINUED,
        is_active=False,
        created_at=BASE_CREATED_AT,
    ))
    db.flush()

    for i in range(30):
        pid = f"prod-{i:03d}"
        if i >= 20:
            db.add(ProductCollection(product_id=pid, collection_id="col-new"))
        if i % 4 == 0:
            db.add(ProductCollection(product_id=pid, collection_id="col-summer"))
        if i < 3:
            db.add(ProductCollection(product_id=pid, collection_id="col-flash"))

        category_id = product_category(i)
        if category_id == "cat-laptops":
            db.add(ProductSpecificationValue(product_id=pid, specification_def_id="spec-laptop-ram",
                                             value=LAPTOP_RAM[i % 3]))
            db.add(ProductSpecificationValue(product_id=pid, specification_def_id="spec-laptop-color",
                                             value=LAPTOP_COLORS[i % 2]))
        elif category_id == "cat-phones":
            db.add(ProductSpecificationValue(product_id=pid, specification_def_id="spec-phone-color",
                                             value=PHONE_COLORS[i % 2]))
            db.add(ProductSpecificationValue(product_id=pid, specification_def_id="spec-phone-storage",
                                             value=PHONE_STORAGE[(i // 2) % 2]))

    db.commit()
    db.close()
    return session_factory


@pytest.fixture
def db(catalog):
    """Session over the seeded catalog."""
    session = catalog()
    try:
        yield session
    finally:
        session.close()
