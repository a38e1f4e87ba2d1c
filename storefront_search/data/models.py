"""
SQLAlchemy database models for the storefront catalog.

The search engine only reads these tables. Admin screens own the writes and
call the search cache's invalidate() after mutating products, brands,
categories or collections.
"""

from enum import Enum

from sqlalchemy import (
    Boolean, Column, DateTime, Enum as SAEnum, Float, ForeignKey, Index,
    Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront_search.data.database import Base


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    BACKORDER = "BACKORDER"
    DISCONTINUED = "DISCONTINUED"


class CollectionType(str, Enum):
    STATIC = "STATIC"
    DYNAMIC = "DYNAMIC"
    FLASH_SALE = "FLASH_SALE"
    SEASONAL = "SEASONAL"


class SpecificationType(str, Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    SELECT = "SELECT"
    BOOLEAN = "BOOLEAN"
    COLOR = "COLOR"


class Category(Base):
    """
    Two-level category tree. Parent categories have parent_id NULL;
    sub-categories point at their parent.
    """
    __tablename__ = "categories"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    parent_id = Column(String(50), ForeignKey("categories.id"), nullable=True, index=True)

    parent = relationship("Category", remote_side=[id], back_populates="children")
    children = relationship("Category", back_populates="parent")
    products = relationship("Product", back_populates="category")
    specification_defs = relationship("SpecificationDefinition", back_populates="category")


class Brand(Base):
    __tablename__ = "brands"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)

    products = relationship("Product", back_populates="brand")


class Collection(Base):
    """Curated product groupings. FLASH_SALE collections are time-boxed."""
    __tablename__ = "collections"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    collection_type = Column(SAEnum(CollectionType), nullable=False, default=CollectionType.STATIC)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    products = relationship("ProductCollection", back_populates="collection")


class ProductCollection(Base):
    __tablename__ = "product_collections"
    __table_args__ = (UniqueConstraint("product_id", "collection_id", name="uq_product_collection"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(50), ForeignKey("products.id"), nullable=False, index=True)
    collection_id = Column(String(50), ForeignKey("collections.id"), nullable=False, index=True)

    product = relationship("Product", back_populates="collections")
    collection = relationship("Collection", back_populates="products")


class SpecificationDefinition(Base):
    """
    Category-defined attribute such as "Color" or "RAM". ``key`` is the
    URL-facing name used as a dynamic filter key.
    """
    __tablename__ = "specification_definitions"
    __table_args__ = (UniqueConstraint("category_id", "key", name="uq_spec_def_category_key"),)

    id = Column(String(50), primary_key=True)
    key = Column(String(100), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(SAEnum(SpecificationType), nullable=False, default=SpecificationType.TEXT)
    category_id = Column(String(50), ForeignKey("categories.id"), nullable=True, index=True)

    category = relationship("Category", back_populates="specification_defs")
    values = relationship("ProductSpecificationValue", back_populates="specification_def")


class ProductSpecificationValue(Base):
    __tablename__ = "product_specification_values"
    __table_args__ = (
        Index("ix_spec_values_def_value", "specification_def_id", "value"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(50), ForeignKey("products.id"), nullable=False, index=True)
    specification_def_id = Column(String(50), ForeignKey("specification_definitions.id"), nullable=False)
    value = Column(String(255), nullable=False)

    product = relationship("Product", back_populates="specifications")
    specification_def = relationship("SpecificationDefinition", back_populates="values")


class Product(Base):
    """
    Product catalog entry. Only is_active products are visible to
    storefront searches.
    """
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_active_created", "is_active", "created_at"),
        Index("ix_products_active_price", "is_active", "price"),
        Index("ix_products_category_brand", "category_id", "brand_id"),
    )

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    short_description = Column(String(500))
    description = Column(Text)

    price = Column(Float, nullable=False)
    original_price = Column(Float, nullable=True)  # Pre-discount price; >= price for a deal
    main_image = Column(String(512), nullable=False, default="")

    category_id = Column(String(50), ForeignKey("categories.id"), nullable=False, index=True)
    brand_id = Column(String(50), ForeignKey("brands.id"), nullable=True, index=True)

    stock_status = Column(SAEnum(StockStatus), nullable=False, default=StockStatus.IN_STOCK, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    featured = Column(Boolean, nullable=False, default=False)
    has_variants = Column(Boolean, nullable=False, default=False)
    sales_count = Column(Integer, nullable=False, default=0)  # Drives "popularity" sorting

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    brand = relationship("Brand", back_populates="products")
    collections = relationship("ProductCollection", back_populates="product")
    specifications = relationship("ProductSpecificationValue", back_populates="product")
