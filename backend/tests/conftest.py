# Standard Library
import os
from decimal import Decimal
from typing import AsyncGenerator

# Base en mémoire pour toute la session de tests (avant l'import de la configuration)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Third-Party Libraries
import pytest_asyncio

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# First-Party Libraries
import configurator.models  # noqa: F401  (enregistre toutes les tables)
from configurator.products.models import Product
from configurator.attributes.service import AttributeService
from configurator.global_attributes.service import GlobalAttributeService
from configurator.product_variants.repositories import SQLAlchemyProductVariantRepository
from configurator.product_variants.service import ProductVariantService
from configurator.raw_materials.models import RawMaterial
from configurator.raw_materials.service import RawMaterialService
from configurator.bom.service import BomService

TEST_DATABASE_BASE_URL = "sqlite+aiosqlite:///:memory:"

# --- Fixtures de Base ---

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Crée un engine, des tables, et fournit une session DB en mémoire pour chaque test."""
    # StaticPool: une seule connexion, donc une seule base :memory: par test
    engine: AsyncEngine = create_async_engine(TEST_DATABASE_BASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    TestingSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await engine.dispose()

# --- Fixtures Services ---

@pytest_asyncio.fixture(scope="function")
async def attribute_service(db_session: AsyncSession) -> AttributeService:
    return AttributeService(db_session)

@pytest_asyncio.fixture(scope="function")
async def global_service(db_session: AsyncSession) -> GlobalAttributeService:
    return GlobalAttributeService(db_session)

@pytest_asyncio.fixture(scope="function")
async def variant_service(db_session: AsyncSession) -> ProductVariantService:
    return ProductVariantService(db_session, SQLAlchemyProductVariantRepository(db_session))

@pytest_asyncio.fixture(scope="function")
async def material_service(db_session: AsyncSession) -> RawMaterialService:
    return RawMaterialService(db_session, FastCRUD(RawMaterial))

@pytest_asyncio.fixture(scope="function")
async def bom_service(db_session: AsyncSession) -> BomService:
    return BomService(db_session)

# --- Fixtures Catalogue ---

@pytest_asyncio.fixture(scope="function")
async def test_product(db_session: AsyncSession) -> Product:
    """Crée un produit de test (préfixe SKU 'TSH', 20.00, 200 g)."""
    product = Product(
        name="T-shirt",
        slug="t-shirt",
        sku_prefix="TSH",
        base_price=Decimal("20.00"),
        base_weight_grams=200,
    )
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product

@pytest_asyncio.fixture(scope="function")
async def test_bag(db_session: AsyncSession) -> Product:
    """Produit sans préfixe SKU: le préfixe est dérivé du nom ('BAG')."""
    product = Product(name="Bag", base_price=Decimal("50.00"), base_weight_grams=400)
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product
