import pytest
from decimal import Decimal

from fastcrud import FastCRUD

from configurator.products.models import Product, ProductCreate, ProductUpdate
from configurator.products.service import ProductService, default_sku_prefix
from configurator.products.exceptions import ProductNotFoundException, DuplicateSlugException


@pytest.fixture
def product_service(db_session):
    return ProductService(db_session, FastCRUD(Product))


def test_default_sku_prefix():
    assert default_sku_prefix(Product(name="Sac à dos", sku_prefix="BAG")) == "BAG"
    assert default_sku_prefix(Product(name="Tote bag")) == "TOT"


@pytest.mark.asyncio
async def test_create_and_get_product(product_service):
    """Test la création puis la lecture d'un produit."""
    product = await product_service.create_product(
        ProductCreate(name="Casquette", slug="casquette", base_price=Decimal("15.00"))
    )
    assert product.id is not None
    assert product.has_variants is False

    fetched = await product_service.get_product(product.id)
    assert fetched.name == "Casquette"
    assert await product_service.product_exists(product.id) is True
    assert await product_service.get_sku_prefix(product.id) == "CAS"


@pytest.mark.asyncio
async def test_duplicate_slug(product_service, test_product):
    with pytest.raises(DuplicateSlugException):
        await product_service.create_product(ProductCreate(name="Autre", slug=test_product.slug))


@pytest.mark.asyncio
async def test_update_product(product_service, test_product):
    updated = await product_service.update_product(test_product.id, ProductUpdate(base_price=Decimal("25.00")))
    assert updated.base_price == Decimal("25.00")
    assert updated.sku_prefix == "TSH"


@pytest.mark.asyncio
async def test_product_not_found(product_service):
    with pytest.raises(ProductNotFoundException):
        await product_service.get_product(999)
    assert await product_service.product_exists(999) is False
