"""
Tests de la génération des variantes: cardinalité, idempotence, SKU, concurrence et atomicité.
"""
import pytest
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from configurator.attributes.models import ProductAttributeCreate, AttributeOptionCreate
from configurator.attributes.exceptions import NoAttributesException
from configurator.global_attributes.models import (
    GlobalAttributeCreate,
    GlobalOptionCreate,
    GlobalAttributeLinkCreate,
    OptionSelectionCreate,
)
from configurator.products.models import Product
from configurator.product_variants.models import ProductVariantCreate, ProductVariantUpdate
from configurator.product_variants.exceptions import DuplicateSKUException, VariantGenerationException
from configurator.product_variants import service as variant_service_module


async def add_axis(attribute_service, product_id, name, display_name, position, values):
    """Crée un attribut et ses options; retourne (attribute_id, {value: option_id})."""
    attribute = await attribute_service.create_attribute(
        product_id, ProductAttributeCreate(name=name, display_name=display_name, position=position)
    )
    option_ids = {}
    for index, value in enumerate(values):
        option = await attribute_service.create_option(
            attribute.id, AttributeOptionCreate(value=value.lower(), display_value=value, position=index)
        )
        option_ids[value] = option.id
    return attribute.id, option_ids


@pytest.mark.asyncio
async def test_generate_all_combinations(attribute_service, variant_service, db_session, test_product):
    """Couleur x Taille = 6 variantes, SKU dans l'ordre des axes, positions continues."""
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc"])
    await add_axis(attribute_service, product_id, "taille", "Taille", 1, ["S", "M", "L"])

    created = await variant_service.generate_variants(product_id)

    assert len(created) == 6
    assert [v.sku for v in created] == [
        "TSH-NOI-S", "TSH-NOI-M", "TSH-NOI-L", "TSH-BLA-S", "TSH-BLA-M", "TSH-BLA-L",
    ]
    assert [v.position for v in created] == list(range(6))
    assert len({v.combination_key for v in created}) == 6
    assert all(v.price is None and v.weight_grams is None for v in created)

    product = await db_session.get(Product, product_id)
    assert product.has_variants is True


@pytest.mark.asyncio
async def test_generation_is_idempotent(attribute_service, variant_service, test_product):
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc"])
    await add_axis(attribute_service, product_id, "taille", "Taille", 1, ["S", "M"])

    assert len(await variant_service.generate_variants(product_id)) == 4
    assert await variant_service.generate_variants(product_id) == []
    assert (await variant_service.list_variants(product_id)).total == 4


@pytest.mark.asyncio
async def test_regeneration_keeps_manual_edits(attribute_service, variant_service, test_product):
    """Une nouvelle option ne crée que les combinaisons manquantes; les variantes modifiées restent intactes."""
    product_id = test_product.id
    _, colors = await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc"])
    size_id, _ = await add_axis(attribute_service, product_id, "taille", "Taille", 1, ["S"])

    first = await variant_service.generate_variants(product_id)
    edited_id = first[0].id
    await variant_service.update_variant(
        edited_id, ProductVariantUpdate(price=Decimal("99.00"), stock_quantity=7, sku="TSH-NOIR-PROMO")
    )
    await attribute_service.create_option(size_id, AttributeOptionCreate(value="xl", display_value="XL", position=1))
    # Une option désactivée ne supprime rien
    await attribute_service.set_option_active(colors["Blanc"], False)

    created = await variant_service.generate_variants(product_id)

    assert [v.sku for v in created] == ["TSH-NOI-XL"]
    assert created[0].position == 2
    edited = await variant_service.get_variant(edited_id)
    assert edited.price == Decimal("99.00")
    assert edited.stock_quantity == 7
    assert edited.sku == "TSH-NOIR-PROMO"
    assert (await variant_service.list_variants(product_id)).total == 3


@pytest.mark.asyncio
async def test_generation_skips_manual_variant_combinations(attribute_service, variant_service, test_product):
    product_id = test_product.id
    color_id, colors = await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc"])
    await variant_service.create_variant(
        product_id,
        ProductVariantCreate(sku="MANUEL-NOIR", selections=[{"attribute_id": color_id, "option_id": colors["Noir"]}]),
    )

    created = await variant_service.generate_variants(product_id)
    assert [v.sku for v in created] == ["TSH-BLA"]


@pytest.mark.asyncio
async def test_sku_uses_product_name_and_axis_order(attribute_service, variant_service, test_bag):
    """Préfixe dérivé du nom, abréviations dans l'ordre des axes: BAG-BLA-LAR."""
    product_id = test_bag.id
    await add_axis(attribute_service, product_id, "size", "Size", 1, ["Large"])
    await add_axis(attribute_service, product_id, "color", "Color", 0, ["Black"])

    created = await variant_service.generate_variants(product_id)
    assert [v.sku for v in created] == ["BAG-BLA-LAR"]

    # Préfixe explicite
    await variant_service.delete_variant(created[0].id)
    created = await variant_service.generate_variants(product_id, sku_prefix="SAC")
    assert [v.sku for v in created] == ["SAC-BLA-LAR"]


@pytest.mark.asyncio
async def test_one_template_under_two_roles(global_service, variant_service, test_bag):
    """Couleur de base (3 options retenues) x couleur intérieure (7 options) = 21 combinaisons."""
    product_id = test_bag.id
    template = await global_service.create_template(GlobalAttributeCreate(name="color", display_name="Color"))
    options = {}
    for index, value in enumerate(["Black", "White", "Red", "Blue", "Green", "Navy", "Orange"]):
        option = await global_service.create_option(
            template.id, GlobalOptionCreate(value=value.lower(), display_value=value, position=index)
        )
        options[value] = option.id
    base = await global_service.create_link(
        product_id,
        GlobalAttributeLinkCreate(global_attribute_id=template.id, role_name="base_color", role_display_name="Base Color"),
    )
    await global_service.create_link(
        product_id,
        GlobalAttributeLinkCreate(
            global_attribute_id=template.id, role_name="interior_color", role_display_name="Interior Color", position=1
        ),
    )
    await global_service.set_selections(base.id, [
        OptionSelectionCreate(global_option_id=options[value]) for value in ("Black", "White", "Red")
    ])

    created = await variant_service.generate_variants(product_id)

    assert len(created) == 21
    skus = {v.sku for v in created}
    assert "BAG-BLA-WHI" in skus and "BAG-WHI-BLA" in skus
    assert "BAG-BLA-BLA" in skus


@pytest.mark.asyncio
async def test_no_attributes(variant_service, test_product):
    with pytest.raises(NoAttributesException):
        await variant_service.generate_variants(test_product.id)


@pytest.mark.asyncio
async def test_duplicate_planned_sku_writes_nothing(attribute_service, variant_service, test_product):
    """Deux options abrégées pareil ('NOI') font échouer toute la génération."""
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Noisette"])

    with pytest.raises(DuplicateSKUException) as exc_info:
        await variant_service.generate_variants(product_id)
    assert exc_info.value.sku == "TSH-NOI"
    assert (await variant_service.list_variants(product_id)).total == 0


@pytest.mark.asyncio
async def test_sku_taken_by_another_product(attribute_service, variant_service, test_product, test_bag):
    product_id, bag_id = test_product.id, test_bag.id
    await variant_service.create_variant(bag_id, ProductVariantCreate(sku="TSH-NOI"))
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc"])

    with pytest.raises(DuplicateSKUException):
        await variant_service.generate_variants(product_id)
    assert (await variant_service.list_variants(product_id)).total == 0


@pytest.mark.asyncio
async def test_concurrent_generation_is_retried(attribute_service, variant_service, monkeypatch, test_product):
    """
    Simule un appel concurrent déjà commité: la première lecture ne voit pas les
    variantes existantes, l'insertion viole l'unicité et la génération est rejouée.
    """
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc"])
    size_id, _ = await add_axis(attribute_service, product_id, "taille", "Taille", 1, ["S"])
    assert len(await variant_service.generate_variants(product_id)) == 2
    await attribute_service.create_option(size_id, AttributeOptionCreate(value="m", display_value="M", position=1))

    repo = variant_service.variant_repo
    real_keys, real_skus = repo.existing_combination_keys, repo.existing_skus
    calls = {"keys": 0}

    async def stale_keys(pid):
        calls["keys"] += 1
        return set() if calls["keys"] == 1 else await real_keys(pid)

    async def stale_skus(skus):
        return set() if calls["keys"] == 1 else await real_skus(skus)

    monkeypatch.setattr(repo, "existing_combination_keys", stale_keys)
    monkeypatch.setattr(repo, "existing_skus", stale_skus)

    created = await variant_service.generate_variants(product_id)

    assert calls["keys"] == 2
    assert sorted(v.sku for v in created) == ["TSH-BLA-M", "TSH-NOI-M"]
    assert (await variant_service.list_variants(product_id)).total == 4


@pytest.mark.asyncio
async def test_retry_limit(attribute_service, variant_service, monkeypatch, test_product):
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir"])
    await variant_service.generate_variants(product_id)

    async def always_empty(*args):
        return set()

    monkeypatch.setattr(variant_service.variant_repo, "existing_combination_keys", always_empty)
    monkeypatch.setattr(variant_service.variant_repo, "existing_skus", always_empty)

    with pytest.raises(VariantGenerationException):
        await variant_service.generate_variants(product_id)
    assert (await variant_service.list_variants(product_id)).total == 1


@pytest.mark.asyncio
async def test_failed_generation_is_rolled_back(attribute_service, variant_service, db_session, monkeypatch, test_product):
    """Une erreur d'écriture en cours de génération n'en laisse aucune trace."""
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir", "Blanc", "Rouge"])

    repo = variant_service.variant_repo
    real_add = repo.add_with_options
    calls = {"count": 0}

    async def failing_add(variant, options, global_options):
        calls["count"] += 1
        if calls["count"] == 2:
            raise SQLAlchemyError("boom")
        return await real_add(variant, options, global_options)

    monkeypatch.setattr(repo, "add_with_options", failing_add)

    with pytest.raises(VariantGenerationException):
        await variant_service.generate_variants(product_id)

    assert (await variant_service.list_variants(product_id)).total == 0
    product = await db_session.get(Product, product_id)
    assert product.has_variants is False


@pytest.mark.asyncio
async def test_generation_lock_is_released(attribute_service, variant_service, test_product):
    """Le verrou d'un produit est partagé pendant la génération puis oublié."""
    product_id = test_product.id
    await add_axis(attribute_service, product_id, "couleur", "Couleur", 0, ["Noir"])

    lock = variant_service_module._generation_lock(product_id)
    assert variant_service_module._generation_lock(product_id) is lock
    del lock
    assert product_id not in variant_service_module._generation_locks

    await variant_service.generate_variants(product_id)
    assert product_id not in variant_service_module._generation_locks
