"""Product creation mapper."""

import re

from product_scraper.mapper import (
    extract_tags,
    format_specifications,
    generate_sku,
    to_create_product_request,
    to_dropship_request,
)
from product_scraper.models import ScrapedImage, ScrapedProduct, ScrapedSpecification


def _product(**overrides) -> ScrapedProduct:
    fields = dict(
        product_name="Sony WH-1000XM5 Headphones",
        product_price=100.0,
        offer_price=120.0,
        source_url="https://www.amazon.com/dp/B09XS7JWHH",
        source_platform="Amazon.com",
        brand_name="Sony",
        barcode="B09XS7JWHH",
        images=(ScrapedImage("https://img/1.jpg", "Sony - Image 1", True),),
        specifications=(ScrapedSpecification("Color", "Black"), ScrapedSpecification("Weight", "250 g")),
        tags=("audio", "Sony"),
        metadata={"scrapedAt": "2026-01-01T00:00:00+00:00", "originalUrl": "https://www.amazon.com/dp/B09XS7JWHH"},
    )
    fields.update(overrides)
    return ScrapedProduct(**fields)


class TestCreateRequest:
    def test_defaults(self):
        request = to_create_product_request(_product(), user_id=7)

        assert request.product_price == 100.0
        assert request.offer_price == 120.0
        assert request.status == "INACTIVE"
        assert request.product_type == "PHYSICAL"
        assert request.type_of_product == "NEW"
        assert request.specification == "Color: Black\nWeight: 250 g"
        assert request.images == [{"image": "https://img/1.jpg", "imageName": "Sony - Image 1"}]
        assert request.specifications[0] == {"label": "Color", "specification": "Black"}
        assert request.metadata["sourcePlatform"] == "Amazon.com"
        assert request.metadata["originalUrl"] == "https://www.amazon.com/dp/B09XS7JWHH"
        assert request.metadata["markupPercentage"] is None

    def test_markup_rounds_to_cents(self):
        request = to_create_product_request(_product(product_price=19.99, offer_price=19.99), 1, markup_percentage=15)

        assert request.product_price == 22.99
        assert request.offer_price == 22.99
        assert request.metadata["originalPrice"] == 19.99

    def test_to_dict_uses_camel_case(self):
        data = to_create_product_request(_product(), 7, category_id=3).to_dict()
        assert data["productName"] == "Sony WH-1000XM5 Headphones"
        assert data["categoryId"] == 3
        assert data["userId"] == 7

    def test_dropship(self):
        request = to_dropship_request(_product(), original_product_id=55, vendor_id=9, markup_percentage=10)

        assert request.is_dropshipped
        assert request.original_product_id == 55
        assert request.dropship_vendor_id == 9
        assert request.user_id == 9
        assert request.dropship_markup == 10
        assert request.product_price == 110.0
        assert request.status == "INACTIVE"
        assert "customMarketingContent" in request.metadata


class TestTagsAndSku:
    def test_extract_tags(self):
        assert extract_tags(_product()) == ["Sony", "physical", "new", "amazon.com", "audio"]

    def test_sku_from_barcode(self):
        assert generate_sku(_product(), prefix="AMZ") == "AMZ_B09XS7JWHH"

    def test_sku_without_barcode(self):
        sku = generate_sku(_product(barcode="", product_name="sony wh-1000xm5"))
        assert re.fullmatch(r"SKU_SONYWH10_\d{13}_\d{1,5}", sku)

    def test_format_specifications_empty(self):
        assert format_specifications(_product(specifications=())) == ""
