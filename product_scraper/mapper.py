# -*- coding: utf-8 -*-
"""Product creation mapper

Turns a ScrapedProduct into the request shape the catalogue expects,
optionally with a dropshipping markup applied.
"""

import random
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from product_scraper.models import ScrapedProduct
from product_scraper.normalizer import now_iso

SKU_NAME_RE = re.compile(r"[^A-Z0-9]")


@dataclass
class CreateProductRequest:
    product_name: str
    product_price: float
    offer_price: float
    user_id: int
    description: str = ""
    specification: str = ""
    short_description: str = ""
    barcode: str = ""
    product_type: str = "PHYSICAL"
    type_of_product: str = "NEW"
    status: str = "INACTIVE"
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    place_of_origin_id: Optional[int] = None
    admin_id: Optional[int] = None
    images: list[dict[str, Any]] = field(default_factory=list)
    specifications: list[dict[str, str]] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    is_dropshipped: bool = False
    original_product_id: Optional[int] = None
    dropship_vendor_id: Optional[int] = None
    dropship_markup: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {_camel(key): value for key, value in data.items()}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def format_specifications(product: ScrapedProduct) -> str:
    return "\n".join(f"{spec.label}: {spec.value}" for spec in product.specifications)


def to_create_product_request(
    product: ScrapedProduct,
    user_id: int,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    place_of_origin_id: Optional[int] = None,
    admin_id: Optional[int] = None,
    status: str = "INACTIVE",
    markup_percentage: Optional[float] = None,
) -> CreateProductRequest:
    """Map a scraped product; prices are multiplied by ``1 + markup/100``."""
    multiplier = 1 + markup_percentage / 100 if markup_percentage else 1

    metadata = dict(product.metadata)
    metadata.update(
        {
            "sourceUrl": product.source_url,
            "sourcePlatform": product.source_platform,
            "originalPrice": product.product_price,
            "originalOfferPrice": product.offer_price,
            "scrapedAt": now_iso(),
            "markupPercentage": markup_percentage,
        }
    )
    return CreateProductRequest(
        product_name=product.product_name,
        product_price=round(product.product_price * multiplier, 2),
        offer_price=round(product.offer_price * multiplier, 2),
        user_id=user_id,
        description=product.description,
        specification=format_specifications(product),
        short_description=product.short_description,
        barcode=product.barcode,
        product_type=product.product_type or "PHYSICAL",
        type_of_product=product.type_of_product or "NEW",
        status=status or "INACTIVE",
        category_id=category_id,
        brand_id=brand_id,
        place_of_origin_id=place_of_origin_id,
        admin_id=admin_id,
        images=[{"image": img.url, "imageName": img.image_name} for img in product.images],
        specifications=[
            {"label": spec.label, "specification": spec.value} for spec in product.specifications
        ],
        tags=list(product.tags),
        metadata=metadata,
    )


def to_dropship_request(
    product: ScrapedProduct,
    original_product_id: int,
    vendor_id: int,
    markup_percentage: float,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    custom_marketing_content: Any = None,
    additional_marketing_images: Any = None,
) -> CreateProductRequest:
    request = to_create_product_request(
        product,
        vendor_id,
        category_id=category_id,
        brand_id=brand_id,
        status="INACTIVE",
        markup_percentage=markup_percentage,
    )
    request.is_dropshipped = True
    request.original_product_id = original_product_id
    request.dropship_vendor_id = vendor_id
    request.dropship_markup = markup_percentage
    request.metadata["customMarketingContent"] = custom_marketing_content
    request.metadata["additionalMarketingImages"] = additional_marketing_images
    return request


def extract_tags(product: ScrapedProduct) -> list[str]:
    """Brand, product type, condition, platform and existing tags, deduplicated in order."""
    tags: list[str] = []
    if product.brand_name:
        tags.append(product.brand_name)
    if product.product_type:
        tags.append(product.product_type.lower())
    if product.type_of_product:
        tags.append(product.type_of_product.lower())
    if product.source_platform:
        tags.append(product.source_platform.lower())
    tags.extend(product.tags)
    return list(dict.fromkeys(tags))


def generate_sku(product: ScrapedProduct, prefix: str = "SKU") -> str:
    if product.barcode:
        return f"{prefix}_{product.barcode}"
    millis = int(time.time() * 1000)
    nonce = random.randrange(100000)
    name_hash = SKU_NAME_RE.sub("", product.product_name[:10].upper())
    return f"{prefix}_{name_hash}_{millis}_{nonce}"
