"""Canonical scrape records and the intermediate candidate shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ScrapedImage:
    url: str
    image_name: str = ""
    is_primary: bool = False


@dataclass(frozen=True)
class ScrapedSpecification:
    label: str
    value: str


@dataclass(frozen=True)
class ScrapedProduct:
    product_name: str
    product_price: float
    offer_price: float
    source_url: str
    source_platform: str
    description: str = ""
    short_description: str = ""
    brand_name: str = ""
    barcode: str = ""
    images: tuple[ScrapedImage, ...] = ()
    specifications: tuple[ScrapedSpecification, ...] = ()
    place_of_origin: str = ""
    product_type: str = "PHYSICAL"
    type_of_product: str = "NEW"
    tags: tuple[str, ...] = ()
    in_stock: bool = True
    stock_quantity: int | None = None
    rating: float | None = None
    review_count: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "productName": self.product_name,
            "productPrice": self.product_price,
            "offerPrice": self.offer_price,
            "description": self.description,
            "shortDescription": self.short_description,
            "brandName": self.brand_name,
            "barcode": self.barcode,
            "images": [
                {"url": img.url, "imageName": img.image_name, "isPrimary": img.is_primary}
                for img in self.images
            ],
            "specifications": [
                {"label": spec.label, "value": spec.value} for spec in self.specifications
            ],
            "placeOfOrigin": self.place_of_origin,
            "productType": self.product_type,
            "typeOfProduct": self.type_of_product,
            "tags": list(self.tags),
            "inStock": self.in_stock,
            "stockQuantity": self.stock_quantity,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "sourceUrl": self.source_url,
            "sourcePlatform": self.source_platform,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ScrapedProductSummary:
    product_url: str
    product_name: str
    product_price: float = 0.0
    offer_price: float = 0.0
    image: str = ""
    rating: float | None = None
    review_count: int | None = None
    in_stock: bool = True
    brand_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "productName": self.product_name,
            "productUrl": self.product_url,
            "productPrice": self.product_price,
            "offerPrice": self.offer_price,
            "image": self.image,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "inStock": self.in_stock,
            "brandName": self.brand_name or None,
        }


@dataclass(frozen=True)
class ScrapedSearchResult:
    products: tuple[ScrapedProductSummary, ...]
    total_results: int
    current_page: int
    search_url: str
    total_pages: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.products],
            "totalResults": self.total_results,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "searchQuery": self.search_url,
        }


class CandidateSource(Enum):
    """Where a listing candidate came from; lower rank wins on merge."""

    NETWORK = 0
    SCRIPT = 1
    DOM = 2

    @property
    def rank(self) -> int:
        return self.value


@dataclass(frozen=True)
class Candidate:
    """One listing row produced by a single extraction strategy."""

    source: CandidateSource
    product_url: str
    name: str = ""
    item_id: str = ""
    price: float | None = None
    strike_price: float | None = None
    image: str = ""
    rating: float | None = None
    review_count: int | None = None
    in_stock: bool = True
    brand: str = ""


@dataclass
class ProductDetails:
    """Raw fields pulled off a product page before normalization."""

    name: str = ""
    price: float | None = None
    strike_price: float | None = None
    brand: str = ""
    description: str = ""
    short_description: str = ""
    barcode: str = ""
    images: list[str] = field(default_factory=list)
    specifications: list[tuple[str, str]] = field(default_factory=list)
    rating: float | None = None
    review_count: int | None = None
    in_stock: bool = True
    place_of_origin: str = ""
    tags: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
