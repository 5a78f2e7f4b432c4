"""
Variant Resolver

Matches a requested product variant against the catalog, and a BOM line's
raw-item pin against a raw item's variants.

Product variant resolution is strict (no match -> NotFoundError). Raw item
pin resolution is soft: an unresolved pin returns None and the caller uses
the raw item's aggregate quantity.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from app.exceptions import NotFoundError
from app.models import Product, ProductVariant, RawItem, RawItemVariant


@dataclass(frozen=True)
class VariantSelector:
    """What a quotation line asks for: a variant id (or SKU) and/or attributes"""
    variant_id: Optional[str] = None
    attributes: Optional[Tuple[Tuple[str, str], ...]] = None

    @classmethod
    def build(cls, variant_id: Any = None, attributes: Optional[Sequence[Dict[str, Any]]] = None) -> "VariantSelector":
        attrs = None
        if attributes:
            attrs = tuple((str(a["name"]), str(a["value"])) for a in attributes)
        return cls(
            variant_id=str(variant_id) if variant_id not in (None, "") else None,
            attributes=attrs,
        )


# =============================================================================
# Raw material pins
# =============================================================================

@dataclass(frozen=True)
class ById:
    variant_id: int


@dataclass(frozen=True)
class ByAttributes:
    combination: Tuple[str, ...]


RawMaterialPin = Union[ById, ByAttributes, None]


def pin_from_line(raw_item_variant_id: Optional[int], combination: Optional[Sequence[Any]]) -> RawMaterialPin:
    """Build the pin for a BOM / work order line. An id wins over a combination."""
    if raw_item_variant_id is not None:
        return ById(int(raw_item_variant_id))
    if combination:
        return ByAttributes(tuple(str(v) for v in combination))
    return None


def pin_of(line) -> RawMaterialPin:
    """Pin of anything carrying raw_item_variant_id / raw_item_variant_combination"""
    return pin_from_line(line.raw_item_variant_id, line.raw_item_variant_combination)


def describe_pin(pin: RawMaterialPin) -> Optional[str]:
    if isinstance(pin, ByAttributes):
        return " • ".join(pin.combination)
    if isinstance(pin, ById):
        return f"Variant ID: {pin.variant_id}"
    return None


# =============================================================================
# Resolution
# =============================================================================

def _attribute_pairs(attributes: Optional[List[Dict[str, Any]]]) -> List[Tuple[str, str]]:
    return [(str(a.get("name")), str(a.get("value"))) for a in (attributes or [])]


def _attributes_match(stored: Optional[List[Dict[str, Any]]], requested: Tuple[Tuple[str, str], ...]) -> bool:
    pairs = _attribute_pairs(stored)
    if len(pairs) != len(requested):
        return False
    lookup = dict(pairs)
    return all(name in lookup and lookup[name] == value for name, value in requested)


def resolve_product_variant(product: Product, selector: VariantSelector) -> ProductVariant:
    """
    Find the catalog variant a quotation line refers to.

    Order: exact id, then identical attribute set (order-independent),
    then the requested id treated as a SKU.

    Raises:
        NotFoundError: if no variant matches
    """
    variants = list(product.variants)

    if selector.variant_id is not None:
        for variant in variants:
            if str(variant.id) == selector.variant_id:
                return variant

    if selector.attributes:
        for variant in variants:
            if _attributes_match(variant.attributes, selector.attributes):
                return variant

    if selector.variant_id is not None:
        for variant in variants:
            if variant.sku == selector.variant_id:
                return variant

    raise NotFoundError(
        "ProductVariant",
        selector.variant_id,
        message=f"No variant of product '{product.reference}' matches the requested variant",
        details={
            "product_id": product.id,
            "requested_attributes": [
                {"name": n, "value": v} for n, v in (selector.attributes or ())
            ],
        },
    )


def resolve_raw_item_variant(raw_item: RawItem, pin: RawMaterialPin) -> Optional[RawItemVariant]:
    """Return the pinned raw item variant, or None if there is no pin or it does not resolve."""
    return match_raw_item_variant(raw_item.variants, pin)


def match_raw_item_variant(variants: Sequence[RawItemVariant], pin: RawMaterialPin) -> Optional[RawItemVariant]:
    """Pin resolution over an explicit list of variants (e.g. freshly locked rows)."""
    if pin is None:
        return None

    for variant in variants:
        if isinstance(pin, ById):
            if variant.id == pin.variant_id:
                return variant
        else:
            combination = variant.combination or []
            if len(combination) == len(pin.combination) and all(
                str(a) == b for a, b in zip(combination, pin.combination)
            ):
                return variant
    return None


def available_stock(raw_item: RawItem, pin: RawMaterialPin) -> Tuple[Decimal, Optional[RawItemVariant]]:
    """
    Stock that a line pinned with `pin` can draw from.

    A resolved pin uses the variant's own quantity; otherwise the raw item's
    aggregate quantity is used, even when the pin was set but did not resolve.
    """
    variant = resolve_raw_item_variant(raw_item, pin)
    if variant is not None:
        return Decimal(variant.quantity or 0), variant
    return Decimal(raw_item.quantity or 0), None
