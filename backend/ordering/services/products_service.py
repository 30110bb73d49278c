# backend/ordering/services/products_service.py
"""
Products Service

Catalog reads and product creation. stock_quantity is set only at creation;
every later change goes through stock_service.
"""
from __future__ import annotations

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Product
from ..validation import coerce_cents, coerce_int, coerce_quantity, optional_str, require_str
from . import audit_service
from .concurrency import run_with_retry


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product not found: {product_id}")
    return product


def list_products(*, active_only: bool = False, search: str | None = None, limit: int = 20, offset: int = 0) -> dict:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))

    total = query.count()
    rows = query.order_by(Product.name.asc(), Product.id.asc()).offset(offset).limit(limit).all()
    return {"items": [p.to_dict() for p in rows], "total": total, "limit": limit, "offset": offset}


def create_product(
    *,
    sku: str,
    name: str,
    base_price_cents,
    stock_quantity=0,
    tax_rate_bps=0,
    unit: str | None = None,
    is_active: bool = True,
    actor_id: str | None = None,
) -> Product:
    clean_sku = require_str(sku, "sku", max_length=64)
    clean_name = require_str(name, "name", max_length=255)
    price = coerce_cents(base_price_cents, "base_price_cents", positive=True)
    stock = coerce_quantity(stock_quantity, "stock_quantity", minimum=0)
    tax_bps = coerce_int(tax_rate_bps, "tax_rate_bps", minimum=0, maximum=10_000)
    clean_unit = optional_str(unit, "unit", max_length=32)

    def _op():
        if db.session.query(Product.id).filter_by(sku=clean_sku).first() is not None:
            raise ConflictError(f"SKU already exists: {clean_sku}")

        product = Product(
            sku=clean_sku,
            name=clean_name,
            unit=clean_unit,
            base_price_cents=price,
            tax_rate_bps=tax_bps,
            stock_quantity=stock,
            is_active=bool(is_active),
        )
        db.session.add(product)
        db.session.flush()
        audit_service.record(
            actor_id=actor_id,
            action="product_created",
            resource_type="product",
            resource_id=product.id,
            new_values={"sku": clean_sku, "base_price_cents": price, "stock_quantity": stock},
        )
        return product

    return run_with_retry(_op)
