"""
Read-only catalog routes.
Expose the snapshot the broker grounds its answers in.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from toywonder.api.deps import get_broker
from toywonder.schema import Product
from toywonder.services.broker import ResponseBroker

router = APIRouter()


@router.get("/products", response_model=List[Product])
async def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    broker: ResponseBroker = Depends(get_broker),
):
    """
    List catalog products.

    - **category**: exact category name filter
    - **search**: case-insensitive match on name or category
    """
    products = list(broker.catalog.products)
    if category:
        products = [p for p in products if p.category == category]
    if search:
        needle = search.lower()
        products = [p for p in products if needle in p.name.lower() or needle in p.category.lower()]
    return products


@router.get("/products/{product_id}", response_model=Product)
async def get_product(product_id: str, broker: ResponseBroker = Depends(get_broker)):
    """Get a single product by ID."""
    product = broker.catalog.get(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
