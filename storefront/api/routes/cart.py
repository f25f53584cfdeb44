"""
Cart Endpoints

All cart mutations are signed. Cart persistence itself belongs to the hosted
database; these handlers only run once the request has been verified.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, ValidationError

from storefront.api.session import get_current_user
from storefront.api.signed_auth import (
    SignedRequest,
    get_key_manager,
    parse_and_verify_body,
    require_signed_body,
    require_signed_query,
    signed_json_response,
)
from storefront.core.database.models import User
from storefront.core.signing.keys import SigningKeyManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["cart"])


class CartItemRequest(BaseModel):
    """Body of addToCart / updateCartQuantity."""
    productId: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(1, ge=1, le=99)


def _parse_item(body: Any) -> CartItemRequest:
    try:
        return CartItemRequest.model_validate(body)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False),
        )


@router.post("/addToCart", status_code=status.HTTP_201_CREATED)
async def add_to_cart(signed: SignedRequest = Depends(require_signed_body)):
    item = _parse_item(signed.body)
    logger.info(f"User {signed.user.id} added {item.quantity} x {item.productId} to cart")
    return signed_json_response(
        {
            "success": True,
            "message": "Product added to cart",
            "productId": item.productId,
            "quantity": item.quantity,
        },
        signed,
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/updateCartQuantity")
async def update_cart_quantity(
    request: Request,
    user: User = Depends(get_current_user),
    key_manager: SigningKeyManager = Depends(get_key_manager),
):
    body, verify_error = await parse_and_verify_body(request, user, key_manager)
    if verify_error is not None:
        return verify_error

    item = _parse_item(body)
    logger.info(f"User {user.id} set quantity of {item.productId} to {item.quantity}")
    return {"success": True, "productId": item.productId, "quantity": item.quantity}


@router.delete("/clearCart")
async def clear_cart(signed: SignedRequest = Depends(require_signed_query)):
    logger.info(f"User {signed.user.id} cleared cart")
    return signed_json_response({"success": True, "message": "Cart cleared"}, signed)
