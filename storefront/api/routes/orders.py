"""
Seller Order Endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront.api.session import require_role
from storefront.api.signed_auth import SignedRequest, require_signed_query, signed_json_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sellers", tags=["orders"])


@router.get("/getOrders", dependencies=[Depends(require_role("seller", "admin"))])
async def seller_orders(
    seller_username: Optional[str] = Query(None, max_length=50),
    status_filter: Optional[str] = Query(None, alias="status", max_length=50),
    signed: SignedRequest = Depends(require_signed_query),
):
    """
    List a seller's orders. Sellers may only read their own; admins any.

    The query string is part of the signature, so filters cannot be swapped
    in transit.
    """
    user = signed.user
    seller = seller_username or user.username
    if seller != user.username and user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: You can only view your own orders",
        )

    filters = {"seller_username": seller}
    if status_filter and status_filter != "all":
        filters["status"] = status_filter

    logger.debug(f"Seller orders requested by {user.id}: {filters}")
    return signed_json_response({"success": True, "orders": [], "count": 0, "filters": filters}, signed)
