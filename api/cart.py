from fastapi import APIRouter, Depends, status, Request
from fastapi.responses import JSONResponse
import logging

from api.deps import get_cookie_store
from core.cookie_store import CookieParseError, CookieStore
from schemas.transaction import CartUpdate
from utilities.response import error_response, success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cart", tags=["cart"])

@router.get("")
async def get_cart(request: Request, cookie_store: CookieStore = Depends(get_cookie_store)):
    try:
        cart = cookie_store.read_cart(request)
    except CookieParseError as e:
        logger.error(f"Error fetching cart: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response("Failed to fetch cart", data=[])
        )
    return success_response(data=cart)

@router.post("")
async def update_cart(body: CartUpdate, cookie_store: CookieStore = Depends(get_cookie_store)):
    response = JSONResponse(content=success_response(message="Cart updated successfully"))
    write = cookie_store.write_cart(response, body.items)
    if not write.ok:
        logger.error(f"Error updating cart: {write.error}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response("Failed to update cart")
        )
    return response
