from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from api.deps import get_cookie_store
from core.cookie_store import CookieParseError, CookieStore
from crud.payment import get_history, serialize_record
from db.session import get_db
from schemas.transaction import HistoryLookupRequest
from utilities.response import error_response, success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payment-history", tags=["history"])

HISTORY_PAGE_SIZE = 10

@router.get("")
async def get_cookie_history(request: Request, cookie_store: CookieStore = Depends(get_cookie_store)):
    """Payment history stored in this browser's cookie"""
    try:
        history = cookie_store.read_history(request)
    except CookieParseError as e:
        logger.error(f"Error fetching payment history: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response("Failed to fetch payment history", data=[])
        )

    return success_response(data=history)

@router.post("")
async def lookup_history(body: HistoryLookupRequest, db: Session = Depends(get_db)):
    """Server-side history for a phone number or group, newest first"""
    if not body.identifier:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing identifier"
        )

    page = max(body.page, 1)
    records, total_count = get_history(db, body.identifier, body.type, page, HISTORY_PAGE_SIZE)
    total_pages = (total_count + HISTORY_PAGE_SIZE - 1) // HISTORY_PAGE_SIZE

    return success_response(data={
        "history": [serialize_record(record) for record in records],
        "page": page,
        "perPage": HISTORY_PAGE_SIZE,
        "totalCount": total_count,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrevious": page > 1,
    })
