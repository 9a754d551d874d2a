from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import json
import logging

from api.deps import get_cookie_store, get_gateway, get_settings
from config.settings import Settings
from core.cookie_store import CookieStore, utc_now_iso
from core.signature import verify_callback_signature
from core.tripay import GatewayNotConfigured, TripayClient
from crud.payment import append_status, record_transaction
from db.session import get_db
from schemas.transaction import CreateTransactionRequest, PaymentStatus, TransactionRecord
from utilities.response import success_response

logger = logging.getLogger(__name__)
router = APIRouter(tags=["payment"])

@router.get("/api/payment-channels")
async def get_payment_channels(gateway: TripayClient = Depends(get_gateway)):
    """List the gateway's active payment channels"""
    channels = await gateway.get_payment_channels()
    return success_response(data=channels)

@router.post("/api/create-transaction")
async def create_transaction(
    body: CreateTransactionRequest,
    request: Request,
    gateway: TripayClient = Depends(get_gateway),
    cookie_store: CookieStore = Depends(get_cookie_store),
    db: Session = Depends(get_db)
):
    """Create a Tripay transaction and record it in the payment history"""
    if body.missing_required():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields"
        )

    if not gateway.settings.gateway_configured:
        raise GatewayNotConfigured("Payment gateway not configured properly")

    order_items = [item.model_dump() for item in body.order_items]
    payload = gateway.build_transaction_payload(
        method=body.method,
        amount=body.amount,
        customer_phone=body.customer_phone,
        order_items=order_items,
        customer_name=body.customer_name,
        return_url=body.return_url,
    )
    merchant_ref = payload["merchant_ref"]

    result = await gateway.create_transaction(payload)
    if not result.get("success"):
        logger.warning(f"Tripay rejected transaction {merchant_ref}: {result.get('message')}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.get("message") or "Failed to create transaction"
        )

    payment_data = result.get("data") or {}
    response = JSONResponse(
        content=success_response(data=payment_data, message="Transaction created successfully")
    )

    # The gateway already holds the transaction; history failures below are logged only
    reference = payment_data.get("reference") if isinstance(payment_data, dict) else None
    if not isinstance(reference, str):
        logger.warning(f"Transaction {merchant_ref} created without a string reference; history not updated")
        return response

    record = TransactionRecord(
        reference=reference,
        merchant_ref=merchant_ref,
        method=body.method,
        amount=body.amount,
        status=PaymentStatus.UNPAID.value,
        created_at=utc_now_iso(),
        order_items=order_items,
    )
    write = cookie_store.add_transaction(request, response, record)
    if not write.ok:
        logger.error(f"Error setting payment history cookie: {write.error}")

    try:
        record_transaction(
            db,
            reference=reference,
            merchant_ref=merchant_ref,
            method=body.method,
            amount=body.amount,
            phone_number=body.customer_phone,
            group_id=body.group_id,
            customer_name=payload["customer_name"],
            order_items=order_items,
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to save transaction {merchant_ref} to ledger: {e}")

    logger.info(f"Transaction {merchant_ref} created via {body.method} for {body.amount}")
    return response

@router.get("/api/transaction-status/{reference}")
async def get_transaction_status(
    reference: str,
    request: Request,
    gateway: TripayClient = Depends(get_gateway),
    cookie_store: CookieStore = Depends(get_cookie_store),
    db: Session = Depends(get_db)
):
    """Fetch the upstream status and mirror it into the payment history"""
    result = await gateway.get_transaction_detail(reference)
    detail = result.get("data")
    if not result.get("success") or not isinstance(detail, dict):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )

    response = JSONResponse(content=success_response(data=detail))

    status_value = detail.get("status")
    if not isinstance(status_value, str):
        return response

    write = cookie_store.update_status(request, response, reference, status_value)
    if write is not None and not write.ok:
        logger.warning(f"Payment history cookie not updated for {reference}: {write.error}")

    try:
        append_status(db, reference, status_value, source="status_check")
    except SQLAlchemyError as e:
        logger.error(f"Failed to update ledger status for {reference}: {e}")

    return response

@router.post("/callback")
async def tripay_callback(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
):
    """Handle Tripay payment callbacks"""
    callback_signature = request.headers.get("x-callback-signature")
    body = await request.body()

    if not verify_callback_signature(settings.TRIPAY_PRIVATE_KEY, callback_signature, body):
        logger.warning("Rejected Tripay callback with invalid signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    reference = payload.get("reference")
    payment_status = payload.get("status")
    merchant_ref = payload.get("merchant_ref")
    amount = payload.get("amount")

    logger.info(
        f"Tripay Callback: reference={reference}, status={payment_status}, "
        f"merchant_ref={merchant_ref}, amount={amount}, timestamp={utc_now_iso()}"
    )

    if payment_status == PaymentStatus.PAID.value:
        logger.info(f"Payment successful for reference: {reference}")
        # TODO: activate premium once plan names are mapped to bot entitlements
    elif payment_status in (PaymentStatus.EXPIRED.value, PaymentStatus.FAILED.value):
        logger.info(f"Payment {payment_status.lower()} for reference: {reference}")

    lookup = reference or merchant_ref
    if isinstance(payment_status, str) and isinstance(lookup, str):
        try:
            append_status(db, lookup, payment_status, source="callback")
        except SQLAlchemyError as e:
            logger.error(f"Failed to update ledger from callback for {lookup}: {e}")

    # Tripay retries until it sees success
    return success_response()
