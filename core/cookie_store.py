"""
Cookie-backed client storage.

The ``paymentHistory`` cookie holds a bounded, newest-first JSON list of
transaction records and ``cart`` holds whatever the frontend last posted.
Values are URL-encoded JSON so the React side can read them with a plain
cookie library.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from fastapi import Request, Response

from config.settings import Settings
from schemas.transaction import TransactionRecord

logger = logging.getLogger(__name__)

HISTORY_COOKIE = "paymentHistory"
CART_COOKIE = "cart"
COOKIE_MAX_AGE = 365 * 24 * 60 * 60  # 1 year


class CookieParseError(ValueError):
    pass


@dataclass
class CookieWriteResult:
    ok: bool
    error: Optional[str] = None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def prepend_record(history: List[Any], record: Dict[str, Any], limit: int) -> List[Any]:
    """Insert newest first and evict the oldest entries beyond ``limit``"""
    return [record, *history][:limit]


def apply_status(history: List[Any], reference: str, status: str, updated_at: Optional[str] = None) -> bool:
    """Update status/updatedAt of the entry matching ``reference`` in place; returns whether one matched.

    Entries are raw dicts written by us or by the frontend; whatever else they
    carry, and entries of any other shape, are left as they are.
    """
    for entry in history:
        if isinstance(entry, dict) and entry.get("reference") == reference:
            entry["status"] = status
            entry["updatedAt"] = updated_at or utc_now_iso()
            return True
    return False


class CookieStore:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _read_json(self, request: Request, name: str) -> Any:
        raw = request.cookies.get(name)
        if not raw:
            return None
        try:
            return json.loads(unquote(raw))
        except ValueError as e:
            raise CookieParseError(f"Cookie {name} is not valid JSON: {e}") from e

    def _write_json(self, response: Response, name: str, value: Any, domain: Optional[str] = None) -> CookieWriteResult:
        try:
            encoded = quote(json.dumps(value, separators=(",", ":")), safe="")
            response.set_cookie(
                name,
                encoded,
                max_age=COOKIE_MAX_AGE,
                path="/",
                domain=domain,
                secure=self.settings.IS_PRODUCTION,
                httponly=False,
                samesite="lax",
            )
        except (TypeError, ValueError) as e:
            return CookieWriteResult(ok=False, error=str(e))
        return CookieWriteResult(ok=True)

    def read_history(self, request: Request) -> List[Any]:
        """Raw history entries; only a value that is not a JSON list is unreadable"""
        data = self._read_json(request, HISTORY_COOKIE)
        if data is None:
            return []
        if not isinstance(data, list):
            raise CookieParseError(f"Cookie {HISTORY_COOKIE} is not a list")
        return data

    def write_history(self, response: Response, history: List[Any]) -> CookieWriteResult:
        return self._write_json(response, HISTORY_COOKIE, history, domain=self.settings.COOKIE_DOMAIN)

    def add_transaction(self, request: Request, response: Response, record: TransactionRecord) -> CookieWriteResult:
        """Prepend a freshly created transaction; an unreadable cookie starts a new list"""
        try:
            history = self.read_history(request)
        except CookieParseError as e:
            logger.warning(f"Discarding unreadable payment history cookie: {e}")
            history = []
        entry = record.model_dump(by_alias=True, exclude_none=True)
        history = prepend_record(history, entry, self.settings.HISTORY_LIMIT)
        return self.write_history(response, history)

    def update_status(self, request: Request, response: Response, reference: str, status: str) -> Optional[CookieWriteResult]:
        """Mirror an observed status; returns None when no record matched and nothing was written"""
        try:
            history = self.read_history(request)
        except CookieParseError as e:
            return CookieWriteResult(ok=False, error=str(e))
        if not apply_status(history, reference, status):
            return None
        return self.write_history(response, history)

    def read_cart(self, request: Request) -> Any:
        cart = self._read_json(request, CART_COOKIE)
        return [] if cart is None else cart

    def write_cart(self, response: Response, items: Any) -> CookieWriteResult:
        # Host-only cookie
        return self._write_json(response, CART_COOKIE, items)
