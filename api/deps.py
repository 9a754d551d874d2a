from fastapi import Request

from config.settings import Settings
from core.cookie_store import CookieStore
from core.tripay import TripayClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> TripayClient:
    return request.app.state.gateway


def get_cookie_store(request: Request) -> CookieStore:
    return request.app.state.cookie_store
