import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Dict, Generator, Iterator

from dotenv import load_dotenv
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..booking import BookingWorkflow
from ..data_interface import ShopRegistry, ShopStore
from ..db.database import DatabaseRouter
from ..models import Shop
from ..notifications import DEFAULT_SENDER, ConfirmationMailer
from ..payments import DEFAULT_PLATFORM_FEE_RATE, STRIPE_API_BASE, StripeGateway

# Load environment variables from .env file
load_dotenv()


# --- Settings Dependency ---

@lru_cache()
def get_settings() -> Dict[str, Any]:
    """
    Returns application settings from environment variables.
    Cached to avoid reading env vars on every request.
    """
    return {
        "database_url": os.environ.get("DATABASE_URL", "sqlite:///./nubarber.db"),
        "database_url_eu": os.environ.get("DATABASE_URL_EU"),
        "database_url_uk": os.environ.get("DATABASE_URL_UK"),
        "api_keys": [key.strip() for key in os.environ.get("API_KEYS", "").split(",") if key.strip()],
        "stripe_secret_key": os.environ.get("STRIPE_SECRET_KEY"),
        "stripe_api_base": os.environ.get("STRIPE_API_BASE", STRIPE_API_BASE),
        "resend_api_key": os.environ.get("RESEND_API_KEY"),
        "email_from": os.environ.get("EMAIL_FROM", DEFAULT_SENDER),
        "public_base_url": os.environ.get("PUBLIC_BASE_URL", "http://localhost:3000"),
        "platform_fee_rate": float(os.environ.get("PLATFORM_FEE_RATE", DEFAULT_PLATFORM_FEE_RATE)),
        "default_currency": os.environ.get("DEFAULT_CURRENCY", "usd"),
        "log_level": os.environ.get("LOG_LEVEL", "INFO"),
    }


# --- Auth Dependencies ---

async def get_api_key(api_key: str = Header(..., alias="api-key")) -> Dict[str, Any]:
    """
    Validate API key for owner endpoints.

    Raises:
        HTTPException: If API key is invalid or missing
    """
    settings = get_settings()
    if api_key not in settings["api_keys"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API Key",
        )
    return {"api_key": api_key}


async def get_owner_id(owner_id: str = Header(..., alias="owner-id")) -> str:
    """The signed-in shop owner, as asserted by the trusted front end."""
    if not owner_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing owner id")
    return owner_id.strip()


# --- Database Dependencies ---

def get_router(request: Request) -> DatabaseRouter:
    """The region router built once in create_app()."""
    return request.app.state.db_router


def get_default_db(router: DatabaseRouter = Depends(get_router)) -> Generator[Session, None, None]:
    db = router.session_for(router.default_region)
    try:
        yield db
    finally:
        db.close()


def get_registry(db: Session = Depends(get_default_db)) -> ShopRegistry:
    return ShopRegistry(db)


@contextmanager
def open_shop_store(shop: Shop, registry: ShopRegistry, router: DatabaseRouter) -> Iterator[ShopStore]:
    """Opens a session on the shop's regional database, reusing the default one when they coincide."""
    if router.url_for(shop.region) == router.url_for(router.default_region):
        yield ShopStore(registry.session, shop.owner_id)
        return

    db = router.session_for(shop.region)
    try:
        yield ShopStore(db, shop.owner_id)
    finally:
        db.close()


def _shop_store(owner_id: str, registry: ShopRegistry, router: DatabaseRouter) -> Generator[ShopStore, None, None]:
    with open_shop_store(registry.require_shop(owner_id), registry, router) as store:
        yield store


def get_owner_store(
    owner_id: str = Depends(get_owner_id),
    registry: ShopRegistry = Depends(get_registry),
    router: DatabaseRouter = Depends(get_router),
) -> Generator[ShopStore, None, None]:
    yield from _shop_store(owner_id, registry, router)


def get_public_store(
    owner_id: str,
    registry: ShopRegistry = Depends(get_registry),
    router: DatabaseRouter = Depends(get_router),
) -> Generator[ShopStore, None, None]:
    """Store for the shop named in the public URL path."""
    yield from _shop_store(owner_id, registry, router)


# --- External Services ---

@lru_cache()
def get_payments() -> StripeGateway:
    settings = get_settings()
    return StripeGateway(
        secret_key=settings["stripe_secret_key"],
        api_base=settings["stripe_api_base"],
        platform_fee_rate=settings["platform_fee_rate"],
    )


@lru_cache()
def get_mailer() -> ConfirmationMailer:
    settings = get_settings()
    return ConfirmationMailer(api_key=settings["resend_api_key"], sender=settings["email_from"])


def get_booking_workflow(
    owner_id: str,
    registry: ShopRegistry = Depends(get_registry),
    store: ShopStore = Depends(get_public_store),
    payments: StripeGateway = Depends(get_payments),
    mailer: ConfirmationMailer = Depends(get_mailer),
    settings: Dict[str, Any] = Depends(get_settings),
) -> BookingWorkflow:
    shop: Shop = registry.require_shop(owner_id)
    return BookingWorkflow(
        store=store,
        shop=shop,
        payments=payments,
        mailer=mailer,
        public_base_url=settings["public_base_url"],
    )
