import logging
from datetime import date as date_type
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..availability import generate_time_slots, reconcile_selected_time
from ..booking import BookingWorkflow
from ..data_interface import ShopRegistry, ShopStore
from ..db.database import DatabaseRouter
from ..density import calculate_booking_density, density_levels
from ..errors import NotFoundError
from ..models import (
    BookingRecord, BookingRequest, BookingStatus, Shop, StaffMember, TimeOffEntry,
    DEFAULT_DESCRIPTION, DEFAULT_HEADLINE,
)
from ..payments import StripeGateway
from ..reports import (
    bookings_on, calculate_overview_stats, sort_by_time, summarize_clients, time_off_on,
)
from .deps import (
    get_api_key, get_booking_workflow, get_owner_id, get_owner_store, get_payments,
    get_public_store, get_registry, get_router, get_settings, open_shop_store,
)
from .models import (
    AvailabilityRequest, BookingConfirmationResponse, BookingPageResponse,
    BookingResponse, BookingSubmissionResponse, BookingSubmitRequest, ClientResponse,
    DensityResponse, OverviewResponse, PublicSiteRequest, ScheduleResponse,
    ServiceRequest, ServiceResponse, ShopCreateRequest, ShopResponse, ShopUpdateRequest,
    SlotsResponse, StaffCreateRequest, StaffResponse, StaffUpdateRequest,
    StripeConnectResponse, TimeOffRequest, TimeOffResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()
public_router = APIRouter(prefix="/barbers", tags=["public"])
owner_router = APIRouter(tags=["owner"], dependencies=[Depends(get_api_key)])


# --- Conversion Functions (Internal Model -> API Response) ---

def _shop_to_response(shop: Shop) -> ShopResponse:
    return ShopResponse(
        owner_id=shop.owner_id,
        name=shop.name,
        region=shop.region,
        currency=shop.currency,
        location_type=shop.location_type,
        address=shop.address,
        staff_count=shop.staff_count,
        headline=shop.headline or DEFAULT_HEADLINE,
        description=shop.description or DEFAULT_DESCRIPTION,
        stripe_connected=shop.stripe_connected,
    )

def _staff_to_response(staff: StaffMember) -> StaffResponse:
    return StaffResponse(**staff.dict(exclude={"shop_owner_id"}))

def _time_off_to_response(entry: TimeOffEntry) -> TimeOffResponse:
    return TimeOffResponse(**entry.dict(exclude={"shop_owner_id"}))

def _booking_to_response(booking: BookingRecord) -> BookingResponse:
    return BookingResponse(**booking.dict(exclude={"shop_owner_id"}))

def _heatmap(store: ShopStore, staff: Optional[List[StaffMember]] = None) -> DensityResponse:
    density = calculate_booking_density(store.list_bookings(), staff if staff is not None else store.list_staff())
    return DensityResponse(density=density, levels=density_levels(density))


# --- Public Booking Endpoints ---

@public_router.get("/{owner_id}", response_model=BookingPageResponse)
def get_booking_page(
    owner_id: str,
    registry: ShopRegistry = Depends(get_registry),
    store: ShopStore = Depends(get_public_store),
):
    """
    Everything the customer-facing booking page renders: the shop, its
    services and staff, and the booking heatmap.
    """
    staff = store.list_staff()
    return BookingPageResponse(
        shop=_shop_to_response(registry.require_shop(owner_id)),
        services=[ServiceResponse(**s.dict(exclude={"shop_owner_id"})) for s in store.list_services()],
        staff=[_staff_to_response(member) for member in staff],
        heatmap=_heatmap(store, staff),
    )


@public_router.get("/{owner_id}/slots", response_model=SlotsResponse)
def get_available_slots(
    owner_id: str,
    staff_id: int = Query(...),
    service_id: int = Query(...),
    date: date_type = Query(..., description="Date in YYYY-MM-DD format"),
    selected_time: Optional[str] = Query(None, description="Currently selected HH:MM, kept only if still offered"),
    store: ShopStore = Depends(get_public_store),
):
    """Start times the chosen staff member can take the chosen service on a date."""
    staff = store.get_staff(staff_id)
    if staff is None:
        raise NotFoundError(f"Staff member {staff_id} not found")
    service = store.get_service(service_id)
    if service is None:
        raise NotFoundError(f"Service {service_id} not found")

    slots = generate_time_slots(
        staff.availability, store.list_time_off(), date, service.duration_minutes, staff_id=staff.id
    )
    return SlotsResponse(
        staff_id=staff_id,
        service_id=service_id,
        date=date,
        slots=slots,
        selected_time=reconcile_selected_time(selected_time, slots),
    )


@public_router.post("/{owner_id}/bookings", response_model=BookingSubmissionResponse, status_code=status.HTTP_201_CREATED)
def submit_booking(
    owner_id: str,
    request: BookingSubmitRequest,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
):
    """Creates a booking and returns where to send the customer next (checkout or thank-you page)."""
    outcome = workflow.submit(BookingRequest(**request.dict()))
    return BookingSubmissionResponse(**outcome.dict())


@public_router.post("/{owner_id}/bookings/{booking_id}/confirm", response_model=BookingConfirmationResponse)
def confirm_booking(
    owner_id: str,
    booking_id: int,
    session_id: Optional[str] = Query(None),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
):
    """Called from the thank-you page after checkout. The session is verified with Stripe; safe to call more than once."""
    confirmed = workflow.confirm_payment(booking_id, session_id)
    return BookingConfirmationResponse(booking_id=booking_id, confirmed=confirmed, status=BookingStatus.PAID)


# --- Shop Endpoints ---

@owner_router.post("/shops", response_model=ShopResponse, status_code=status.HTTP_201_CREATED)
def create_shop(
    request: ShopCreateRequest,
    owner_id: str = Depends(get_owner_id),
    registry: ShopRegistry = Depends(get_registry),
    db_router: DatabaseRouter = Depends(get_router),
    settings: Dict[str, Any] = Depends(get_settings),
):
    """Sign-up: registers the shop and seeds one staff member per name given."""
    staff_names = [name.strip() for name in request.staff_names if name.strip()]
    shop = registry.create_shop(Shop(
        owner_id=owner_id,
        name=request.name.strip(),
        region=request.region,
        currency=(request.currency or settings["default_currency"]).lower(),
        location_type=request.location_type,
        address=request.address,
        staff_count=len(staff_names),
        headline=DEFAULT_HEADLINE,
        description=DEFAULT_DESCRIPTION,
    ))
    with open_shop_store(shop, registry, db_router) as store:
        for name in staff_names:
            store.create_staff(name)
    logger.info("Registered shop %s in region %s with %d staff", owner_id, shop.region.value, len(staff_names))
    return _shop_to_response(shop)


@owner_router.get("/shop", response_model=ShopResponse)
def get_shop(owner_id: str = Depends(get_owner_id), registry: ShopRegistry = Depends(get_registry)):
    return _shop_to_response(registry.require_shop(owner_id))


@owner_router.patch("/shop", response_model=ShopResponse)
def update_shop(
    request: ShopUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    registry: ShopRegistry = Depends(get_registry),
):
    return _shop_to_response(registry.update_shop(owner_id, name=request.name, address=request.address))


@owner_router.patch("/shop/public-site", response_model=ShopResponse)
def update_public_site(
    request: PublicSiteRequest,
    owner_id: str = Depends(get_owner_id),
    registry: ShopRegistry = Depends(get_registry),
):
    """Headline and description shown on the public booking page."""
    return _shop_to_response(
        registry.update_shop(owner_id, headline=request.headline, description=request.description)
    )


@owner_router.post("/shop/stripe/connect", response_model=StripeConnectResponse)
def connect_stripe(
    owner_id: str = Depends(get_owner_id),
    registry: ShopRegistry = Depends(get_registry),
    payments: StripeGateway = Depends(get_payments),
    settings: Dict[str, Any] = Depends(get_settings),
):
    """Starts Stripe Connect onboarding and returns the hosted onboarding URL."""
    shop = registry.require_shop(owner_id)
    account_id, onboarding_url = payments.create_connect_account(owner_id, settings["public_base_url"])
    registry.set_stripe_account(shop.owner_id, account_id)
    return StripeConnectResponse(onboarding_url=onboarding_url)


@owner_router.post("/shop/stripe/connected", response_model=ShopResponse)
def mark_stripe_connected(owner_id: str = Depends(get_owner_id), registry: ShopRegistry = Depends(get_registry)):
    """Called when the owner returns from onboarding."""
    shop = registry.require_shop(owner_id)
    if not shop.stripe_account_id:
        raise NotFoundError("No Stripe account has been created for this shop")
    return _shop_to_response(registry.mark_stripe_connected(owner_id))


# --- Service Endpoints ---

@owner_router.get("/services", response_model=List[ServiceResponse])
def list_services(store: ShopStore = Depends(get_owner_store)):
    return [ServiceResponse(**s.dict(exclude={"shop_owner_id"})) for s in store.list_services()]


@owner_router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(request: ServiceRequest, store: ShopStore = Depends(get_owner_store)):
    service = store.create_service(request.name, request.duration_minutes, request.price)
    return ServiceResponse(**service.dict(exclude={"shop_owner_id"}))


@owner_router.put("/services/{service_id}", response_model=ServiceResponse)
def update_service(service_id: int, request: ServiceRequest, store: ShopStore = Depends(get_owner_store)):
    service = store.update_service(service_id, request.name, request.duration_minutes, request.price)
    return ServiceResponse(**service.dict(exclude={"shop_owner_id"}))


@owner_router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(service_id: int, store: ShopStore = Depends(get_owner_store)):
    store.delete_service(service_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Staff Endpoints ---

@owner_router.get("/staff", response_model=List[StaffResponse])
def list_staff(store: ShopStore = Depends(get_owner_store)):
    return [_staff_to_response(member) for member in store.list_staff()]


@owner_router.post("/staff", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff(request: StaffCreateRequest, store: ShopStore = Depends(get_owner_store)):
    member = store.create_staff(
        request.name, title=request.title, avatar_url=request.avatar_url, availability=request.availability
    )
    return _staff_to_response(member)


@owner_router.put("/staff/{staff_id}", response_model=StaffResponse)
def update_staff(staff_id: int, request: StaffUpdateRequest, store: ShopStore = Depends(get_owner_store)):
    return _staff_to_response(store.update_staff(staff_id, request.name, request.title))


@owner_router.put("/staff/{staff_id}/availability", response_model=StaffResponse)
def replace_staff_availability(staff_id: int, request: AvailabilityRequest, store: ShopStore = Depends(get_owner_store)):
    """Replaces the staff member's whole weekly schedule."""
    return _staff_to_response(store.replace_availability(staff_id, request.availability))


@owner_router.delete("/staff/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_staff(staff_id: int, store: ShopStore = Depends(get_owner_store)):
    store.delete_staff(staff_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Time Off Endpoints ---

@owner_router.get("/time-off", response_model=List[TimeOffResponse])
def list_time_off(store: ShopStore = Depends(get_owner_store)):
    return [_time_off_to_response(entry) for entry in store.list_time_off()]


@owner_router.post("/time-off", response_model=TimeOffResponse, status_code=status.HTTP_201_CREATED)
def create_time_off(request: TimeOffRequest, store: ShopStore = Depends(get_owner_store)):
    return _time_off_to_response(store.create_time_off(request.staff_id, request.date, request.reason))


@owner_router.delete("/time-off/{time_off_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_time_off(time_off_id: int, store: ShopStore = Depends(get_owner_store)):
    store.delete_time_off(time_off_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Dashboard Endpoints ---

@owner_router.get("/schedule", response_model=ScheduleResponse)
def get_schedule(
    date: Optional[date_type] = Query(None, description="Date in YYYY-MM-DD format, defaults to today"),
    store: ShopStore = Depends(get_owner_store),
):
    """The owner's day view: bookings and time off on one date plus the heatmap."""
    target = date or date_type.today()
    bookings = store.list_bookings()
    density = calculate_booking_density(bookings, store.list_staff())
    return ScheduleResponse(
        date=target,
        bookings=[_booking_to_response(b) for b in bookings_on(bookings, target)],
        time_off=[_time_off_to_response(t) for t in time_off_on(store.list_time_off(), target)],
        heatmap=DensityResponse(density=density, levels=density_levels(density)),
    )


@owner_router.get("/overview", response_model=OverviewResponse)
def get_overview(store: ShopStore = Depends(get_owner_store)):
    stats = calculate_overview_stats(store.list_bookings())
    return OverviewResponse(
        total_revenue=stats.total_revenue,
        monthly_bookings=stats.monthly_bookings,
        new_clients=stats.new_clients,
        most_booked_service=stats.most_booked_service,
        todays_appointments=[_booking_to_response(b) for b in sort_by_time(stats.todays_appointments)],
    )


@owner_router.get("/clients", response_model=List[ClientResponse])
def list_clients(store: ShopStore = Depends(get_owner_store)):
    return [ClientResponse(**client.dict()) for client in summarize_clients(store.list_bookings())]


router.include_router(public_router)
router.include_router(owner_router)
