# marketplace/routers/orders.py
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlmodel import Session

from marketplace.core.auth import require_auth, require_admin
from marketplace.core.config import get_settings
from marketplace.core.notifier import EmailNotifier
from marketplace.database import get_session
from marketplace.models.user import User
from marketplace.repositories.cart_repo import CartRepository
from marketplace.repositories.order_repo import OrderRepository
from marketplace.repositories.product_repo import ProductRepository
from marketplace.repositories.user_repo import UserRepository
from marketplace.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderWithItemsRead,
    PaymentResult,
)
from marketplace.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

settings = get_settings()

service = OrderService(
    OrderRepository(),
    CartRepository(),
    ProductRepository(),
    UserRepository(),
    EmailNotifier(),
)


# -------- User-facing endpoints --------


@router.post(
    "",
    response_model=OrderWithItemsRead,
    status_code=status.HTTP_201_CREATED,
)
def place_order(
    payload: OrderCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Place an order.

    - `items` given: order exactly those products.
    - `items` omitted: check out the current cart, which is then emptied.

    Stock is reserved atomically; a confirmation email is sent afterwards.
    """
    orders_url = f"{str(request.base_url).rstrip('/')}{settings.API_V1_STR}/orders"
    return service.place_order(
        session,
        current_user,
        payload,
        background_tasks,
        orders_url,
    )


@router.get("/myorders", response_model=list[OrderRead])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    skip: int = 0,
    limit: int = 50,
):
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get a single order with items. Owner or admin only.
    """
    return service.get_order(session, current_user, order_id)


@router.put("/{order_id}/pay", response_model=OrderWithItemsRead)
def mark_order_paid(
    order_id: uuid.UUID,
    payload: PaymentResult,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Record the payment provider's confirmation for an order.

    Body: `{id, status, update_time, payer: {email_address}}`.
    """
    return service.mark_paid(
        session, current_user, order_id, payload, background_tasks
    )


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    return service.list_all_orders(session, skip, limit)


@router.put(
    "/{order_id}/deliver",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def mark_order_delivered(
    order_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    return service.mark_delivered(session, order_id, background_tasks)
