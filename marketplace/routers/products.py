# marketplace/routers/products.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    UploadFile,
    status,
)
from sqlmodel import Session

from marketplace.core.auth import require_admin, require_auth
from marketplace.core.errors import InvalidRequest
from marketplace.database import get_session
from marketplace.models.user import User
from marketplace.repositories.cart_repo import CartRepository
from marketplace.repositories.product_repo import ProductRepository
from marketplace.schemas.product import (
    ProductCreate,
    ProductPage,
    ProductRead,
    ProductUpdate,
    ReviewCreate,
    ReviewRead,
)
from marketplace.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo, CartRepository())


# -------- Public endpoints --------


@router.get("", response_model=ProductPage)
def search_products(
    session: Session = Depends(get_session),
    keyword: str | None = None,
    page: int = 1,
):
    """
    Search products by name (case-insensitive), 10 per page.

    Returns `{products, page, pages}`.
    """
    return service.search_products(session, keyword=keyword, page=page)


@router.get("/top", response_model=list[ProductRead])
def top_products(session: Session = Depends(get_session)):
    """
    The three best-rated products.
    """
    return service.top_products(session)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_product(session, product_id)


@router.get("/{product_id}/reviews", response_model=list[ReviewRead])
def list_reviews(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.list_reviews(session, product_id)


# -------- Authenticated endpoints --------


@router.post("/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
def create_review(
    product_id: uuid.UUID,
    payload: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
) -> dict[str, str]:
    """
    Review a product. Each user may review a product once.
    """
    service.add_review(session, product_id, current_user, payload)
    return {"message": "Review added"}


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    return service.create_product(session, payload, admin)


@router.patch(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    return service.update_product(session, product_id, payload)


@router.delete(
    "/{product_id}",
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
) -> dict[str, str]:
    """
    Delete a product and its image (admin only).
    """
    service.delete_product(session, product_id)
    return {"message": "Product removed"}


@router.post(
    "/{product_id}/image",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
    summary="Upload or replace the image of a product",
)
def upload_image(
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """
    - Accepts JPEG, PNG, WEBP up to 5MB.
    - Replaces (and deletes) any previous image.
    """
    if not file.content_type:
        raise InvalidRequest("Missing content-type for uploaded file")

    file_bytes = file.file.read()
    return service.set_image(
        session=session,
        product_id=product_id,
        content_type=file.content_type,
        file_bytes=file_bytes,
    )
