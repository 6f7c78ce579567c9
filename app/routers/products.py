# app/routers/products.py
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.product_repo import ProductRepository
from app.schemas.product import Category, ProductCreate, ProductRead, ProductUpdate
from app.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

service = ProductService(ProductRepository())


# -------- Storefront --------


@router.get("", response_model=list[ProductRead])
def browse_products(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    category: Category | None = None,
    search: str | None = None,
    featured: bool | None = None,
):
    """
    Active products, newest first.

    `search` matches name or description, case-insensitively.
    """
    return service.list_products(
        session,
        skip=skip,
        limit=limit,
        category=category,
        search=search,
        featured=featured,
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: uuid.UUID, session: Session = Depends(get_session)):
    return service.get_product(session, product_id)


# -------- Staff --------

admin_only = [Depends(require_admin)]


@router.get("/admin/all", response_model=list[ProductRead], dependencies=admin_only)
def list_catalog(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    Whole catalog, hidden products included.
    """
    return service.list_products(session, skip=skip, limit=limit, only_active=False)


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def add_product(payload: ProductCreate, session: Session = Depends(get_session)):
    return service.create_product(session, payload)


@router.patch("/{product_id}", response_model=ProductRead, dependencies=admin_only)
def edit_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    """
    Partial update. Setting `stock` here is a manual restock/correction;
    checkout and cancellation adjust stock on their own.
    """
    return service.update_product(session, product_id, payload)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=admin_only,
)
def remove_product(product_id: uuid.UUID, session: Session = Depends(get_session)):
    """
    Existing orders keep their own copy of name, price and image.
    """
    service.delete_product(session, product_id)


@router.post("/{product_id}/image", response_model=ProductRead, dependencies=admin_only)
def upload_product_image(
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """
    Replace the product photo (JPEG, PNG or WEBP, up to 5MB).
    """
    if not file.content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing content-type for uploaded file",
        )
    return service.set_image(session, product_id, file.content_type, file.file.read())
