# app/services/product_service.py
import logging
import re
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.storage_utils import (
    upload_to_storage,
    delete_public_url,
    generate_filename,
)
from app.models.product import Product
from app.repositories.product_repo import ProductRepository
from app.schemas.product import ProductCreate, ProductRead, ProductUpdate

logger = logging.getLogger(__name__)

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def _join(values: list[str]) -> str:
    return ",".join(values)


def _split(value: str) -> list[str]:
    return [v for v in value.split(",") if v] if value else []


class ProductService:
    """
    Business logic for the catalog.

    Responsibilities:
      - slug generation & uniqueness
      - validation beyond pydantic
      - image upload/delete orchestration with the media host
      - admin-only operations (enforced at router via require_admin)

    Stock is edited directly only by admins; checkout and cancellation go
    through ProductRepository.reserve_stock/release_stock.
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _slugify(raw: str) -> str:
        """
        Basic slugification:
          - lowercase
          - non-alphanumeric -> '-'
          - collapse multiple '-'
          - strip leading/trailing '-'
        """
        value = raw.strip().lower()
        value = re.sub(r"[^a-z0-9]+", "-", value)
        value = re.sub(r"-+", "-", value)
        value = value.strip("-")
        return value or "product"

    def _ensure_unique_slug(self, session: Session, base_slug: str) -> str:
        """
        Ensure slug is unique by appending -2, -3, ... if needed.
        """
        slug = base_slug
        i = 2
        while self.repo.get_by_slug(session, slug) is not None:
            slug = f"{base_slug}-{i}"
            i += 1
        return slug

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported image type. Allowed: JPEG, PNG, WEBP.",
            )

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image too large (max 5MB).",
            )

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    @staticmethod
    def to_read(product: Product) -> ProductRead:
        return ProductRead(
            id=product.id,
            name=product.name,
            slug=product.slug,
            description=product.description,
            price=product.price,
            discounted_price=product.discounted_price,
            category=product.category,
            stock=product.stock,
            sizes=_split(product.sizes),
            colors=_split(product.colors),
            featured=product.featured,
            discount=product.discount,
            is_active=product.is_active,
            image_url=product.image_url,
            created_at=product.created_at,
        )

    # ----- Products -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
        category: str | None = None,
        search: str | None = None,
        featured: bool | None = None,
    ) -> list[ProductRead]:
        products = self.repo.list_products(
            session,
            skip=skip,
            limit=limit,
            only_active=only_active,
            category=category,
            search=search,
            featured=featured,
        )
        return [self.to_read(p) for p in products]

    def _get(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    def get_product(self, session: Session, product_id: uuid.UUID) -> ProductRead:
        return self.to_read(self._get(session, product_id))

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
    ) -> ProductRead:
        """
        Create a new product with a unique slug.

        - If slug is provided => slugify & ensure unique.
        - Else => slugify from name & ensure unique.
        """
        raw_slug = payload.slug or payload.name
        base_slug = self._slugify(raw_slug)
        slug = self._ensure_unique_slug(session, base_slug)

        product = Product(
            name=payload.name,
            slug=slug,
            description=payload.description,
            price=payload.price,
            category=payload.category,
            stock=payload.stock,
            sizes=_join(payload.sizes),
            colors=_join(payload.colors),
            featured=payload.featured,
            discount=payload.discount,
            is_active=payload.is_active,
        )
        product = self.repo.create(session, product)
        logger.info("Product %s created (%s)", product.id, product.slug)
        return self.to_read(product)

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> ProductRead:
        """
        Partial update of a product.

        - If slug is changed, enforce uniqueness.
        """
        product = self._get(session, product_id)

        if payload.name is not None:
            product.name = payload.name

        if payload.slug is not None:
            new_base_slug = self._slugify(payload.slug)
            if new_base_slug != product.slug:
                product.slug = self._ensure_unique_slug(session, new_base_slug)

        if payload.description is not None:
            product.description = payload.description

        if payload.price is not None:
            product.price = payload.price

        if payload.category is not None:
            product.category = payload.category

        if payload.stock is not None:
            product.stock = payload.stock

        if payload.sizes is not None:
            product.sizes = _join(payload.sizes)

        if payload.colors is not None:
            product.colors = _join(payload.colors)

        if payload.featured is not None:
            product.featured = payload.featured

        if payload.discount is not None:
            product.discount = payload.discount

        if payload.is_active is not None:
            product.is_active = payload.is_active

        if payload.image_url is not None:
            product.image_url = payload.image_url

        return self.to_read(self.repo.update(session, product))

    def delete_product(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> None:
        """
        Delete a product and clean up its image.

        Orders keep their own snapshot of name/price/image.
        """
        product = self._get(session, product_id)

        if product.image_url:
            delete_public_url(product.image_url)

        self.repo.delete(session, product)

    # ----- Image -----

    def set_image(
        self,
        session: Session,
        product_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> ProductRead:
        """
        Upload or replace the main image for a product.

        - Validates content type + size.
        - Deletes the previous image from Storage if present.
        - Uploads under products/<product_id>/<uuid>.<ext>; the random
          name keeps CDN caches from serving the old picture.
        """
        product = self._get(session, product_id)
        ext = self._validate_and_get_ext(content_type, file_bytes)

        if product.image_url:
            delete_public_url(product.image_url)

        path = f"products/{product.id}/{generate_filename(ext)}"
        product.image_url = upload_to_storage(path, file_bytes, content_type)

        return self.to_read(self.repo.update(session, product))
