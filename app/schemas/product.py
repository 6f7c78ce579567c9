# app/schemas/product.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

Category = Literal["hijab", "abaya", "jalabiya", "accessory"]
Size = Literal["XS", "S", "M", "L", "XL", "XXL", "One Size"]

MAX_PRICE = 500_000


def _clean_list(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return [v.strip() for v in values if v and v.strip()]


class ProductCreate(SQLModel):
    """
    Payload for creating a product.

    - slug is optional: if omitted, generated from `name`.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    slug: str | None = None
    description: str | None = Field(default=None, max_length=1000)
    price: float = Field(gt=0, le=MAX_PRICE)
    category: Category
    stock: int = Field(default=0, ge=0)
    sizes: list[Size] = []
    colors: list[str] = []
    featured: bool = False
    discount: float = Field(default=0, ge=0, le=100)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty if provided")
        return v

    @field_validator("colors")
    @classmethod
    def normalize_colors(cls, v: list[str]) -> list[str]:
        return _clean_list(v)


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    name: str
    slug: str
    description: str | None
    price: float
    discounted_price: float
    category: str
    stock: int
    sizes: list[str]
    colors: list[str]
    featured: bool
    discount: float
    is_active: bool
    image_url: str | None
    created_at: datetime


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    slug: str | None = None
    description: str | None = Field(default=None, max_length=1000)
    price: float | None = Field(default=None, gt=0, le=MAX_PRICE)
    category: Category | None = None
    stock: int | None = Field(default=None, ge=0)
    sizes: list[Size] | None = None
    colors: list[str] | None = None
    featured: bool | None = None
    discount: float | None = Field(default=None, ge=0, le=100)
    is_active: bool | None = None
    image_url: str | None = None  # allow manual override if needed

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty")
        return v

    @field_validator("colors")
    @classmethod
    def normalize_colors(cls, v: list[str] | None) -> list[str] | None:
        return _clean_list(v)
