"""
Request Schemas

Pydantic models validated at the HTTP boundary before any store operation
runs. Field names are snake_case; the frontend's camelCase keys are accepted
through aliases.
"""

from decimal import Decimal
from typing import Literal, Optional

from flask import request
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from core import MIN_COMPANY_REDEMPTION, ORDER_STATUSES, PAYMENT_METHODS

OrderStatus = Literal[ORDER_STATUSES]
PaymentMethod = Literal[PAYMENT_METHODS]


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# Auth
class LoginRequest(RequestModel):
    """Claims handed over by the identity provider after sign-in."""
    id: str = Field(..., min_length=1, max_length=64)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class AdminLoginRequest(RequestModel):
    password: str


# Catalog
class ProductFilters(RequestModel):
    category: Optional[int] = None
    seller: Optional[int] = None
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None


class ProductCreateRequest(RequestModel):
    category_id: int
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, decimal_places=2)
    image_url: Optional[str] = None
    co2_saved_per_unit: Decimal = Field(..., ge=0, decimal_places=2)
    eco_rating: str = "0"
    stock: int = Field(0, ge=0)


class ProductUpdateRequest(RequestModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    image_url: Optional[str] = None
    co2_saved_per_unit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    eco_rating: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


# Cart / checkout
class AddToCartRequest(RequestModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class UpdateCartRequest(RequestModel):
    quantity: int  # zero or below removes the line


class CheckoutRequest(RequestModel):
    shipping_address: str = Field(..., min_length=1)
    payment_method: PaymentMethod

    @field_validator("shipping_address")
    @classmethod
    def not_blank(cls, value):
        if not value.strip():
            raise ValueError("shipping address is required")
        return value.strip()


class DonatePointsRequest(RequestModel):
    points: int = Field(..., gt=0)


# Seller
class SellerRegisterRequest(RequestModel):
    business_name: str = Field(..., min_length=1, max_length=200)
    certification_type: str = Field(..., min_length=1, max_length=80)
    certificate_url: Optional[str] = None


class OrderStatusRequest(RequestModel):
    status: OrderStatus


# Admin
class VerifyProductRequest(RequestModel):
    approved: bool
    notes: str = ""


class VerifySellerRequest(RequestModel):
    is_verified: bool


# Company
class AddEmployeeRequest(RequestModel):
    email: EmailStr


class RedeemPointsRequest(RequestModel):
    points: int = Field(..., ge=MIN_COMPANY_REDEMPTION)
    action: Literal["plant_trees"] = "plant_trees"


def parse_json(schema):
    """Validate the current request's JSON body against ``schema``."""
    return schema.model_validate(request.get_json(silent=True) or {})
