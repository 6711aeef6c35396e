from __future__ import annotations

from enum import Enum


class CustomerTier(str, Enum):
    """Selects which price column applies to a customer."""
    RETAIL = "retail"
    WHOLESALE = "wholesale"
    CLUB = "club"

    @classmethod
    def values(cls) -> list[str]:
        return [t.value for t in cls]

    @classmethod
    def parse(cls, value, *, default: "CustomerTier | None" = None) -> "CustomerTier":
        """
        Coerce a tier name to the enum.

        A missing value (None / "") returns `default` when one is given.
        An unknown name always raises ValueError; there is no silent fallback.
        """
        if isinstance(value, cls):
            return value
        if value is None or (isinstance(value, str) and not value.strip()):
            if default is not None:
                return default
            raise ValueError("tier is required")
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"tier must be one of: {', '.join(cls.values())}") from None


class Brand(str, Enum):
    GREENHIL = "greenhil"
    HARICAN = "harican"
    BYKO = "byko"

    @classmethod
    def values(cls) -> list[str]:
        return [b.value for b in cls]


BRAND_DISPLAY_NAMES = {
    Brand.GREENHIL.value: "Green Hill",
    Brand.HARICAN.value: "Harican",
    Brand.BYKO.value: "Byko",
}


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class UserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
