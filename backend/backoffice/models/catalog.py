from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product.

    Prices are authoritative integer cents for each tier. Stock is never stored
    on the product: it is the sum of its variants' quantities. Every product
    has at least one variant (a default "One Size" variant is created when
    none is supplied).
    """
    __tablename__ = "products"
    __table_args__ = (
        # Article codes are unique within a brand catalog
        db.UniqueConstraint("brand", "article", name="uq_products_brand_article"),
        db.Index("ix_products_brand_category", "brand", "category"),
        db.Index("ix_products_brand_archived", "brand", "archived"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    brand = db.Column(db.String(32), nullable=False, index=True)
    article = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=False, default="Other")

    taxable = db.Column(db.Boolean, nullable=False, default=True)
    # Ordered attribute names, e.g. ["Size", "Color"]
    attributes = db.Column(db.JSON, nullable=False, default=list)
    media_main = db.Column(db.String(1024), nullable=True)

    wholesale_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_cents = db.Column(db.Integer, nullable=False, default=0)
    club_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_before_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_after_cents = db.Column(db.Integer, nullable=False, default=0)

    min_quantity = db.Column(db.Integer, nullable=False, default=5)
    archived = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variants = db.relationship(
        "Variant",
        back_populates="product",
        order_by="Variant.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} article={self.article!r} brand={self.brand!r}>"

    @property
    def total_quantity(self) -> int:
        return sum(v.quantity for v in self.variants)

    def to_dict(self, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "brand": self.brand,
            "article": self.article,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "taxable": self.taxable,
            "attributes": list(self.attributes or []),
            "media_main": self.media_main,
            "wholesale_cents": self.wholesale_cents,
            "retail_cents": self.retail_cents,
            "club_cents": self.club_cents,
            "cost_before_cents": self.cost_before_cents,
            "cost_after_cents": self.cost_after_cents,
            "min_quantity": self.min_quantity,
            "archived": self.archived,
            "total_quantity": self.total_quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class Variant(db.Model):
    """
    Purchasable configuration of a product (size/color combination).

    Owned by its product and deleted with it. Tier price columns are optional
    overrides: NULL means "use the product's price".
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.Index("ix_variants_product_position", "product_id", "position"),
        db.CheckConstraint("quantity >= 0", name="ck_variants_quantity_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    sku = db.Column(db.String(64), nullable=False, index=True)
    # Attribute name -> value, e.g. {"Size": "10oz", "Color": "RED"}
    attributes = db.Column(db.JSON, nullable=False, default=dict)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    position = db.Column(db.Integer, nullable=False, default=0)

    wholesale_cents = db.Column(db.Integer, nullable=True)
    retail_cents = db.Column(db.Integer, nullable=True)
    club_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="variants")

    def __repr__(self) -> str:
        return f"<Variant id={self.id} sku={self.sku!r} product_id={self.product_id} qty={self.quantity}>"

    def label(self) -> str:
        """Human label built from attribute values, e.g. "10oz / RED"."""
        values = [str(v) for v in (self.attributes or {}).values() if v]
        return " / ".join(values)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "attributes": dict(self.attributes or {}),
            "quantity": self.quantity,
            "position": self.position,
            "wholesale_cents": self.wholesale_cents,
            "retail_cents": self.retail_cents,
            "club_cents": self.club_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(db.Model):
    """Product classification tag with a user-adjustable display order."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    color = db.Column(db.String(16), nullable=False, default="#6B7280")
    sort_order = db.Column(db.Integer, nullable=False, default=0, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }
