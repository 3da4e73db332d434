from uuid import uuid4

from goldledger import db
from goldledger.ledger import utcnow
from flask_login import UserMixin


def _new_sale_id():
    return uuid4().hex


class User(db.Model, UserMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    display_name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    def __repr__(self):
        return f"<User {self.username}>"


class Sale(db.Model):
    """
    One row per sale, both generations in the same table.

    Current rows fill the base/gst/discount/total/final columns; legacy rows
    (imported from the weight-and-rate era) fill weight/gold_rate/
    making_charges/total_price and leave item_base_price NULL.
    """
    __tablename__ = "sales"

    id = db.Column(db.String(32), primary_key=True, default=_new_sale_id)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    owner = db.relationship("User", backref=db.backref("sales", lazy=True, cascade="all, delete-orphan"))

    customer_name = db.Column(db.String(120), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=True)
    item_name = db.Column(db.String(120), nullable=False)
    huid = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    item_base_price = db.Column(db.Numeric(12, 2), nullable=True)
    gst_amount = db.Column(db.Numeric(12, 2), nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=True)
    total_price_before_discount = db.Column(db.Numeric(12, 2), nullable=True)
    final_price = db.Column(db.Numeric(12, 2), nullable=True)

    # legacy columns
    weight = db.Column(db.Numeric(10, 3), nullable=True)
    gold_rate = db.Column(db.Numeric(12, 2), nullable=True)
    making_charges = db.Column(db.Numeric(12, 2), nullable=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=True)

    # naive UTC; now() on the server would be in the session time zone
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Sale {self.id} owner={self.owner_id} item={self.item_name}>"

    def to_document(self):
        """Row as a store document; NULL columns are left out."""
        doc = {
            "id": self.id,
            "userId": self.owner_id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone or "",
            "itemName": self.item_name,
            "huid": self.huid or "",
            "notes": self.notes or "",
            "timestamp": self.timestamp,
        }
        for column, key in DOCUMENT_KEYS.items():
            value = getattr(self, column)
            if value is not None:
                doc[key] = value
        return doc


# numeric column -> document key
DOCUMENT_KEYS = {
    "item_base_price": "itemBasePrice",
    "gst_amount": "gstAmount",
    "discount_amount": "discountAmount",
    "total_price_before_discount": "totalPriceBeforeDiscount",
    "final_price": "finalPrice",
    "weight": "weight",
    "gold_rate": "goldRate",
    "making_charges": "makingCharges",
    "total_price": "totalPrice",
}
