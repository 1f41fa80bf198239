from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_CASHIER = "caissier"
ROLE_SUPER_ADMIN = "super_admin"
ROLES = (ROLE_ADMIN, ROLE_CASHIER, ROLE_SUPER_ADMIN)


class User(db.Model):
    """
    Staff account.

    Every user except super_admin belongs to exactly one stock; super_admin
    has stock_id NULL and sees every location.

    password_hash holds a bcrypt hash. Legacy rows imported with a plain
    value never authenticate until `flask users migrate-passwords` runs.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.UniqueConstraint("username", name="uq_users_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    # admin, caissier, super_admin
    role = db.Column(db.String(16), nullable=False, default=ROLE_CASHIER)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    stock = db.relationship("Stock", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "stock_id": self.stock_id,
            "stock_name": self.stock.name if self.stock else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }
