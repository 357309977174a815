from __future__ import annotations

from ..extensions import db
from ..permissions import Role, Capability, has_capability
from ..time_utils import to_utc_z


class User(db.Model):
    """
    Store operator (administrator, stock clerk or seller).

    Credentials and sessions are handled upstream; this row only carries
    identity for attribution and the role used for capability checks.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum(Role, native_enum=False, length=32), nullable=False, default=Role.SELLER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def can(self, capability: Capability) -> bool:
        return bool(self.is_active) and has_capability(self.role, capability)

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
