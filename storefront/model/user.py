# --- storefront/model/user.py ---
from sqlalchemy.sql import func
from ..extensions import db
from .role import PERMISSIONS, user_roles

# account level; finer staff rights come from assigned roles
ROLE_LEVEL = {"user": 1, "admin": 2}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # user, admin
    email_verified_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())

    roles = db.relationship("Role", secondary=user_roles, back_populates="users", lazy="selectin")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None

    @property
    def permission_keys(self) -> set[str]:
        if self.is_admin:
            return set(PERMISSIONS)
        return {key for r in self.roles for key in r.permission_keys}

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "roles": sorted(r.name for r in self.roles),
            "email_verified": self.email_verified,
        }
