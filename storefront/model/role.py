# --- storefront/model/role.py ---
from sqlalchemy.sql import func
from ..extensions import db

# key -> (name, category); rows are synced into `permissions` on startup
PERMISSIONS = {
    "dashboard.view": ("View Dashboard", "dashboard"),

    "products.view": ("View Products", "products"),
    "products.create": ("Create Products", "products"),
    "products.edit": ("Edit Products", "products"),
    "products.delete": ("Delete Products", "products"),

    "orders.view": ("View Orders", "orders"),
    "orders.edit": ("Edit Orders", "orders"),

    "coupons.view": ("View Coupons", "coupons"),
    "coupons.create": ("Create Coupons", "coupons"),
    "coupons.update": ("Edit Coupons", "coupons"),
    "coupons.delete": ("Delete Coupons", "coupons"),

    "users.view": ("View Users", "users"),

    "banners.view": ("View Banners", "content"),
    "banners.create": ("Create Banners", "content"),
    "banners.edit": ("Edit Banners", "content"),
    "banners.delete": ("Delete Banners", "content"),

    "catalogues.view": ("View Catalogues", "content"),
    "catalogues.create": ("Create Catalogues", "content"),
    "catalogues.edit": ("Edit Catalogues", "content"),
    "catalogues.delete": ("Delete Catalogues", "content"),

    "roles.view": ("View Roles", "admin"),
    "roles.create": ("Create Roles", "admin"),
    "roles.edit": ("Edit Roles", "admin"),
    "roles.delete": ("Delete Roles", "admin"),
    "roles.assign": ("Assign Roles", "admin"),
}

# created once if missing; admins may edit them afterwards
DEFAULT_ROLES = {
    "manager": (
        "Store staff: catalogue and order handling",
        {
            "dashboard.view",
            "products.view", "products.create", "products.edit",
            "orders.view", "orders.edit",
            "coupons.view",
            "banners.view", "catalogues.view",
        },
    ),
}

role_permissions = db.Table(
    "role_permissions",
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    db.Column("permission_id", db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    category = db.Column(db.String(40), nullable=False)

    def as_api(self):
        return {"key": self.key, "name": self.name, "category": self.category}


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, server_default=func.now())

    permissions = db.relationship(
        "Permission", secondary=role_permissions, lazy="selectin", order_by="Permission.key")
    users = db.relationship("User", secondary=user_roles, back_populates="roles")

    @property
    def permission_keys(self) -> list[str]:
        return [p.key for p in self.permissions]

    def as_api(self, with_users=False):
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "permissions": self.permission_keys,
        }
        if with_users:
            data["users"] = [{"id": u.id, "email": u.email, "name": u.name} for u in self.users]
        return data
