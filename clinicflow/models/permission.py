"""Permission model: one (route, HTTP method) access unit."""

import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship

from clinicflow.db.base import Base


class HttpMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


# Canonical order used whenever methods are listed
HTTP_METHODS = [m.value for m in HttpMethod]


class PermissionCategory(str, enum.Enum):
    admin = "admin"
    auth = "auth"
    dashboard = "dashboard"
    patients = "patients"
    appointments = "appointments"
    billing = "billing"
    inventory = "inventory"
    prescriptions = "prescriptions"
    ehr = "ehr"
    email = "email"
    api = "api"
    settings = "settings"
    profile = "profile"
    reports = "reports"


CATEGORY_DESCRIPTIONS = {
    PermissionCategory.dashboard.value: "Dashboard and main application pages",
    PermissionCategory.admin.value: "Administrative functions and user management",
    PermissionCategory.auth.value: "Authentication and authorization",
    PermissionCategory.patients.value: "Patient management and records",
    PermissionCategory.appointments.value: "Appointment scheduling and management",
    PermissionCategory.billing.value: "Billing and payment processing",
    PermissionCategory.inventory.value: "Inventory and stock management",
    PermissionCategory.prescriptions.value: "Prescription management",
    PermissionCategory.ehr.value: "Electronic Health Records",
    PermissionCategory.email.value: "Email and communication",
    PermissionCategory.api.value: "API endpoints",
    PermissionCategory.settings.value: "System and user settings",
    PermissionCategory.profile.value: "User profile management",
    PermissionCategory.reports.value: "Reports and analytics",
}


class Permission(Base):
    """Access right for a single route pattern and HTTP method."""
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("route", "method", name="route_method_unique"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    route = Column(String(255), nullable=False, index=True)
    method = Column(String(10), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Set when a reconciliation retired the route, cleared when it returns
    deactivated_by_sync = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    roles = relationship("Role", secondary="role_permissions", back_populates="permissions")

    @property
    def token(self) -> str:
        return f"{self.route}:{self.method}"
