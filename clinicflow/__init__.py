"""ClinicFlow access control service: permission registry, roles and route-level RBAC."""

__version__ = "0.1.0"
