"""Consumers of the DineCircle permission HTTP surface."""

from .permissions import (
    CapabilityStates,
    PermissionGate,
    PermissionsClient,
    with_permission,
)

__all__ = ["CapabilityStates", "PermissionGate", "PermissionsClient", "with_permission"]
