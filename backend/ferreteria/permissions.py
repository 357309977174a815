# Overview: Closed set of operator roles and the capabilities each one grants.

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMINISTRATOR = "ADMINISTRATOR"
    STOCK = "STOCK"
    SELLER = "SELLER"


class Capability(str, Enum):
    MANAGE_CATALOG = "MANAGE_CATALOG"
    VIEW_STOCK = "VIEW_STOCK"
    ADJUST_STOCK = "ADJUST_STOCK"
    CREATE_SALE = "CREATE_SALE"
    VIEW_SALES = "VIEW_SALES"
    MANAGE_CREDIT = "MANAGE_CREDIT"
    OVERRIDE_CREDIT_LIMIT = "OVERRIDE_CREDIT_LIMIT"
    VIEW_AUDIT = "VIEW_AUDIT"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMINISTRATOR: frozenset(Capability),
    Role.STOCK: frozenset({
        Capability.MANAGE_CATALOG,
        Capability.VIEW_STOCK,
        Capability.ADJUST_STOCK,
    }),
    Role.SELLER: frozenset({
        Capability.VIEW_STOCK,
        Capability.CREATE_SALE,
        Capability.VIEW_SALES,
    }),
}


class PermissionDeniedError(Exception):
    """Raised when an operator lacks a required capability."""


def has_capability(role: Role | str | None, capability: Capability) -> bool:
    if role is None:
        return False
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
