"""
Employee permission maps and the default system roles.

A permission map has three categories of boolean flags:
    {"dashboard": {...}, "actions": {...}, "data": {...}}
Role permissions are the base; an employee's permissions_override is laid
over it one category at a time.
"""

import copy
from typing import Iterable, Optional

DASHBOARD_FLAGS = (
    "overview",
    "patients",
    "appointments",
    "messages",
    "finances",
    "analytics",
    "settings",
    "requests",
    "samples",
    "results",
    "equipment",
    "prescriptions",
    "orders",
    "inventory",
    "delivery",
    "documents",
    "lab_requests",
    "pos",
    "chifa",
)

ACTION_FLAGS = (
    "create_appointments",
    "cancel_appointments",
    "view_patient_details",
    "create_prescriptions",
    "process_orders",
    "manage_inventory",
    "view_reports",
    "manage_employees",
    "manage_settings",
)

DATA_FLAGS = ("view_all_patients", "view_financial_data", "export_data")

CATEGORIES = {
    "dashboard": DASHBOARD_FLAGS,
    "actions": ACTION_FLAGS,
    "data": DATA_FLAGS,
}


def _flags(names: Iterable[str], enabled: Iterable[str] = ()) -> dict:
    enabled = set(enabled)
    return {name: name in enabled for name in names}


def default_permissions() -> dict:
    """Permission map with every flag off"""
    return {category: _flags(names) for category, names in CATEGORIES.items()}


def full_permissions() -> dict:
    """Permission map with every flag on (owner / Admin)"""
    return {category: _flags(names, names) for category, names in CATEGORIES.items()}


def merge_permissions(base: Optional[dict], overrides: Optional[dict]) -> dict:
    """Overlay a partial override map onto base permissions, category by category"""
    merged = copy.deepcopy(base) if base else default_permissions()
    for category in CATEGORIES:
        merged.setdefault(category, {})
    if not overrides:
        return merged
    for category in CATEGORIES:
        if overrides.get(category):
            merged[category] = {**merged[category], **overrides[category]}
    return merged


def has_permission(permissions: Optional[dict], category: str, flag: str) -> bool:
    if not permissions:
        return False
    return bool((permissions.get(category) or {}).get(flag, False))


def has_all_permissions(permissions: Optional[dict], checks: Iterable[tuple]) -> bool:
    """True when every (category, flag) pair is granted"""
    return all(has_permission(permissions, category, flag) for category, flag in checks)


def has_any_permission(permissions: Optional[dict], checks: Iterable[tuple]) -> bool:
    """True when at least one (category, flag) pair is granted"""
    return any(has_permission(permissions, category, flag) for category, flag in checks)


# ============================================================================
# DEFAULT SYSTEM ROLES
# ============================================================================

_FULL_DASHBOARD = _flags(DASHBOARD_FLAGS, DASHBOARD_FLAGS)
_FULL_ACTIONS = _flags(ACTION_FLAGS, ACTION_FLAGS)
_FULL_DATA = _flags(DATA_FLAGS, DATA_FLAGS)
_NO_DATA = _flags(DATA_FLAGS)


def _role(name: str, description: str, dashboard: dict, actions: dict, data: dict) -> dict:
    return {
        "name": name,
        "description": description,
        "is_system": True,
        "permissions": {"dashboard": dashboard, "actions": actions, "data": data},
    }


DEFAULT_ROLES = [
    _role(
        "Admin",
        "Full access to all features and settings",
        _FULL_DASHBOARD,
        _FULL_ACTIONS,
        _FULL_DATA,
    ),
    _role(
        "Manager",
        "Can manage operations but not settings or employees",
        {**_FULL_DASHBOARD, "settings": False},
        {**_FULL_ACTIONS, "manage_employees": False, "manage_settings": False},
        _FULL_DATA,
    ),
    _role(
        "Receptionist",
        "Front desk: appointments, test requests, sample receive; no settings",
        _flags(
            DASHBOARD_FLAGS,
            ["overview", "patients", "appointments", "messages", "requests", "samples",
             "prescriptions", "orders", "lab_requests"],
        ),
        _flags(ACTION_FLAGS, ["create_appointments", "cancel_appointments", "view_patient_details"]),
        _flags(DATA_FLAGS, ["view_all_patients"]),
    ),
    _role(
        "Technician",
        "Lab or pharmacy: process tests and orders; no settings or finances",
        _flags(
            DASHBOARD_FLAGS,
            ["overview", "messages", "requests", "samples", "results", "equipment",
             "prescriptions", "orders", "inventory", "lab_requests", "pos"],
        ),
        _flags(ACTION_FLAGS, ["view_patient_details", "process_orders", "manage_inventory"]),
        _NO_DATA,
    ),
    _role(
        "Assistant",
        "View only: overview, requests, orders; minimal actions",
        _flags(DASHBOARD_FLAGS, ["overview", "patients", "appointments", "requests", "orders", "lab_requests"]),
        _flags(ACTION_FLAGS),
        _NO_DATA,
    ),
    # Pharmacy
    _role(
        "Sales Person",
        "Pharmacy sales: POS, prescriptions, orders, inventory; no Chifa or accounting",
        _flags(DASHBOARD_FLAGS, ["overview", "messages", "prescriptions", "orders", "inventory", "pos"]),
        _flags(ACTION_FLAGS, ["view_patient_details", "process_orders", "manage_inventory"]),
        _NO_DATA,
    ),
    _role(
        "Cashier",
        "Pharmacy cashier: POS and orders only",
        _flags(DASHBOARD_FLAGS, ["overview", "prescriptions", "orders", "pos"]),
        _flags(ACTION_FLAGS, ["view_patient_details", "process_orders"]),
        _NO_DATA,
    ),
    # Doctor / clinic
    _role(
        "Physician",
        "Doctor or clinic: patients, appointments, prescriptions, lab requests; no finances or settings",
        _flags(
            DASHBOARD_FLAGS,
            ["overview", "patients", "appointments", "messages", "prescriptions", "documents", "lab_requests"],
        ),
        _flags(
            ACTION_FLAGS,
            ["create_appointments", "cancel_appointments", "view_patient_details", "create_prescriptions"],
        ),
        _flags(DATA_FLAGS, ["view_all_patients"]),
    ),
    # Laboratory
    _role(
        "Lab Technician",
        "Laboratory: test requests, samples, results, equipment only",
        _flags(DASHBOARD_FLAGS, ["overview", "requests", "samples", "results", "equipment"]),
        _flags(ACTION_FLAGS, ["view_patient_details", "process_orders"]),
        _NO_DATA,
    ),
]
