from healthhub.permissions import (
    ACTION_FLAGS,
    DEFAULT_ROLES,
    default_permissions,
    full_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    merge_permissions,
)


def role_permissions(name):
    return next(role for role in DEFAULT_ROLES if role["name"] == name)["permissions"]


def test_default_permissions_grant_nothing():
    permissions = default_permissions()
    assert set(permissions) == {"dashboard", "actions", "data"}
    assert not any(permissions["actions"].values())


def test_full_permissions_grant_everything():
    permissions = full_permissions()
    assert all(permissions["actions"][flag] for flag in ACTION_FLAGS)
    assert has_permission(permissions, "data", "export_data")


def test_override_is_applied_per_category():
    cashier = role_permissions("Cashier")
    merged = merge_permissions(cashier, {"actions": {"manage_inventory": True}})

    assert merged["actions"]["manage_inventory"] is True
    assert merged["actions"]["process_orders"] is True
    assert merged["dashboard"] == cashier["dashboard"]
    # the base map is left untouched
    assert cashier["actions"]["manage_inventory"] is False


def test_merge_without_base_starts_from_defaults():
    merged = merge_permissions(None, {"dashboard": {"pos": True}})
    assert merged["dashboard"]["pos"] is True
    assert merged["dashboard"]["orders"] is False


def test_any_and_all_checks():
    manager = role_permissions("Manager")
    assert has_any_permission(manager, [("actions", "manage_settings"), ("dashboard", "orders")])
    assert not has_all_permissions(manager, [("actions", "manage_settings"), ("dashboard", "orders")])
    assert not has_permission(None, "dashboard", "orders")


def test_system_roles_have_unique_names():
    names = [role["name"] for role in DEFAULT_ROLES]
    assert len(names) == len(set(names))
    assert all(role["is_system"] for role in DEFAULT_ROLES)
