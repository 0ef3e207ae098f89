"""
View Catalog

Every dashboard view as a table of field mappings. Adding a view means
adding a ViewDefinition here, not writing a new join.

Collection names follow the control-plane poller naming:
organizations, spaces, applications, users_cc (control-plane users),
users_uaa (identity-server users) and one collection per role kind.
"""

from typing import Dict, Tuple

from .join_spec import LABEL, JoinSpec, KeyLookup, column
from .view_assembler import ViewDefinition

# -----------------------------------------------------------------------------
# Organization Roles
# -----------------------------------------------------------------------------
ORGANIZATION_ROLE_COLLECTIONS: Dict[str, str] = {
    "organizations_auditors": "Auditor",
    "organizations_billing_managers": "Billing Manager",
    "organizations_managers": "Manager",
    "organizations_users": "User",
}


def organization_role_spec(role_collection: str, label: str) -> JoinSpec:
    """role -> organization, role -> user_cc -> user_uaa."""
    return JoinSpec(
        primary=role_collection,
        primary_role="role",
        lookups=(
            KeyLookup("organization", "role", "organization_id", "organizations"),
            KeyLookup("user_cc", "role", "user_id", "users_cc"),
            KeyLookup("user_uaa", "user_cc", "guid", "users_uaa"),
        ),
        fields=(
            column("organization", "name"),
            column("organization", "guid"),
            column("user_uaa", "username"),
            column("user_uaa", "id"),
            LABEL,
        ),
        label=label,
    )


ORGANIZATION_ROLES_VIEW = ViewDefinition(
    name="organization_roles",
    join_specs=tuple(
        organization_role_spec(name, label)
        for name, label in ORGANIZATION_ROLE_COLLECTIONS.items()
    ),
    required_collections=(
        "organizations",
        *ORGANIZATION_ROLE_COLLECTIONS,
        "users_cc",
        "users_uaa",
    ),
    sortable_columns=frozenset(range(5)),
    searchable_columns=frozenset(range(5)),
    columns=("Organization", "Organization GUID", "User", "User GUID", "Role"),
)

# -----------------------------------------------------------------------------
# Space Roles
# -----------------------------------------------------------------------------
SPACE_ROLE_COLLECTIONS: Dict[str, str] = {
    "spaces_auditors": "Auditor",
    "spaces_developers": "Developer",
    "spaces_managers": "Manager",
}


def space_role_spec(role_collection: str, label: str) -> JoinSpec:
    """role -> space -> organization, role -> user_cc -> user_uaa."""
    return JoinSpec(
        primary=role_collection,
        primary_role="role",
        lookups=(
            KeyLookup("space", "role", "space_id", "spaces"),
            KeyLookup("organization", "space", "organization_id", "organizations"),
            KeyLookup("user_cc", "role", "user_id", "users_cc"),
            KeyLookup("user_uaa", "user_cc", "guid", "users_uaa"),
        ),
        fields=(
            column("space", "name"),
            column("space", "guid"),
            column("organization", "name"),
            column("user_uaa", "username"),
            column("user_uaa", "id"),
            LABEL,
        ),
        label=label,
    )


SPACE_ROLES_VIEW = ViewDefinition(
    name="space_roles",
    join_specs=tuple(
        space_role_spec(name, label)
        for name, label in SPACE_ROLE_COLLECTIONS.items()
    ),
    required_collections=(
        "organizations",
        "spaces",
        *SPACE_ROLE_COLLECTIONS,
        "users_cc",
        "users_uaa",
    ),
    sortable_columns=frozenset(range(6)),
    searchable_columns=frozenset(range(6)),
    columns=("Space", "Space GUID", "Organization", "User", "User GUID", "Role"),
)

# -----------------------------------------------------------------------------
# Applications
# -----------------------------------------------------------------------------
APPLICATIONS_VIEW = ViewDefinition(
    name="applications",
    join_specs=(
        JoinSpec(
            primary="applications",
            primary_role="application",
            lookups=(
                KeyLookup("space", "application", "space_id", "spaces"),
                KeyLookup("organization", "space", "organization_id", "organizations"),
            ),
            fields=(
                column("application", "name"),
                column("application", "guid"),
                column("application", "state"),
                column("application", "instances"),
                column("space", "name"),
                column("organization", "name"),
            ),
        ),
    ),
    required_collections=("applications", "spaces", "organizations"),
    sortable_columns=frozenset(range(6)),
    searchable_columns=frozenset({0, 1, 2, 4, 5}),
    columns=("Name", "GUID", "State", "Instances", "Space", "Organization"),
)


DEFAULT_VIEWS: Tuple[ViewDefinition, ...] = (
    ORGANIZATION_ROLES_VIEW,
    SPACE_ROLES_VIEW,
    APPLICATIONS_VIEW,
)


def build_catalog(*views: ViewDefinition) -> Dict[str, ViewDefinition]:
    """Name -> ViewDefinition, rejecting duplicate names."""
    catalog: Dict[str, ViewDefinition] = {}
    for view in views or DEFAULT_VIEWS:
        if view.name in catalog:
            raise ValueError(f"Duplicate view name: {view.name}")
        catalog[view.name] = view
    return catalog
