"""Tier definitions and the denormalized hierarchy snapshot.

The supply chain has a fixed four-tier shape:

    manufacturer -> district_distributor -> area_distributor -> vendor

Every distribution record carries a snapshot of the actor ids along that
chain so that reads can filter by any tier without walking superior links.
"""

import uuid
from dataclasses import dataclass, replace
from enum import Enum


class Role(str, Enum):
    """Actor roles. All but ``ADMIN`` are tiers of the supply hierarchy."""

    MANUFACTURER = "manufacturer"
    DISTRICT_DISTRIBUTOR = "district_distributor"
    AREA_DISTRIBUTOR = "area_distributor"
    VENDOR = "vendor"
    ADMIN = "admin"


class DistributionStatus(str, Enum):
    """Lifecycle status of a distribution record."""

    PENDING = "pending"
    DISTRIBUTED = "distributed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Top to bottom
TIERS: tuple[Role, ...] = (
    Role.MANUFACTURER,
    Role.DISTRICT_DISTRIBUTOR,
    Role.AREA_DISTRIBUTOR,
    Role.VENDOR,
)

# Sender role -> the only role it may ship to
RECEIVER_ROLE_FOR_SENDER: dict[Role, Role] = {
    Role.MANUFACTURER: Role.DISTRICT_DISTRIBUTOR,
    Role.DISTRICT_DISTRIBUTOR: Role.AREA_DISTRIBUTOR,
    Role.AREA_DISTRIBUTOR: Role.VENDOR,
}

HIERARCHY_KEYS: dict[Role, str] = {
    Role.MANUFACTURER: "manufacturer_id",
    Role.DISTRICT_DISTRIBUTOR: "district_distributor_id",
    Role.AREA_DISTRIBUTOR: "area_distributor_id",
    Role.VENDOR: "vendor_id",
}

# Statuses a vendor may still report unsold copies against
OPEN_STATUSES: frozenset[DistributionStatus] = frozenset(
    {DistributionStatus.PENDING, DistributionStatus.DISTRIBUTED}
)


def parse_role(value: str | Role) -> Role:
    """Coerce a string to a Role.

    Raises:
        ValueError: If the value is not a known role
    """
    if isinstance(value, Role):
        return value
    return Role(value)


def is_tier(role: str | Role) -> bool:
    """Return True if the role takes part in the supply hierarchy."""
    return parse_role(role) in TIERS


def tier_depth(role: str | Role) -> int:
    """Return the zero-based depth of a tier (manufacturer is 0).

    Raises:
        ValueError: If the role is not a tier (e.g. admin)
    """
    role = parse_role(role)
    if role not in TIERS:
        raise ValueError(f"Role {role.value!r} is not a hierarchy tier")
    return TIERS.index(role)


def superior_role(role: str | Role) -> Role | None:
    """Return the tier directly above ``role``, or None at the top."""
    depth = tier_depth(role)
    return TIERS[depth - 1] if depth > 0 else None


def subordinate_role(role: str | Role) -> Role | None:
    """Return the tier directly below ``role``, or None for vendors."""
    depth = tier_depth(role)
    return TIERS[depth + 1] if depth + 1 < len(TIERS) else None


def hierarchy_key(role: str | Role) -> str:
    """Return the snapshot field that identifies ``role``'s subtree.

    Raises:
        ValueError: If the role is not a tier
    """
    role = parse_role(role)
    try:
        return HIERARCHY_KEYS[role]
    except KeyError:
        raise ValueError(f"Role {role.value!r} has no hierarchy key") from None


@dataclass(frozen=True)
class HierarchySnapshot:
    """Actor ids along one branch of the hierarchy, captured at creation.

    Attributes:
        manufacturer_id: Manufacturer at the root of the branch
        district_distributor_id: District distributor on the branch, if any
        area_distributor_id: Area distributor on the branch, if any
        vendor_id: Vendor at the leaf, if any
    """

    manufacturer_id: uuid.UUID | None = None
    district_distributor_id: uuid.UUID | None = None
    area_distributor_id: uuid.UUID | None = None
    vendor_id: uuid.UUID | None = None

    def get(self, role: str | Role) -> uuid.UUID | None:
        """Return the actor id stored for a tier."""
        return getattr(self, hierarchy_key(role))

    def with_tier(self, role: str | Role, actor_id: uuid.UUID) -> "HierarchySnapshot":
        """Return a copy with ``role``'s tier set to ``actor_id``."""
        return replace(self, **{hierarchy_key(role): actor_id})

    def tiers(self) -> tuple[Role, ...]:
        """Return the tiers present on the snapshot, top to bottom."""
        return tuple(role for role in TIERS if self.get(role) is not None)

    def edges(self) -> list[tuple[Role, Role]]:
        """Return adjacent (upper, lower) tier pairs present, innermost first."""
        present = self.tiers()
        pairs = [
            (upper, lower)
            for upper, lower in zip(present, present[1:])
            if subordinate_role(upper) == lower
        ]
        return list(reversed(pairs))

    def as_dict(self) -> dict[str, uuid.UUID]:
        """Return only the populated fields, keyed by hierarchy key."""
        return {
            HIERARCHY_KEYS[role]: actor_id
            for role in TIERS
            if (actor_id := self.get(role)) is not None
        }
