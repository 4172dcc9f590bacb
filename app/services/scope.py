"""Role hierarchy, static permission table and geographic scope checks.

Everything in this module is pure: no database access and no exceptions for
any combination of inputs. Scopes are tagged variants so that the field which
matters for a role is carried by the type itself:

    Unconstrained      super_admin
    RegionScope(id)    regional_admin
    ProvinceScope(id)  province_admin
    DistrictScope(id)  district_official
    NoScope            voter, or an official whose scope was never assigned
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    REGIONAL_ADMIN = "regional_admin"
    PROVINCE_ADMIN = "province_admin"
    DISTRICT_OFFICIAL = "district_official"
    VOTER = "voter"


class Permission(str, Enum):
    ELECTION_CREATE = "election:create"
    ELECTION_READ = "election:read"
    ELECTION_UPDATE = "election:update"
    ELECTION_DELETE = "election:delete"
    ELECTION_MANAGE_STATUS = "election:manage_status"

    PARTY_CREATE = "party:create"
    PARTY_READ = "party:read"
    PARTY_UPDATE = "party:update"
    PARTY_DELETE = "party:delete"

    CANDIDATE_CREATE = "candidate:create"
    CANDIDATE_READ = "candidate:read"
    CANDIDATE_UPDATE = "candidate:update"
    CANDIDATE_DELETE = "candidate:delete"

    VOTE_CAST = "vote:cast"
    VOTE_BATCH_UPLOAD = "vote:batch_upload"
    VOTE_BATCH_APPROVE = "vote:batch_approve"
    VOTE_VIEW_RESULTS = "vote:view_results"

    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"


P = Permission

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.SUPER_ADMIN: frozenset({
        P.ELECTION_CREATE, P.ELECTION_READ, P.ELECTION_UPDATE, P.ELECTION_DELETE,
        P.ELECTION_MANAGE_STATUS,
        P.PARTY_CREATE, P.PARTY_READ, P.PARTY_UPDATE, P.PARTY_DELETE,
        P.CANDIDATE_CREATE, P.CANDIDATE_READ, P.CANDIDATE_UPDATE, P.CANDIDATE_DELETE,
        P.VOTE_BATCH_UPLOAD, P.VOTE_BATCH_APPROVE, P.VOTE_VIEW_RESULTS,
        P.USER_CREATE, P.USER_READ, P.USER_UPDATE, P.USER_DELETE,
    }),
    Role.REGIONAL_ADMIN: frozenset({
        P.ELECTION_READ,
        P.PARTY_READ,
        P.CANDIDATE_READ, P.CANDIDATE_CREATE, P.CANDIDATE_UPDATE,
        P.VOTE_BATCH_APPROVE, P.VOTE_VIEW_RESULTS,
        P.USER_READ,
    }),
    Role.PROVINCE_ADMIN: frozenset({
        P.ELECTION_READ,
        P.PARTY_READ,
        P.CANDIDATE_READ, P.CANDIDATE_CREATE, P.CANDIDATE_UPDATE,
        P.VOTE_BATCH_APPROVE, P.VOTE_VIEW_RESULTS,
        P.USER_READ,
    }),
    Role.DISTRICT_OFFICIAL: frozenset({
        P.ELECTION_READ,
        P.PARTY_READ,
        P.CANDIDATE_READ,
        P.VOTE_BATCH_UPLOAD, P.VOTE_VIEW_RESULTS,
    }),
    Role.VOTER: frozenset({
        P.ELECTION_READ,
        P.PARTY_READ,
        P.CANDIDATE_READ,
        P.VOTE_CAST,
        P.VOTE_VIEW_RESULTS,
    }),
}


@dataclass(frozen=True)
class Unconstrained:
    pass


@dataclass(frozen=True)
class RegionScope:
    region_id: str


@dataclass(frozen=True)
class ProvinceScope:
    province_id: str


@dataclass(frozen=True)
class DistrictScope:
    district_id: str


@dataclass(frozen=True)
class NoScope:
    pass


Scope = Union[Unconstrained, RegionScope, ProvinceScope, DistrictScope, NoScope]


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the service layer."""

    id: str
    role: Role
    scope: Scope
    name: str | None = None
    citizen_id: str | None = None
    eligible_district_id: str | None = None

    def can(self, permission: Permission | str) -> bool:
        return has_permission(self.role, permission)

    def can_access(self, location: dict[str, Any]) -> bool:
        """``can_access_district`` against a ``get_district_location`` result."""
        return can_access_district(
            self.role,
            self.scope,
            location.get("district_id"),
            location.get("province_id"),
            location.get("region_id"),
        )


def _coerce_role(role: Role | str | None) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def has_permission(role: Role | str | None, permission: Permission | str) -> bool:
    """Static lookup of ``permission`` in the role's permission set.

    Unknown roles or permissions simply yield False.
    """
    resolved = _coerce_role(role)
    if resolved is None:
        return False
    try:
        permission = Permission(permission)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS[resolved]


def build_scope(
    role: Role | str | None,
    region_id: Any = None,
    province_id: Any = None,
    district_id: Any = None,
) -> Scope:
    """Turn the flat scope columns stored on a user into the variant for its role.

    Only the field that is meaningful for the role is read; the others are
    ignored.
    """
    resolved = _coerce_role(role)
    if resolved is Role.SUPER_ADMIN:
        return Unconstrained()
    if resolved is Role.REGIONAL_ADMIN and region_id:
        return RegionScope(str(region_id))
    if resolved is Role.PROVINCE_ADMIN and province_id:
        return ProvinceScope(str(province_id))
    if resolved is Role.DISTRICT_OFFICIAL and district_id:
        return DistrictScope(str(district_id))
    return NoScope()


def scope_to_dict(scope: Scope) -> dict[str, str | None]:
    """Flatten a scope back into ``region_id``/``province_id``/``district_id`` keys."""
    return {
        "region_id": scope.region_id if isinstance(scope, RegionScope) else None,
        "province_id": scope.province_id if isinstance(scope, ProvinceScope) else None,
        "district_id": scope.district_id if isinstance(scope, DistrictScope) else None,
    }


def can_access_district(
    role: Role | str | None,
    scope: Scope | None,
    district_id: Any,
    province_id: Any,
    region_id: Any,
) -> bool:
    """Whether a user with ``role``/``scope`` has authority over a district.

    * super_admin: always.
    * voter: never.
    * regional_admin: scope region equals the district's region.
    * province_admin: scope province equals the district's province.
    * district_official: scope district equals the district.
    * a scoped role without the matching scope variant: never.
    """
    resolved = _coerce_role(role)
    if resolved is Role.SUPER_ADMIN:
        return True
    if resolved is None or resolved is Role.VOTER:
        return False

    if resolved is Role.REGIONAL_ADMIN and isinstance(scope, RegionScope):
        return region_id is not None and scope.region_id == str(region_id)
    if resolved is Role.PROVINCE_ADMIN and isinstance(scope, ProvinceScope):
        return province_id is not None and scope.province_id == str(province_id)
    if resolved is Role.DISTRICT_OFFICIAL and isinstance(scope, DistrictScope):
        return district_id is not None and scope.district_id == str(district_id)
    return False


OFFICIAL_ROLES = frozenset({
    Role.SUPER_ADMIN, Role.REGIONAL_ADMIN, Role.PROVINCE_ADMIN, Role.DISTRICT_OFFICIAL,
})


def required_scope_field(role: Role | str) -> str | None:
    """Name of the flat scope column a role must have assigned, if any."""
    return {
        Role.REGIONAL_ADMIN: "region_id",
        Role.PROVINCE_ADMIN: "province_id",
        Role.DISTRICT_OFFICIAL: "district_id",
    }.get(_coerce_role(role))
