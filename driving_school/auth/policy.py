import enum

from driving_school.models.user import Role


class Capability(str, enum.Enum):
    READ_OWN = "read_own"
    READ_ALL = "read_all"
    WRITE_BOOKING = "write_booking"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset({Capability.READ_ALL, Capability.WRITE_BOOKING}),
    Role.INSTRUCTOR: frozenset({Capability.READ_OWN, Capability.WRITE_BOOKING}),
    Role.STUDENT: frozenset({Capability.READ_OWN}),
}


def capabilities_for(role: Role | str) -> frozenset[Capability]:
    return ROLE_CAPABILITIES[Role(role)]


def roles_with(capability: Capability) -> frozenset[Role]:
    return frozenset(role for role, capabilities in ROLE_CAPABILITIES.items() if capability in capabilities)
