from dataclasses import dataclass
from enum import Enum


class PrincipalType(str, Enum):
    HUMAN = "human"
    MACHINE = "machine"


class Role(str, Enum):
    JOBSEEKER = "jobseeker"
    INDIVIDUAL_EMPLOYER = "individual-employer"
    BUSINESS_EMPLOYER = "business-employer"
    MANPOWER_PROVIDER = "manpower-provider"
    ADMINISTRATOR = "administrator"


EMPLOYER_ROLES = frozenset({Role.INDIVIDUAL_EMPLOYER.value, Role.BUSINESS_EMPLOYER.value})
HIRING_ROLES = EMPLOYER_ROLES | {Role.MANPOWER_PROVIDER.value}
APPLICANT_ROLES = EMPLOYER_ROLES | {Role.JOBSEEKER.value, Role.MANPOWER_PROVIDER.value}
AGENCY_CONTACT_ROLES = EMPLOYER_ROLES | {Role.JOBSEEKER.value}


@dataclass(slots=True)
class Principal:
    principal_type: PrincipalType
    subject: str
    scopes: set[str]
    role: str | None = None
    actor_id: str | None = None
    participant_id: int | None = None

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")

    def require_role(self, allowed: frozenset[str] | set[str]) -> None:
        if self.role not in allowed:
            raise PermissionError(f"role {self.role!r} is not allowed for this action")

    def require_participant(self) -> int:
        if self.participant_id is None:
            raise PermissionError("principal is not linked to a participant")
        return self.participant_id
