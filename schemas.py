"""
Team submission schemas.

A submission is either an SRM team (members identified by RA number and
NetID) or a non-SRM team (members identified by college id and email). The
`teamType` field selects the variant.
"""
import re
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator
from pydantic_core import PydanticCustomError

from config import config

CONTACT_MIN = 1000000000
CONTACT_MAX = 9999999999
MIN_MEMBERS = 2
MAX_MEMBERS = 4

RA_NUMBER_PATTERN = re.compile(r"^RA\d{13}$")
NET_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _required(value, message):
    if not isinstance(value, str) or not value.strip():
        raise PydanticCustomError("required", message)
    return value.strip()


def _contact(value):
    if isinstance(value, bool) or not isinstance(value, int) or not CONTACT_MIN <= value <= CONTACT_MAX:
        raise PydanticCustomError("contact", "Contact must be a valid 10-digit number.")
    return value


def to_srm_local_net_id(net_id):
    normalized = net_id.strip().lower()
    domain = config.event.srm_email_domain
    if normalized.endswith(domain):
        return normalized[:-len(domain)]
    return normalized


class SrmMember(BaseModel):
    name: str
    raNumber: str
    netId: str
    dept: str
    contact: int

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, value):
        return _required(value, "Name is required.")

    @field_validator("raNumber", mode="before")
    @classmethod
    def check_ra_number(cls, value):
        value = _required(value, "RA Number is required.").upper()
        if not RA_NUMBER_PATTERN.match(value):
            raise PydanticCustomError("ra_number", "RA Number must be RA followed by 13 digits.")
        return value

    @field_validator("netId", mode="before")
    @classmethod
    def check_net_id(cls, value):
        value = to_srm_local_net_id(_required(value, "NetID is required."))
        if not NET_ID_PATTERN.match(value):
            raise PydanticCustomError("net_id", "NetID is invalid.")
        return value

    @field_validator("dept", mode="before")
    @classmethod
    def check_dept(cls, value):
        return _required(value, "Department is required.")

    @field_validator("contact")
    @classmethod
    def check_contact(cls, value):
        return _contact(value)


class NonSrmMember(BaseModel):
    name: str
    collegeId: str
    collegeEmail: str
    contact: int

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, value):
        return _required(value, "Name is required.")

    @field_validator("collegeId", mode="before")
    @classmethod
    def check_college_id(cls, value):
        return _required(value, "College ID is required.")

    @field_validator("collegeEmail", mode="before")
    @classmethod
    def check_college_email(cls, value):
        value = _required(value, "College Email is required.").lower()
        if not EMAIL_PATTERN.match(value):
            raise PydanticCustomError("college_email", "College Email is invalid.")
        return value

    @field_validator("contact")
    @classmethod
    def check_contact(cls, value):
        return _contact(value)


def _check_member_count(members):
    if not MIN_MEMBERS <= len(members) <= MAX_MEMBERS:
        raise PydanticCustomError(
            "member_count",
            "Teams must have between {min} and {max} members besides the lead.",
            {"min": MIN_MEMBERS, "max": MAX_MEMBERS},
        )


class SrmTeamSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore")

    teamType: Literal["srm"]
    teamName: str
    lead: SrmMember
    members: List[SrmMember]

    @field_validator("teamName", mode="before")
    @classmethod
    def check_team_name(cls, value):
        return _required(value, "Team Name is required.")

    @model_validator(mode="after")
    def check_roster(self):
        _check_member_count(self.members)
        net_ids = [self.lead.netId] + [member.netId for member in self.members]
        if len(set(net_ids)) != len(net_ids):
            raise PydanticCustomError("duplicate_net_id", "Each team member must have a unique NetID.")
        return self


class NonSrmTeamSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore")

    teamType: Literal["non_srm"]
    teamName: str
    collegeName: str
    isClub: bool = False
    clubName: Optional[str] = ""
    lead: NonSrmMember
    members: List[NonSrmMember]

    @field_validator("teamName", mode="before")
    @classmethod
    def check_team_name(cls, value):
        return _required(value, "Team Name is required.")

    @field_validator("collegeName", mode="before")
    @classmethod
    def check_college_name(cls, value):
        return _required(value, "College Name is required.")

    @field_validator("clubName", mode="before")
    @classmethod
    def strip_club_name(cls, value):
        return value.strip() if isinstance(value, str) else ""

    @model_validator(mode="after")
    def check_roster(self):
        if self.isClub and not self.clubName:
            raise PydanticCustomError("club_name", "Club Name is required when registering as a club.")
        _check_member_count(self.members)
        college_ids = [self.lead.collegeId.lower()] + [member.collegeId.lower() for member in self.members]
        if len(set(college_ids)) != len(college_ids):
            raise PydanticCustomError("duplicate_college_id", "Each team member must have a unique College ID.")
        return self


TeamSubmission = Annotated[Union[SrmTeamSubmission, NonSrmTeamSubmission], Field(discriminator="teamType")]

team_submission_adapter = TypeAdapter(TeamSubmission)

APPROVAL_STATUSES = ("accepted", "invalid", "rejected", "submitted")


def parse_team_submission(data):
    """
    Validate a raw submission.

    Returns (submission, None) on success or (None, message) with the first
    validation problem.
    """
    try:
        return team_submission_adapter.validate_python(data), None
    except ValidationError as e:
        errors = e.errors()
        if not errors:
            return None, "Invalid payload."
        first = errors[0]
        if first.get("type") == "union_tag_invalid" or first.get("type") == "union_tag_not_found":
            return None, "Team type must be srm or non_srm."
        if first.get("type") == "missing":
            field_path = ".".join(
                str(part) for part in first.get("loc", ())
                if not isinstance(part, int) and part not in ("srm", "non_srm")
            )
            return None, f"{field_path or 'Field'} is required."
        return None, first.get("msg") or "Invalid payload."
