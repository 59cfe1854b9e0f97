"""
Mapping between persisted registration details and team submissions/records.

Persisted details carry the legacy flat fields (fullName1..5, rollNumber1..5,
dept1..5, whatsAppNumber) with the canonical submission embedded under
`payload`. Rows written before the canonical schema only have the flat fields
and are reconstructed with `fallback_from_legacy`.
"""
import re

from config import config
from schemas import (
    APPROVAL_STATUSES,
    CONTACT_MAX,
    CONTACT_MIN,
    RA_NUMBER_PATTERN,
    SrmTeamSubmission,
    parse_team_submission,
    to_srm_local_net_id,
)

LEGACY_SLOT_COUNT = 5
MIN_LEGACY_NAMED_SLOTS = 3

PROBLEM_STATEMENT_DETAIL_KEYS = (
    "problemStatementId",
    "problemStatementTitle",
    "problemStatementCap",
    "problemStatementLockedAt",
)

PRESENTATION_DETAIL_KEYS = (
    "presentationPublicUrl",
    "presentationStoragePath",
    "presentationUploadedAt",
    "presentationFileName",
    "presentationMimeType",
    "presentationFileSizeBytes",
)

INTEGER_DETAIL_KEYS = ("problemStatementCap", "presentationFileSizeBytes")

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_team_id(team_id):
    return isinstance(team_id, str) and bool(UUID_PATTERN.match(team_id))


# ---------------------------------------------------------------------------
# SRM NetID forms
# ---------------------------------------------------------------------------

def to_srm_email_net_id(net_id):
    normalized = net_id.strip().lower()
    domain = config.event.srm_email_domain
    if normalized.endswith(domain):
        return normalized
    return f"{normalized}{domain}"


def _map_net_ids(details, convert):
    if not isinstance(details, dict) or details.get("teamType") != "srm":
        return details

    def convert_person(person):
        if not isinstance(person, dict) or not isinstance(person.get("netId"), str):
            return person
        return {**person, "netId": convert(person["netId"])}

    members = details.get("members")
    return {
        **details,
        "lead": convert_person(details.get("lead")),
        "members": [convert_person(m) for m in members] if isinstance(members, list) else members,
    }


def normalize_srm_details_for_schema(details):
    return _map_net_ids(details, to_srm_local_net_id)


def with_srm_email_net_ids(submission):
    """Plain dict of a submission with SRM NetIDs in their stored (email) form."""
    return _map_net_ids(submission.model_dump(), to_srm_email_net_id)


# ---------------------------------------------------------------------------
# Canonical / legacy conversion
# ---------------------------------------------------------------------------

def _parse_quietly(data):
    submission, _ = parse_team_submission(data)
    return submission


def to_canonical(details):
    """Canonical submission from a `payload` blob or top-level details, else None."""
    if not isinstance(details, dict):
        return None

    for candidate in (details.get("payload"), details):
        if isinstance(candidate, dict):
            submission = _parse_quietly(normalize_srm_details_for_schema(candidate))
            if submission is not None:
                return submission
    return None


def _roll_number(person, submission):
    if isinstance(submission, SrmTeamSubmission):
        return person.raNumber
    return person.collegeId


def to_legacy_flat(submission):
    people = [submission.lead] + list(submission.members)
    is_srm = isinstance(submission, SrmTeamSubmission)

    details = {"teamName": submission.teamName}
    for index in range(1, LEGACY_SLOT_COUNT + 1):
        person = people[index - 1] if index <= len(people) else None
        details[f"fullName{index}"] = person.name if person else ""
        details[f"rollNumber{index}"] = _roll_number(person, submission) if person else ""
        details[f"dept{index}"] = person.dept if person and is_srm else ""

    details["whatsAppNumber"] = str(submission.lead.contact)
    details["paymentAgreement"] = True
    details["payload"] = with_srm_email_net_ids(submission)
    return details


def _slot_text(details, key):
    value = details.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(int(value))
    return value.strip() if isinstance(value, str) else ""


def _valid_contact(value):
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and not isinstance(value, bool) and CONTACT_MIN <= value <= CONTACT_MAX:
        return value
    return None


def _placeholder_contact(slot):
    return 9000000000 + slot


def fallback_from_legacy(details):
    """
    Rebuild a submission from legacy flat fields.

    Needs at least three named slots. Identifiers the legacy row never stored
    are replaced by placeholders derived from the slot number so that the
    result always passes schema validation.
    """
    if not isinstance(details, dict):
        return None

    slots = [
        index for index in range(1, LEGACY_SLOT_COUNT + 1)
        if _slot_text(details, f"fullName{index}")
    ]
    if len(slots) < MIN_LEGACY_NAMED_SLOTS:
        return None

    is_srm = any(_slot_text(details, f"dept{index}") for index in range(1, LEGACY_SLOT_COUNT + 1))
    lead_contact = _valid_contact(details.get("whatsAppNumber"))

    people = []
    seen_ids = set()
    for position, slot in enumerate(slots):
        name = _slot_text(details, f"fullName{slot}")
        roll = _slot_text(details, f"rollNumber{slot}")
        contact = lead_contact if position == 0 and lead_contact else _placeholder_contact(slot)

        if is_srm:
            people.append({
                "name": name,
                "raNumber": roll.upper() if RA_NUMBER_PATTERN.match(roll.upper()) else f"RA{slot:013d}",
                "netId": f"legacy{slot}",
                "dept": _slot_text(details, f"dept{slot}") or "N/A",
                "contact": contact,
            })
        else:
            college_id = roll if roll and roll.lower() not in seen_ids else f"LEGACY-{slot}"
            seen_ids.add(college_id.lower())
            people.append({
                "name": name,
                "collegeId": college_id,
                "collegeEmail": f"legacy{slot}@placeholder.local",
                "contact": contact,
            })

    data = {
        "teamType": "srm" if is_srm else "non_srm",
        "teamName": _slot_text(details, "teamName") or "Legacy Team",
        "lead": people[0],
        "members": people[1:],
    }
    if not is_srm:
        data["collegeName"] = _slot_text(details, "collegeName") or "Unknown College"
        data["isClub"] = False
        data["clubName"] = ""

    return _parse_quietly(data)


def resolve_submission(details):
    return to_canonical(details) or fallback_from_legacy(details)


# ---------------------------------------------------------------------------
# Output shapes
# ---------------------------------------------------------------------------

def to_optional_string(value):
    if isinstance(value, str) and value.strip():
        return value
    return None


def to_optional_positive_integer(value):
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def to_optional_approval_status(value):
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized if normalized in APPROVAL_STATUSES else None


def carry_forward_details(existing_details):
    """Lock and presentation metadata worth preserving across roster edits."""
    carried = {}
    for key in PROBLEM_STATEMENT_DETAIL_KEYS + PRESENTATION_DETAIL_KEYS:
        value = existing_details.get(key)
        if key in INTEGER_DETAIL_KEYS:
            value = to_optional_positive_integer(value)
        else:
            value = to_optional_string(value)
        if value is not None:
            carried[key] = value
    return carried


def to_team_summary(row):
    created_at = row.get("created_at")
    updated_at = row.get("updated_at") or created_at
    submission = resolve_submission(row.get("details") or {})

    if submission is None:
        return {
            "id": row.get("id"),
            "teamName": "Unnamed Team",
            "teamType": "srm",
            "leadName": "Unknown Lead",
            "memberCount": 1,
            "createdAt": created_at,
            "updatedAt": updated_at,
        }

    return {
        "id": row.get("id"),
        "teamName": submission.teamName,
        "teamType": submission.teamType,
        "leadName": submission.lead.name,
        "memberCount": len(submission.members) + 1,
        "createdAt": created_at,
        "updatedAt": updated_at,
    }


def to_team_record(row):
    details = row.get("details") or {}
    submission = resolve_submission(details)
    if submission is None:
        return None

    record = submission.model_dump()
    approval_status = to_optional_approval_status(row.get("is_approved"))
    if approval_status:
        record["approvalStatus"] = approval_status

    record["id"] = row.get("id")
    record["createdAt"] = row.get("created_at")
    record["updatedAt"] = row.get("updated_at") or row.get("created_at")
    record.update(carry_forward_details(details))
    return record
