"""
Registration workflow.

A team moves Unregistered -> Registered -> Locked(statement) ->
PresentationSubmitted and never back. Every operation returns a
ServiceResult; business rule failures are results, not exceptions. Row store
and object store failures arrive as RepositoryError / StorageError and become
500 results.

Capacity and "already registered" checks are separate round trips from the
write that follows them, so concurrent requests racing for the last slot can
overshoot the cap slightly. That is accepted.
"""
import posixpath
import traceback
from datetime import datetime, timezone
from typing import Any, Optional
from dataclasses import dataclass

import repository
from availability import (
    build_statement_availability,
    count_problem_statement_registrations,
    get_problem_statement_id_from_details,
)
from errors import RepositoryError, StorageError
from lock_token import create_problem_lock_token, lock_time_from_iat, verify_problem_lock_token
from mappers import (
    PRESENTATION_DETAIL_KEYS,
    carry_forward_details,
    is_valid_team_id,
    to_legacy_flat,
    to_team_record,
    to_team_summary,
)
from presentation import (
    PRESENTATION_BUCKET_NAME,
    PRESENTATION_DEFAULT_MIME_TYPE,
    build_presentation_storage_path,
    get_presentation_extension,
    validate_presentation_file,
)
from problem_statements import PROBLEM_STATEMENT_CAP, get_problem_statement_by_id
from storage import presentation_object_exists

TEAM_ID_INVALID = "Team id is invalid."
TEAM_NOT_FOUND = "Team not found."
TEAM_UNMAPPABLE = "Team data is incomplete or outdated."
STATEMENT_NOT_FOUND = "Problem statement not found."
STATEMENT_UNAVAILABLE = "This problem statement is currently unavailable."
PRESENTATION_ALREADY_SUBMITTED = "Presentation already submitted for this team."
STORAGE_POLICY_BLOCKED = (
    "Presentation upload is blocked by the storage policy. Please ask an admin to allow "
    f"authenticated uploads to the {PRESENTATION_BUCKET_NAME} bucket."
)


@dataclass
class ServiceResult:
    ok: bool
    status: int
    data: Any = None
    error: Optional[str] = None


def ok(data, status=200):
    return ServiceResult(ok=True, status=status, data=data)


def fail(error, status):
    return ServiceResult(ok=False, status=status, error=error)


@dataclass
class PresentationUpload:
    """An uploaded deck as received from the multipart form."""
    name: str
    size: int
    content_type: Optional[str]
    data: bytes


def _now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _details_of(row):
    details = row.get("details")
    return details if isinstance(details, dict) else {}


def _verify_lock(user_id, problem_statement_id, lock_token):
    """
    Verify a lock token for a catalog statement.

    Returns (lock_details, None) with the fields to persist, or (None,
    ServiceResult) describing the failure. The lock time is the token's
    issue time, not the time of this call.
    """
    problem_statement = get_problem_statement_by_id(problem_statement_id)
    if not problem_statement:
        return None, fail(STATEMENT_NOT_FOUND, 400)

    verification = verify_problem_lock_token(lock_token, user_id, problem_statement.id)
    if not verification.valid:
        return None, fail(verification.error, 400)

    return {
        "problemStatementId": problem_statement.id,
        "problemStatementTitle": problem_statement.title,
        "problemStatementCap": PROBLEM_STATEMENT_CAP,
        "problemStatementLockedAt": lock_time_from_iat(verification.payload["iat"]),
    }, None


def _check_capacity(problem_statement_id, full_message=STATEMENT_UNAVAILABLE):
    """None while the statement has room, else the failure result."""
    try:
        statement_rows = repository.list_problem_statement_rows()
    except RepositoryError as e:
        print(f"PROBLEM STATEMENTS: availability check failed for {problem_statement_id}: {e}")
        return fail("Failed to check statement availability.", 500)

    if count_problem_statement_registrations(statement_rows, problem_statement_id) >= PROBLEM_STATEMENT_CAP:
        return fail(full_message, 409)
    return None


# ============================================
# Problem statements
# ============================================

def get_problem_statement_availability():
    try:
        rows = repository.list_problem_statement_rows()
    except RepositoryError as e:
        print(f"PROBLEM STATEMENTS: availability read failed: {e}")
        return fail("Failed to fetch problem statement availability.", 500)

    return ok({"statements": build_statement_availability(rows)})


def lock_problem_statement(user_id, problem_statement_id):
    """Issue a lock token for a statement that still has room."""
    problem_statement = get_problem_statement_by_id(problem_statement_id)
    if not problem_statement:
        return fail(STATEMENT_NOT_FOUND, 400)

    failure = _check_capacity(problem_statement.id, "This problem statement has reached its team cap.")
    if failure:
        return failure

    try:
        lock = create_problem_lock_token(user_id, problem_statement.id)
    except Exception as e:
        traceback.print_exc()
        return fail(str(e) or "Failed to create lock token.", 500)

    print(f"PROBLEM STATEMENTS: issued lock token for {problem_statement.id} to {user_id}")
    return ok({
        "locked": True,
        "lockExpiresAt": lock["expiresAt"],
        "lockToken": lock["token"],
        "problemStatement": {
            "id": problem_statement.id,
            "summary": problem_statement.summary,
            "title": problem_statement.title,
        },
    })


# ============================================
# Teams
# ============================================

def list_teams(user_id):
    try:
        rows = repository.list_registrations_for_user(user_id)
    except RepositoryError as e:
        print(f"REGISTRATION: list failed for {user_id}: {e}")
        return fail("Failed to fetch registrations.", 500)

    return ok({"teams": [to_team_summary(row) for row in rows]})


def create_team(user_id, user_email, team, problem_statement_id, lock_token):
    lock_details, failure = _verify_lock(user_id, problem_statement_id, lock_token)
    if failure:
        return failure

    try:
        existing = repository.find_any_registration_for_user(user_id)
    except RepositoryError as e:
        print(f"REGISTRATION: existing registration check failed: {e}")
        return fail("Failed to validate existing registrations.", 500)

    if existing:
        return fail("You have already registered for this event.", 409)

    failure = _check_capacity(lock_details["problemStatementId"])
    if failure:
        return failure

    details = {**to_legacy_flat(team), **lock_details}

    try:
        row = repository.insert_registration(user_id, user_email, details)
    except RepositoryError as e:
        print(f"REGISTRATION: insert failed for {user_id}: {e}")
        return fail(str(e) or "Failed to create registration.", 500)

    if not row or not is_valid_team_id(row.get("id")):
        return fail("Failed to create registration.", 500)

    print(f"REGISTRATION: team {row['id']} registered by {user_id} for {lock_details['problemStatementId']}")
    return ok({"team": {"id": row["id"]}, "teams": [to_team_summary(row)]}, 201)


def reconcile_presentation_details(row, team_id, user_id, storage):
    """
    Drop presentation metadata whose object is gone from storage.

    Storage is the source of truth, but only a confirmed absence clears the
    metadata. Returns the row to continue with.
    """
    details = _details_of(row)
    public_url = details.get("presentationPublicUrl")
    storage_path = details.get("presentationStoragePath")
    if not (isinstance(public_url, str) and public_url.strip()) and not (
        isinstance(storage_path, str) and storage_path.strip()
    ):
        return row

    if presentation_object_exists(storage, storage_path or None, public_url or None):
        return row

    print(f"PRESENTATION: object for team {team_id} is missing from storage, clearing metadata")
    cleared = {k: v for k, v in details.items() if k not in PRESENTATION_DETAIL_KEYS}
    try:
        updated = repository.update_registration_details_by_team_id_for_user(team_id, user_id, cleared)
    except RepositoryError as e:
        print(f"PRESENTATION: could not persist cleared metadata for team {team_id}: {e}")
        updated = None

    return updated or {**row, "details": cleared}


def _load_team(team_id, user_id, storage):
    """Fetch an owned row and reconcile it; (row, None) or (None, failure)."""
    try:
        row = repository.find_registration_by_team_id_for_user(team_id, user_id)
    except RepositoryError as e:
        print(f"REGISTRATION: fetch failed for team {team_id}: {e}")
        return None, fail(str(e) or "Failed to fetch team.", 500)

    if not row:
        return None, fail(TEAM_NOT_FOUND, 404)

    return reconcile_presentation_details(row, team_id, user_id, storage), None


def get_team(team_id, user_id, storage):
    if not is_valid_team_id(team_id):
        return fail(TEAM_ID_INVALID, 400)

    row, failure = _load_team(team_id, user_id, storage)
    if failure:
        return failure

    team = to_team_record(row)
    if not team:
        return fail(TEAM_UNMAPPABLE, 422)

    return ok({"team": team})


def patch_team(team_id, user_id, team, storage, lock=None):
    """
    Replace a team's roster, optionally locking a statement for the first time.

    `lock` is a dict with problemStatementId and lockToken. Lock and
    presentation metadata already on the row are always carried forward.
    """
    if not is_valid_team_id(team_id):
        return fail(TEAM_ID_INVALID, 400)

    row, failure = _load_team(team_id, user_id, storage)
    if failure:
        return failure

    existing_details = _details_of(row)
    updated_details = {**to_legacy_flat(team), **carry_forward_details(existing_details)}

    if lock:
        if get_problem_statement_id_from_details(existing_details):
            return fail("A problem statement is already locked for this team.", 409)

        lock_details, failure = _verify_lock(user_id, lock.get("problemStatementId"), lock.get("lockToken"))
        if failure:
            return failure

        failure = _check_capacity(lock_details["problemStatementId"])
        if failure:
            return failure
        updated_details.update(lock_details)

    try:
        updated = repository.update_registration_details_by_team_id_for_user(team_id, user_id, updated_details)
    except RepositoryError as e:
        print(f"REGISTRATION: update failed for team {team_id}: {e}")
        return fail(str(e) or "Failed to update team.", 500)

    if not updated:
        return fail(TEAM_NOT_FOUND, 404)

    record = to_team_record(updated)
    if not record:
        return fail(TEAM_UNMAPPABLE, 422)

    if lock:
        print(f"REGISTRATION: team {team_id} locked {updated_details['problemStatementId']}")
    return ok({"team": record})


def delete_team(team_id, user_id):
    if not is_valid_team_id(team_id):
        return fail(TEAM_ID_INVALID, 400)

    try:
        deleted = repository.delete_registration_by_team_id_for_user(team_id, user_id)
    except RepositoryError as e:
        print(f"REGISTRATION: delete failed for team {team_id}: {e}")
        return fail("Failed to remove team.", 500)

    if not deleted:
        return fail(TEAM_NOT_FOUND, 404)

    print(f"REGISTRATION: team {team_id} removed by {user_id}")
    return ok({"deleted": True})


def delete_team_by_query_id(team_id, user_id):
    """Legacy ?id= delete; answers with the user's remaining teams."""
    normalized_id = team_id.strip() if isinstance(team_id, str) else ""
    if not normalized_id:
        return fail("Team id is required.", 400)

    if not is_valid_team_id(normalized_id):
        return fail(TEAM_ID_INVALID, 400)

    try:
        deleted = repository.delete_registration_by_query_id_for_user(normalized_id, user_id)
    except RepositoryError as e:
        print(f"REGISTRATION: delete failed for team {normalized_id}: {e}")
        return fail("Failed to remove team.", 500)

    if not deleted:
        return fail(TEAM_NOT_FOUND, 404)

    return list_teams(user_id)


# ============================================
# Presentation submission
# ============================================

def _remove_orphaned_upload(storage, storage_path):
    try:
        storage.remove([storage_path])
        print(f"PRESENTATION: removed orphaned upload {storage_path}")
    except StorageError as e:
        print(f"PRESENTATION: failed to remove orphaned upload {storage_path}: {e}")


def _backfill_existing_upload(row, team_id, user_id, upload, storage_path, storage):
    """
    Record metadata for an object that was already in storage.

    The stored object wins over the rejected upload; the upload's values are
    only used when the object can't be inspected.
    """
    details = _details_of(row)
    try:
        stored = storage.stat(storage_path)
        file_name = stored.get("file_name") or posixpath.basename(storage_path)
        size = stored.get("size")
        mime_type = stored.get("content_type")
    except StorageError as e:
        print(f"PRESENTATION: could not inspect {storage_path} ({e.message}), using upload details")
        file_name, size, mime_type = upload.name.strip(), upload.size, upload.content_type

    backfill = {
        "presentationFileName": file_name,
        "presentationFileSizeBytes": size,
        "presentationMimeType": mime_type or PRESENTATION_DEFAULT_MIME_TYPE,
        "presentationPublicUrl": storage.get_public_url(storage_path),
        "presentationStoragePath": storage_path,
        "presentationUploadedAt": _now_iso(),
    }
    present = carry_forward_details(details)
    missing = {k: v for k, v in backfill.items() if k not in present and v is not None}
    if not missing:
        return

    try:
        repository.update_registration_details_by_team_id_for_user(team_id, user_id, {**details, **missing})
        print(f"PRESENTATION: backfilled {sorted(missing)} for team {team_id}")
    except RepositoryError as e:
        print(f"PRESENTATION: backfill failed for team {team_id}: {e}")


def submit_team_presentation(team_id, user_id, upload, storage):
    """
    One-time deck upload for a team that has locked a statement.

    Upload first, then record the metadata. If recording fails the uploaded
    object is removed again on a best-effort basis.
    """
    if not is_valid_team_id(team_id):
        return fail(TEAM_ID_INVALID, 400)

    file_error = validate_presentation_file(upload.name, upload.size, upload.content_type)
    if file_error:
        return fail(file_error, 400)

    row, failure = _load_team(team_id, user_id, storage)
    if failure:
        return failure

    existing_details = _details_of(row)
    if not get_problem_statement_id_from_details(existing_details):
        return fail("Lock a problem statement before submitting your PPT.", 409)

    public_url = existing_details.get("presentationPublicUrl")
    if isinstance(public_url, str) and public_url.strip():
        return fail(PRESENTATION_ALREADY_SUBMITTED, 409)

    file_name = upload.name.strip()
    storage_path = build_presentation_storage_path(user_id, team_id, get_presentation_extension(file_name))

    try:
        storage.upload(storage_path, upload.data, upload.content_type or None, file_name=file_name)
    except StorageError as e:
        if e.is_duplicate:
            print(f"PRESENTATION: {storage_path} already exists, keeping the stored object")
            _backfill_existing_upload(row, team_id, user_id, upload, storage_path, storage)
            return fail(PRESENTATION_ALREADY_SUBMITTED, 409)
        if e.is_policy_violation:
            print(f"PRESENTATION: upload blocked by storage policy: {e.message}")
            return fail(STORAGE_POLICY_BLOCKED, 500)
        print(f"PRESENTATION: upload failed for team {team_id}: {e.message}")
        return fail(e.message or "Failed to upload presentation.", 500)

    updated_details = {
        **existing_details,
        "presentationFileName": file_name,
        "presentationFileSizeBytes": upload.size,
        "presentationMimeType": upload.content_type or PRESENTATION_DEFAULT_MIME_TYPE,
        "presentationPublicUrl": storage.get_public_url(storage_path),
        "presentationStoragePath": storage_path,
        "presentationUploadedAt": _now_iso(),
    }

    try:
        updated = repository.update_registration_details_by_team_id_for_user(team_id, user_id, updated_details)
    except RepositoryError as e:
        print(f"PRESENTATION: metadata write failed for team {team_id}: {e}")
        _remove_orphaned_upload(storage, storage_path)
        return fail(str(e) or "Failed to save presentation details.", 500)

    if not updated:
        _remove_orphaned_upload(storage, storage_path)
        return fail("Failed to save presentation details.", 500)

    record = to_team_record(updated)
    if not record:
        return fail(TEAM_UNMAPPABLE, 422)

    print(f"PRESENTATION: team {team_id} submitted {file_name} ({upload.size} bytes)")
    return ok({"team": record})
