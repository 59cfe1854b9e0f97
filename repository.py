"""
Row store queries for event registrations.

Every query is scoped to the configured event and, except for the
availability scan, to the owning user. Rows come back as plain dicts so
nothing outside this module touches Pony entities.
"""
import uuid
from datetime import datetime

from pony.orm import db_session, desc, DatabaseError, OrmError

from config import config
from errors import RepositoryError
from models import Registration


def _plain(value):
    # Pony hands back tracked containers for Json attributes
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _isoformat(value):
    return value.isoformat() + "Z" if value else None


def row_to_dict(registration):
    return {
        "id": str(registration.id),
        "created_at": _isoformat(registration.created_at),
        "updated_at": _isoformat(registration.updated_at),
        "details": _plain(registration.details) if isinstance(registration.details, dict) else {},
        "is_approved": registration.is_approved,
    }


def _event_id():
    return config.event.event_id


def _get_owned(team_id, user_id):
    return Registration.get(id=uuid.UUID(team_id), event_id=_event_id(), application_id=user_id)


def list_registrations_for_user(user_id):
    try:
        with db_session:
            event_id = _event_id()
            rows = Registration.select(
                lambda r: r.event_id == event_id and r.application_id == user_id
            ).order_by(desc(Registration.created_at))[:]
            return [row_to_dict(r) for r in rows]
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e


def find_any_registration_for_user(user_id):
    try:
        with db_session:
            event_id = _event_id()
            registration = Registration.select(
                lambda r: r.event_id == event_id and r.application_id == user_id
            ).first()
            return row_to_dict(registration) if registration else None
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e


def find_registration_by_team_id_for_user(team_id, user_id):
    try:
        with db_session:
            registration = _get_owned(team_id, user_id)
            return row_to_dict(registration) if registration else None
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e


def insert_registration(user_id, registration_email, details):
    try:
        with db_session:
            registration = Registration(
                event_id=_event_id(),
                event_title=config.event.event_title,
                application_id=user_id,
                registration_email=registration_email or "",
                is_team_entry=True,
                details=details,
                created_at=datetime.utcnow(),
            )
            return row_to_dict(registration)
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e


def update_registration_details_by_team_id_for_user(team_id, user_id, details):
    """Replace a team's details; None when no owned row matched."""
    try:
        with db_session:
            registration = _get_owned(team_id, user_id)
            if not registration:
                return None
            registration.details = details
            registration.updated_at = datetime.utcnow()
            return row_to_dict(registration)
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e


def delete_registration_by_team_id_for_user(team_id, user_id):
    try:
        with db_session:
            registration = _get_owned(team_id, user_id)
            if not registration:
                return None
            deleted_id = str(registration.id)
            registration.delete()
            return {"id": deleted_id}
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e


# The legacy ?id= delete path matches on the same scope
delete_registration_by_query_id_for_user = delete_registration_by_team_id_for_user


def list_problem_statement_rows():
    """Details of every registration for the event, for slot counting."""
    try:
        with db_session:
            event_id = _event_id()
            rows = Registration.select(lambda r: r.event_id == event_id)[:]
            return [{"details": _plain(r.details) if isinstance(r.details, dict) else None} for r in rows]
    except (OrmError, DatabaseError) as e:
        raise RepositoryError(str(e)) from e
