from problem_statements import PROBLEM_STATEMENTS, PROBLEM_STATEMENT_CAP


def get_problem_statement_id_from_details(details):
    """Locked statement id stored in a registration's details, if any."""
    if not isinstance(details, dict):
        return None
    value = details.get("problemStatementId")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _details_of(row):
    # Accept either a bare details blob or a row carrying one
    if isinstance(row, dict) and "details" in row:
        return row["details"]
    return row


def count_problem_statement_registrations(rows, statement_id):
    count = 0
    for row in rows or []:
        if get_problem_statement_id_from_details(_details_of(row)) == statement_id:
            count += 1
    return count


def count_all_problem_statement_registrations(rows):
    counts = {}
    for row in rows or []:
        statement_id = get_problem_statement_id_from_details(_details_of(row))
        if not statement_id:
            continue
        counts[statement_id] = counts.get(statement_id, 0) + 1
    return counts


def build_statement_availability(rows):
    """Remaining slots for every catalog statement."""
    counts = count_all_problem_statement_registrations(rows)
    statements = []
    for statement in PROBLEM_STATEMENTS:
        registered_count = counts.get(statement.id, 0)
        remaining = max(PROBLEM_STATEMENT_CAP - registered_count, 0)
        statements.append({
            "cap": PROBLEM_STATEMENT_CAP,
            "id": statement.id,
            "isFull": remaining == 0,
            "registeredCount": registered_count,
            "remaining": remaining,
            "summary": statement.summary,
            "title": statement.title,
        })
    return statements
