# Problem statements - fixed catalog for Foundathon 3.0
# Every statement shares the same team cap.

from dataclasses import dataclass


@dataclass(frozen=True)
class ProblemStatement:
    id: str
    title: str
    summary: str


PROBLEM_STATEMENT_CAP = 10

PROBLEM_STATEMENTS = (
    ProblemStatement(
        id="ps-01",
        title="Campus Mobility Optimizer",
        summary="Plan shuttle routes and schedules that cut waiting time across a large campus using live ridership data.",
    ),
    ProblemStatement(
        id="ps-02",
        title="Smart Canteen Queue",
        summary="Predict canteen rush hours and let students pre-order so that queues and food waste both shrink.",
    ),
    ProblemStatement(
        id="ps-03",
        title="Lab Equipment Tracker",
        summary="Track shared lab equipment bookings, usage and maintenance so nothing sits idle or goes missing.",
    ),
    ProblemStatement(
        id="ps-04",
        title="Hostel Grievance Desk",
        summary="Route hostel maintenance complaints to the right staff and surface turnaround metrics to wardens.",
    ),
    ProblemStatement(
        id="ps-05",
        title="Placement Readiness Coach",
        summary="Assess student profiles against recruiter expectations and recommend a personalised preparation plan.",
    ),
    ProblemStatement(
        id="ps-06",
        title="Green Campus Energy Monitor",
        summary="Visualise building level energy consumption and flag anomalies that point to waste.",
    ),
    ProblemStatement(
        id="ps-07",
        title="Founder Matchmaking",
        summary="Match student founders with co-founders and mentors based on skills, interests and availability.",
    ),
    ProblemStatement(
        id="ps-08",
        title="Event Footfall Analytics",
        summary="Estimate crowd density at campus events and help organisers plan entry gates and volunteers.",
    ),
)

_PROBLEM_STATEMENTS_BY_ID = {statement.id: statement for statement in PROBLEM_STATEMENTS}


def get_problem_statement_by_id(statement_id):
    """Return the catalog entry for an id, or None if unknown."""
    if not isinstance(statement_id, str):
        return None
    return _PROBLEM_STATEMENTS_BY_ID.get(statement_id.strip())
