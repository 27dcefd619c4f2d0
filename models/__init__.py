from models.timeblock import TimeBlock, Weekday, conflicts, first_conflict
from models.course import Course, CourseState, PrerequisiteRef
from models.section import Section
from models.enrollment import EnrollmentEntry
from models.request import ModificationRequest, RequestState, RequestedSection, RequestedDrop
from models.portal_data import PortalData, ConsistencyReport

__all__ = [
    "TimeBlock",
    "Weekday",
    "conflicts",
    "first_conflict",
    "Course",
    "CourseState",
    "PrerequisiteRef",
    "Section",
    "EnrollmentEntry",
    "ModificationRequest",
    "RequestState",
    "RequestedSection",
    "RequestedDrop",
    "PortalData",
    "ConsistencyReport",
]
