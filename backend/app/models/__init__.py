from app.models.acknowledgment import AcknowledgmentState, AcknowledgmentStatus  # noqa: F401
from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.classroom import Classroom  # noqa: F401
from app.models.duty_assignment import DutyAssignment, DutyStatus  # noqa: F401
from app.models.exam import Exam  # noqa: F401
from app.models.live_status import LiveStatus, LiveStatusValue  # noqa: F401
from app.models.reserved_faculty import ReservedFacultyEntry, ReservedFacultyStatus  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
