"""ORM models exposed for metadata discovery."""
from shedai.db.models.schedule_run import ScheduleRun
from shedai.db.models.user import User
from shedai.db.models.user_document import UserDocument

__all__ = [
    "ScheduleRun",
    "User",
    "UserDocument",
]
