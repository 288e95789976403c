"""Models package."""

from .user import User
from .instagram_account import InstagramAccount
from .automation import Automation
from .automation_route import AutomationRoute
from .processed_event import ProcessedEvent
from .activity_log import ActivityLogEntry
from .failed_event import FailedEvent
