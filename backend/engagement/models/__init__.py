from .streak import StreakRecord  # noqa: F401
from .daily_activity import DailyActivityRecord  # noqa: F401
from .points_account import PointsAccount, ALL_CREATORS  # noqa: F401
from .points_transaction import PointTransaction  # noqa: F401
from .user_badge import UserBadge  # noqa: F401
from .user_profile import UserProfile  # noqa: F401

from .audit_log import AuditLog  # noqa: F401

from .notification import Notification  # noqa: F401
