from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from apps.edusave.utils.settings import settings

Clock = Callable[[], datetime]


def app_timezone() -> ZoneInfo:
    return ZoneInfo(settings.APP_TIMEZONE)


def now() -> datetime:
    """Timezone-aware current time in the configured application timezone."""
    return datetime.now(app_timezone())
