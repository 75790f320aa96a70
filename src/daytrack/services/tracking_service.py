"""记录流程：新建时间段、接受猜测、纠正分类。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from daytrack.config import AppConfig, load_app_config
from daytrack.db.sqlite_client import SQLiteClient
from daytrack.domain.timeline_types import Category, Location, TimelineItem, TimeSlot
from daytrack.repositories.smart_guess_repository import SQLSmartGuessRepository
from daytrack.repositories.time_slot_repository import SQLTimeSlotRepository
from daytrack.services.providers import LocationSource, StaticLocationSource, SystemClock
from daytrack.services.smart_guess_service import SmartGuessService
from daytrack.services.timeline_service import TimeSlotService

logger = logging.getLogger(__name__)


class TrackingService:
    """串联时间段服务与 smart guess 服务。"""

    def __init__(
        self,
        time_slot_service: TimeSlotService,
        smart_guess_service: SmartGuessService,
        location_source: LocationSource,
    ) -> None:
        self.time_slot_service = time_slot_service
        self.smart_guess_service = smart_guess_service
        self._location_source = location_source

    def add_new_slot(
        self,
        category: Category,
        start_time: datetime | None = None,
        location: Location | None = None,
    ) -> TimeSlot:
        """用户手动选择分类；位置已知时记下一条 smart guess。"""

        if location is None:
            location = self._location_source.last_known_location()
        time_slot = self.time_slot_service.add_manual_slot(
            start_time or self.time_slot_service.now(),
            category,
            set_by_user=True,
            location=location,
        )
        if location is not None:
            self.smart_guess_service.add(category, location)
        return time_slot

    def track_location(self, location: Location) -> TimeSlot:
        """新的位置点：有猜测则采用，否则记为 unknown。"""

        smart_guess = self.smart_guess_service.best_guess(location)
        if smart_guess is None:
            logger.debug("No SmartGuess for location %s, %s", location.latitude, location.longitude)
            return self.time_slot_service.add_manual_slot(
                location.timestamp,
                "unknown",
                set_by_user=False,
                location=location,
            )

        time_slot = self.time_slot_service.add_guessed_slot(
            location.timestamp,
            smart_guess,
            location=location,
        )
        self.smart_guess_service.reinforce(smart_guess.guess_id)
        return time_slot

    def recategorize_slot(self, time_slot: TimeSlot, category: Category) -> TimeSlot:
        """纠正分类：来自猜测的扣分，否则按位置新增猜测。"""

        updated = self.time_slot_service.recategorize(time_slot, category)
        if time_slot.smart_guess_id is not None:
            self.smart_guess_service.strike(time_slot.smart_guess_id)
        elif time_slot.location is not None:
            self.smart_guess_service.add(category, time_slot.location)
        return updated

    def update_timeline_item(self, item: TimelineItem, category: Category) -> list[TimeSlot]:
        return [self.recategorize_slot(time_slot, category) for time_slot in item.time_slots]


@dataclass(slots=True)
class TrackingSession:
    """持有数据库连接的记录会话。"""

    config: AppConfig
    client: SQLiteClient
    tracking: TrackingService

    def close(self) -> None:
        self.client.dispose()

    def __enter__(self) -> TrackingSession:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()


def open_tracking_session(
    db_path: str | None = None,
    timezone_name: str | None = None,
    location: Location | None = None,
    config: AppConfig | None = None,
) -> TrackingSession:
    """按配置组装基于 SQLite 的记录服务。"""

    if config is None:
        config = load_app_config(db_path=db_path, timezone_name=timezone_name)
    clock = SystemClock(config.timezone)
    location_source = StaticLocationSource(location)
    client = SQLiteClient(config.db_path)
    time_slot_service = TimeSlotService(
        SQLTimeSlotRepository(client, config.timezone),
        clock=clock,
        tz=config.timezone,
        location_source=location_source,
    )
    smart_guess_service = SmartGuessService(
        SQLSmartGuessRepository(client, config.timezone),
        clock=clock,
        tz=config.timezone,
        same_weekday_only=config.same_weekday_only,
    )
    tracking = TrackingService(time_slot_service, smart_guess_service, location_source)
    return TrackingSession(config=config, client=client, tracking=tracking)
