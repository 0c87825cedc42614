"""Wiring: one Database, cache helper and event bus shared by all services."""

from dataclasses import dataclass
from typing import Optional

from cache.backends import CacheBackend
from cache.helper import CacheHelper
from config.settings import Settings, get_settings
from events.bus import EventBus
from events.invalidation import CacheInvalidationSubscriber
from models.database import Database
from services.admin_service import AdminService
from services.chapter_service import ChapterService
from services.novel_service import NovelService
from services.rating_service import RatingService


@dataclass
class App:
    settings: Settings
    db: Database
    cache: CacheHelper
    bus: EventBus
    novels: NovelService
    chapters: ChapterService
    ratings: RatingService
    admin: AdminService


def create_app(
    settings: Optional[Settings] = None, backend: Optional[CacheBackend] = None,
) -> App:
    """Build the service graph and subscribe cache invalidation to the bus."""
    settings = settings or get_settings()
    db = Database(settings.sqlite_db_path)
    cache = CacheHelper.from_settings(settings, backend)
    bus = EventBus()
    CacheInvalidationSubscriber(cache).register(bus)
    return App(
        settings=settings,
        db=db,
        cache=cache,
        bus=bus,
        novels=NovelService(db, cache, bus, settings),
        chapters=ChapterService(db, cache, bus, settings),
        ratings=RatingService(db, bus),
        admin=AdminService(db, cache, settings),
    )
