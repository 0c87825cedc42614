"""Shared pytest fixtures for the novelhub test suite."""

import pytest


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_novels.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths pointing to tmp_path."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "novels.db",
        log_dir=tmp_path / "logs",
        storage_dir=tmp_path / "storage",
        cache_backend="memory",
        page_size=2,
    )


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------

class TaggedDictBackend:
    """In-test backend that honours tags, standing in for a tag-capable store."""

    def __init__(self):
        self.store = {}
        self.tags = {}

    def get(self, key):
        from cache.backends import MISSING
        return self.store.get(key, MISSING)

    def put(self, key, value, ttl, tags=()):
        self.store[key] = value
        for tag in tags:
            self.tags.setdefault(tag, set()).add(key)

    def forget(self, key):
        self.store.pop(key, None)

    def flush_tags(self, tags):
        for tag in tags:
            for key in self.tags.pop(tag, set()):
                self.store.pop(key, None)


@pytest.fixture
def memory_cache():
    """CacheHelper over an in-process MemoryCache (no tag support)."""
    from cache.backends import MemoryCache
    from cache.helper import CacheHelper
    return CacheHelper(MemoryCache(), "memory")


@pytest.fixture
def tagged_cache():
    """CacheHelper that believes it talks to redis, backed by a tag-aware dict."""
    from cache.helper import CacheHelper
    return CacheHelper(TaggedDictBackend(), "redis")


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app(settings):
    """Fully wired services with a memory cache."""
    from services.app import create_app
    return create_app(settings)


@pytest.fixture
def tagged_app(settings):
    """Fully wired services with a tag-capable cache."""
    from services.app import create_app
    settings = settings.model_copy(update={"cache_backend": "redis"})
    return create_app(settings, backend=TaggedDictBackend())


@pytest.fixture
def genres(db):
    """Seed a few genres and return them keyed by slug."""
    from models.novel import Genre
    result = {}
    for name in ("Fantasy", "Adventure", "Romance", "Mystery"):
        genre = Genre(name=name)
        genre.id = db.create_genre(genre)
        result[genre.slug] = genre
    return result


@pytest.fixture
def app_genres(app):
    """Seed genres into the app database and return them keyed by slug."""
    from models.novel import Genre
    result = {}
    for name in ("Fantasy", "Adventure", "Romance", "Mystery"):
        genre = Genre(name=name)
        genre.id = app.db.create_genre(genre)
        result[genre.slug] = genre
    return result


@pytest.fixture
def sample_novel(db, genres):
    """Insert and return a sample Novel record."""
    from models.novel import Novel
    from models.enums import NovelStatus
    novel = Novel(
        title="The Sky Realm",
        author="A. Writer",
        description="A boy inherits an ancient legacy.",
        status=NovelStatus.ONGOING,
        genres=[genres["fantasy"], genres["adventure"]],
    )
    novel.id = db.create_novel(novel)
    return novel


@pytest.fixture
def sample_chapter(db, sample_novel):
    """Insert and return a sample Chapter record."""
    from models.chapter import Chapter
    chapter = Chapter(
        novel_id=sample_novel.id,
        chapter_number=1,
        title="Chapter One",
        content="It was a quiet morning in the valley.",
        word_count=8,
    )
    chapter.id = db.create_chapter(chapter)
    return chapter
