"""Tests for the novel, chapter and rating services wired through create_app."""

import pytest

from cache.backends import MISSING
from cache.helper import related_key
from config.exceptions import (
    ChapterNotFoundError,
    InvalidRatingError,
    InvalidStatusError,
    NovelNotFoundError,
    RatingNotFoundError,
    ValidationError,
)
from events.events import NovelSaved
from models.enums import NovelStatus
from models.novel import Genre, Novel


def add_novel(app, title, genres=(), author="A. Writer", status="ongoing"):
    return app.novels.create_novel(
        title=title, author=author, status=status, genre_ids=[g.id for g in genres],
    )


@pytest.fixture
def novel(app, app_genres):
    return add_novel(app, "The Sky Realm", [app_genres["fantasy"], app_genres["adventure"]])


@pytest.fixture
def tagged_genres(tagged_app):
    result = {}
    for name in ("Fantasy", "Adventure"):
        genre = Genre(name=name)
        genre.id = tagged_app.db.create_genre(genre)
        result[genre.slug] = genre
    return result


class TestNovelListing:
    def test_pagination(self, app):
        for i in range(5):
            add_novel(app, f"Novel {i}")
        page = app.novels.list_novels(sort_by="latest", page=2)
        assert page.per_page == 2
        assert page.total == 5
        assert page.last_page == 3
        assert len(page.items) == 2

    def test_empty_listing_has_one_page(self, app):
        page = app.novels.list_novels()
        assert page.items == []
        assert page.last_page == 1

    def test_listing_is_cached(self, app):
        add_novel(app, "First")
        before = app.novels.list_novels()
        app.db.create_novel(Novel(title="Sneaky", author="x"))
        assert app.novels.list_novels().total == before.total

    def test_unknown_sort_rejected(self, app):
        with pytest.raises(ValidationError, match="Unknown sort order"):
            app.novels.list_novels(sort_by="alphabetical")

    def test_unknown_status_rejected(self, app):
        with pytest.raises(InvalidStatusError):
            app.novels.list_novels(status="abandoned")

    def test_genre_and_status_filters(self, app, app_genres):
        add_novel(app, "A", [app_genres["fantasy"]])
        add_novel(app, "B", [app_genres["fantasy"]], status="completed")
        add_novel(app, "C", [app_genres["romance"]], status="completed")
        page = app.novels.list_novels(genre="fantasy", status="completed")
        assert [n.title for n in page.items] == ["B"]

    def test_showcases(self, app):
        low = add_novel(app, "Low")
        high = add_novel(app, "High")
        app.db.increment_views(high.id)
        assert [n.id for n in app.novels.popular()] == [high.id, low.id]
        assert [n.id for n in app.novels.latest()][0] in (high.id, low.id)
        assert len(app.novels.recently_updated()) == 2
        assert len(app.novels.recommendations()) == 2

    def test_search(self, app):
        add_novel(app, "Dragon Path")
        add_novel(app, "Quiet Lake")
        assert [n.title for n in app.novels.search("  dragon ")] == ["Dragon Path"]

    def test_empty_search_rejected(self, app):
        with pytest.raises(ValidationError):
            app.novels.search("   ")

    def test_genres_cached(self, app, app_genres):
        assert len(app.novels.genres()) == 4
        assert app.cache.backend.get("genres_all") is not MISSING


class TestNovelDetail:
    def test_get_novel(self, app, novel):
        assert app.novels.get_novel(novel.slug).id == novel.id

    def test_missing_novel_raises(self, app):
        with pytest.raises(NovelNotFoundError):
            app.novels.get_novel("nope")

    def test_unknown_slug_is_not_cached(self, app):
        with pytest.raises(NovelNotFoundError):
            app.novels.get_novel("late-arrival")
        app.db.create_novel(Novel(title="Late Arrival", author="x"))
        assert app.novels.get_novel("late-arrival").title == "Late Arrival"

    def test_show_novel_counts_views(self, app, novel):
        assert app.novels.show_novel(novel.slug).views == 1
        assert app.novels.show_novel(novel.slug).views == 2
        assert app.db.get_novel(novel.id).views == 2

    def test_views_do_not_flush_listings(self, app, novel):
        popular = app.novels.popular()
        app.novels.show_novel(novel.slug)
        assert app.cache.backend.get("novels_popular") == popular


class TestNovelMutations:
    def test_create_validates(self, app):
        with pytest.raises(ValidationError):
            app.novels.create_novel(title="   ", author="x")
        with pytest.raises(ValidationError):
            app.novels.create_novel(title="t" * 256, author="x")
        with pytest.raises(InvalidStatusError):
            app.novels.create_novel(title="t", author="x", status="abandoned")
        with pytest.raises(ValidationError, match="Unknown genre ids"):
            app.novels.create_novel(title="t", author="x", genre_ids=[999])

    def test_create_returns_stored_novel(self, app, novel):
        assert novel.id is not None
        assert novel.slug == "the-sky-realm"
        assert {g.slug for g in novel.genres} == {"fantasy", "adventure"}
        assert novel.status == NovelStatus.ONGOING

    def test_create_flushes_showcases(self, app):
        assert app.novels.popular() == []
        add_novel(app, "Fresh")
        assert [n.title for n in app.novels.popular()] == ["Fresh"]

    def test_update_flushes_detail_and_showcases(self, app, novel):
        app.novels.get_novel(novel.slug)
        app.novels.popular()
        updated = app.novels.update_novel(novel.slug, title="Sky Realm Reborn")
        assert updated.title == "Sky Realm Reborn"
        assert app.novels.get_novel(novel.slug).title == "Sky Realm Reborn"
        assert app.novels.popular()[0].title == "Sky Realm Reborn"

    def test_update_without_changes_publishes_nothing(self, app, novel):
        published = []
        app.bus.subscribe(NovelSaved, published.append)
        app.novels.update_novel(novel.slug, title=novel.title, status="ongoing")
        assert published == []

    def test_update_genres(self, app, novel, app_genres):
        updated = app.novels.update_novel(novel.slug, genre_ids=[app_genres["mystery"].id])
        assert [g.slug for g in updated.genres] == ["mystery"]

    def test_update_missing_novel(self, app):
        with pytest.raises(NovelNotFoundError):
            app.novels.update_novel("nope", title="x")

    def test_delete(self, app, novel):
        app.novels.get_novel(novel.slug)
        app.novels.delete_novel(novel.slug)
        with pytest.raises(NovelNotFoundError):
            app.novels.get_novel(novel.slug)
        with pytest.raises(NovelNotFoundError):
            app.novels.delete_novel(novel.slug)


class TestTaggedInvalidation:
    def test_title_update_flushes_every_index_page(self, tagged_app, tagged_genres):
        for i in range(5):
            add_novel(tagged_app, f"Novel {i}", [tagged_genres["fantasy"]])
        for page in (1, 2, 3):
            tagged_app.novels.list_novels(page=page)
        store = tagged_app.cache.backend.store
        assert sum(1 for k in store if k.startswith("novels_index_")) == 3

        tagged_app.novels.update_novel("novel-0", title="Renamed")

        assert not any(k.startswith("novels_index_") for k in store)

    def test_views_keep_index_pages(self, tagged_app):
        created = add_novel(tagged_app, "Watched")
        tagged_app.novels.list_novels(page=1)
        tagged_app.novels.show_novel(created.slug)
        assert "novels_index_all_all_updated_1" in tagged_app.cache.backend.store

    def test_related_entry_flushed_with_novel(self, tagged_app, tagged_genres):
        a = add_novel(tagged_app, "A", [tagged_genres["fantasy"]])
        add_novel(tagged_app, "B", [tagged_genres["fantasy"]])
        tagged_app.novels.related(a.id)
        assert related_key(a.id) in tagged_app.cache.backend.store
        tagged_app.novels.update_novel("b", author="Someone")
        assert related_key(a.id) not in tagged_app.cache.backend.store

    def test_chapter_delete_refreshes_neighbour_navigation(self, tagged_app):
        created = add_novel(tagged_app, "Chaptered")
        for title in ("One", "Two", "Three"):
            tagged_app.chapters.create_chapter(created.id, title, "text")
        assert tagged_app.chapters.get_chapter(created.id, 1).next_number == 2
        tagged_app.chapters.delete_chapter(created.id, 2)
        assert tagged_app.chapters.get_chapter(created.id, 1).next_number == 3


class TestRelated:
    def test_scored_results(self, app, app_genres):
        fantasy, adventure = app_genres["fantasy"], app_genres["adventure"]
        ref = add_novel(app, "Ref", [fantasy, adventure])
        same = add_novel(app, "Same", [fantasy, adventure])
        half = add_novel(app, "Half", [fantasy], author="Other")
        add_novel(app, "Disjoint", [app_genres["mystery"]])

        result = app.novels.related(ref.id)

        assert result.fallback is False
        assert [n.id for n in result.novels] == [same.id, half.id]
        assert result.items[0].score == pytest.approx(100.0)
        assert result.items[1].score == pytest.approx(55.0)

    def test_limit(self, app, app_genres):
        ref = add_novel(app, "Ref", [app_genres["fantasy"]])
        for i in range(10):
            add_novel(app, f"N{i}", [app_genres["fantasy"]])
        assert len(app.novels.related(ref.id).items) == 6

    def test_fallback_for_novel_without_genres(self, app, app_genres):
        ref = add_novel(app, "Lonely")
        popular = add_novel(app, "Popular", [app_genres["fantasy"]])
        app.db.increment_views(popular.id)
        app.db.increment_views(ref.id)
        app.db.increment_views(ref.id)

        result = app.novels.related(ref.id)

        assert result.fallback is True
        assert [n.id for n in result.novels] == [popular.id]
        assert result.items[0].score is None

    def test_cached(self, app, app_genres):
        ref = add_novel(app, "Ref", [app_genres["fantasy"]])
        first = app.novels.related(ref.id)
        add_novel(app, "Late", [app_genres["fantasy"]])
        assert app.novels.related(ref.id) == first

    def test_rating_reference_rescores_cached_related(self, app, app_genres):
        fantasy = app_genres["fantasy"]
        ref = add_novel(app, "Ref", [fantasy])
        add_novel(app, "Same", [fantasy])
        assert app.novels.related(ref.id).items[0].score == pytest.approx(100.0)

        app.ratings.rate(ref.id, 1, 5)

        # rating gap of 5 leaves no rating proximity
        assert app.novels.related(ref.id).items[0].score == pytest.approx(85.0)

    def test_genre_update_recomputes_cached_related(self, app, app_genres):
        fantasy, mystery = app_genres["fantasy"], app_genres["mystery"]
        ref = add_novel(app, "Ref", [fantasy])
        same = add_novel(app, "Same", [fantasy])
        sleuth = add_novel(app, "Sleuth", [mystery])
        assert [n.id for n in app.novels.related(ref.id).novels] == [same.id]

        app.novels.update_novel(ref.slug, genre_ids=[mystery.id])

        result = app.novels.related(ref.id)
        assert [n.id for n in result.novels] == [sleuth.id]
        assert result.items[0].score == pytest.approx(100.0)

    def test_views_keep_cached_related(self, app, app_genres):
        ref = add_novel(app, "Ref", [app_genres["fantasy"]])
        add_novel(app, "Same", [app_genres["fantasy"]])
        first = app.novels.related(ref.id)
        app.novels.show_novel(ref.slug)
        assert app.novels.related(ref.id) == first

    def test_missing_reference(self, app):
        with pytest.raises(NovelNotFoundError):
            app.novels.related(404)


class TestChapters:
    def test_create_numbers_and_counts(self, app, novel):
        first = app.chapters.create_chapter(novel.id, "One", "a b c")
        second = app.chapters.create_chapter(novel.id, "Two", "d e")
        assert (first.chapter_number, second.chapter_number) == (1, 2)
        assert first.word_count == 3
        assert app.db.get_novel(novel.id).total_chapters == 2

    def test_explicit_number_and_duplicate(self, app, novel):
        app.chapters.create_chapter(novel.id, "Ten", "text", chapter_number=10)
        with pytest.raises(ValidationError, match="already exists"):
            app.chapters.create_chapter(novel.id, "Again", "text", chapter_number=10)
        with pytest.raises(ValidationError):
            app.chapters.create_chapter(novel.id, "Zero", "text", chapter_number=0)
        assert app.chapters.create_chapter(novel.id, "Next", "text").chapter_number == 11

    def test_create_validates(self, app, novel):
        with pytest.raises(ValidationError):
            app.chapters.create_chapter(novel.id, "", "text")
        with pytest.raises(ValidationError):
            app.chapters.create_chapter(novel.id, "Title", "")
        with pytest.raises(NovelNotFoundError):
            app.chapters.create_chapter(404, "Title", "text")

    def test_list_strips_content_and_refreshes(self, app, novel):
        app.chapters.create_chapter(novel.id, "One", "a b c")
        listed = app.chapters.list_chapters(novel.id)
        assert [ch.content for ch in listed] == [""]
        app.chapters.create_chapter(novel.id, "Two", "d")
        assert len(app.chapters.list_chapters(novel.id)) == 2

    def test_navigation(self, app, novel):
        for title in ("One", "Two", "Three"):
            app.chapters.create_chapter(novel.id, title, "text")
        view = app.chapters.get_chapter(novel.id, 2)
        assert view.chapter.title == "Two"
        assert (view.previous_number, view.next_number) == (1, 3)
        first = app.chapters.get_chapter(novel.id, 1)
        assert first.previous_number is None

    def test_reading_counts_chapter_views(self, app, novel):
        app.chapters.create_chapter(novel.id, "One", "text")
        views = [app.chapters.get_chapter(novel.id, 1).chapter.views for _ in range(3)]
        assert views == [1, 2, 3]
        assert app.db.get_chapter(novel.id, 1).views == 3

    def test_failed_chapter_view_increment_still_returns_chapter(
        self, app, novel, monkeypatch, caplog,
    ):
        import logging
        import sqlite3

        def locked(novel_id, chapter_number):
            raise sqlite3.OperationalError("database is locked")

        app.chapters.create_chapter(novel.id, "One", "text")
        monkeypatch.setattr(app.db, "increment_chapter_views", locked)
        with caplog.at_level(logging.WARNING, logger="services.chapter_service"):
            view = app.chapters.get_chapter(novel.id, 1)
        assert view.chapter.title == "One"
        assert view.chapter.views == 0
        assert "Chapter view increment failed" in caplog.text

    def test_delete_updates_table_of_contents(self, app, novel):
        for title in ("One", "Two", "Three"):
            app.chapters.create_chapter(novel.id, title, "text")
        app.chapters.list_chapters(novel.id)
        app.chapters.delete_chapter(novel.id, 2)
        assert [ch.chapter_number for ch in app.chapters.list_chapters(novel.id)] == [1, 3]
        assert app.db.get_novel(novel.id).total_chapters == 2

    def test_missing_chapter(self, app, novel):
        with pytest.raises(ChapterNotFoundError):
            app.chapters.get_chapter(novel.id, 1)
        with pytest.raises(ChapterNotFoundError):
            app.chapters.delete_chapter(novel.id, 1)

    def test_update_chapter(self, app, novel):
        app.chapters.create_chapter(novel.id, "One", "a b")
        updated = app.chapters.update_chapter(
            novel.id, 1, title="Uno", content="a b c d", is_free=False, new_number=5,
        )
        assert updated.chapter_number == 5
        assert updated.word_count == 4
        assert updated.is_free is False
        assert app.db.get_chapter(novel.id, 1) is None
        assert app.db.get_novel(novel.id).total_chapters == 1

    def test_bulk_delete_skips_missing(self, app, novel):
        for title in ("One", "Two"):
            app.chapters.create_chapter(novel.id, title, "text")
        assert app.chapters.delete_chapters(novel.id, [1, 2, 3]) == 2
        assert app.db.get_novel(novel.id).total_chapters == 0

    def test_detail_reflects_chapter_count(self, app, novel):
        assert app.novels.get_novel(novel.slug).total_chapters == 0
        app.chapters.create_chapter(novel.id, "One", "text")
        assert app.novels.get_novel(novel.slug).total_chapters == 1


class TestRatings:
    def test_average_tracks_create_update_delete(self, app, novel):
        app.ratings.rate(novel.id, 1, 5)
        result = app.ratings.rate(novel.id, 2, 2)
        assert result.created is True
        assert (result.average_rating, result.total_ratings) == (3.5, 2)

        result = app.ratings.rate(novel.id, 2, 4, review="better on reread")
        assert result.created is False
        assert result.rating.review == "better on reread"
        assert (result.average_rating, result.total_ratings) == (4.5, 2)

        stats = app.ratings.delete_rating(result.rating.id)
        assert (stats.average_rating, stats.total_ratings) == (5.0, 1)
        assert stats.breakdown == {5: 1, 4: 0, 3: 0, 2: 0, 1: 0}

    def test_rating_visible_in_cached_detail(self, app, novel):
        app.novels.get_novel(novel.slug)
        app.ratings.rate(novel.id, 1, 3)
        assert app.novels.get_novel(novel.slug).rating == 3.0

    @pytest.mark.parametrize("value", [0, 6, 3.5, "4", True, None])
    def test_invalid_rating(self, app, novel, value):
        with pytest.raises(InvalidRatingError):
            app.ratings.rate(novel.id, 1, value)

    def test_review_too_long(self, app, novel):
        with pytest.raises(ValidationError):
            app.ratings.rate(novel.id, 1, 4, review="x" * 1001)

    def test_missing_novel_and_rating(self, app):
        with pytest.raises(NovelNotFoundError):
            app.ratings.rate(404, 1, 4)
        with pytest.raises(RatingNotFoundError):
            app.ratings.delete_rating(404)

    def test_user_rating_and_stats(self, app, novel):
        assert app.ratings.user_rating(1, novel.id) is None
        app.ratings.rate(novel.id, 1, 4)
        assert app.ratings.user_rating(1, novel.id).rating == 4
        assert app.ratings.stats(novel.id).total_ratings == 1


class TestShowNovelBestEffort:
    def test_failed_increment_still_returns_novel(self, app, novel, monkeypatch, caplog):
        import logging
        import sqlite3

        def locked(novel_id):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(app.db, "increment_views", locked)
        with caplog.at_level(logging.WARNING, logger="services.novel_service"):
            shown = app.novels.show_novel(novel.slug)
        assert shown.id == novel.id
        assert shown.views == 0
        assert "View increment failed" in caplog.text
