"""SQLite database initialization and CRUD operations."""

import logging
import shutil
import sqlite3
from pathlib import Path
from typing import Iterable, Optional

from config.exceptions import DatabaseError
from models.chapter import Chapter
from models.enums import NovelStatus
from models.novel import Genre, Novel, slugify
from models.rating import Rating

logger = logging.getLogger(__name__)

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS novels (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    author TEXT NOT NULL DEFAULT '',
    description TEXT DEFAULT '',
    status TEXT DEFAULT 'ongoing',
    views INTEGER DEFAULT 0,
    rating REAL DEFAULT 0,
    rating_count INTEGER DEFAULT 0,
    total_chapters INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS genres (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    slug TEXT NOT NULL UNIQUE,
    description TEXT DEFAULT ''
);

CREATE TABLE IF NOT EXISTS genre_novel (
    novel_id INTEGER NOT NULL REFERENCES novels(id) ON DELETE CASCADE,
    genre_id INTEGER NOT NULL REFERENCES genres(id) ON DELETE CASCADE,
    PRIMARY KEY (novel_id, genre_id)
);

CREATE TABLE IF NOT EXISTS chapters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    novel_id INTEGER NOT NULL REFERENCES novels(id) ON DELETE CASCADE,
    chapter_number INTEGER NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    content TEXT DEFAULT '',
    word_count INTEGER DEFAULT 0,
    views INTEGER DEFAULT 0,
    is_free BOOLEAN DEFAULT TRUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS ratings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    novel_id INTEGER NOT NULL REFERENCES novels(id) ON DELETE CASCADE,
    user_id INTEGER NOT NULL,
    rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
    review TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

# Indexes and constraints added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_chapters_novel_chapter ON chapters(novel_id, chapter_number)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_ratings_user_novel ON ratings(user_id, novel_id)",
    "CREATE INDEX IF NOT EXISTS idx_ratings_novel ON ratings(novel_id)",
    "CREATE INDEX IF NOT EXISTS idx_genre_novel_genre ON genre_novel(genre_id)",
    "CREATE INDEX IF NOT EXISTS idx_novels_views ON novels(views)",
    "CREATE INDEX IF NOT EXISTS idx_novels_status ON novels(status)",
]

# Listing order -> ORDER BY clause; id breaks ties so pages are stable
_ORDER_BY = {
    "views": "n.views DESC, n.id DESC",
    "rating": "n.rating DESC, n.id DESC",
    "created_at": "n.created_at DESC, n.id DESC",
    "updated_at": "n.updated_at DESC, n.id DESC",
    "rating_views": "n.rating DESC, n.views DESC, n.id DESC",
}


class Database:
    """SQLite database manager for novels, genres, chapters and ratings."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript(_CREATE_TABLES_SQL)
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes, constraints)."""
        with self._get_conn() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.OperationalError as e:
                    logger.debug("Migration skipped (already applied): %s", e)

    def ping(self) -> bool:
        """Run a trivial query; raises sqlite3.Error when the database is unusable."""
        with self._get_conn() as conn:
            return conn.execute("SELECT 1").fetchone()[0] == 1

    def backup_database(self, target_path: str | Path) -> Path:
        """Create a backup copy of the database.

        Args:
            target_path: Path for the backup file.

        Returns:
            Path to the backup file.
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.copy2(str(self.db_path), str(target))
        except OSError as e:
            raise DatabaseError("Database backup failed", {"target": str(target)}) from e
        logger.info("Database backed up to %s", target)
        return target

    # ---- Genre CRUD ----

    def create_genre(self, genre: Genre) -> int:
        slug = genre.slug or slugify(genre.name)
        with self._get_conn() as conn:
            cursor = conn.execute(
                "INSERT INTO genres (name, slug, description) VALUES (?, ?, ?)",
                (genre.name, slug, genre.description),
            )
            genre.slug = slug
            return cursor.lastrowid

    def seed_genres(self, genres: Iterable[tuple[str, str]]) -> int:
        """Insert (name, description) pairs not present yet; returns how many were added."""
        added = 0
        with self._get_conn() as conn:
            for name, description in genres:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO genres (name, slug, description) VALUES (?, ?, ?)",
                    (name, slugify(name), description),
                )
                added += cursor.rowcount
        return added

    def get_genre_by_slug(self, slug: str) -> Optional[Genre]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM genres WHERE slug = ?", (slug,)).fetchone()
            return self._row_to_genre(row) if row else None

    def list_genres(self) -> list[Genre]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM genres ORDER BY name").fetchall()
            return [self._row_to_genre(r) for r in rows]

    def set_novel_genres(self, novel_id: int, genre_ids: Iterable[int]):
        """Replace the genre links of a novel (sync semantics)."""
        with self._get_conn() as conn:
            conn.execute("DELETE FROM genre_novel WHERE novel_id = ?", (novel_id,))
            conn.executemany(
                "INSERT OR IGNORE INTO genre_novel (novel_id, genre_id) VALUES (?, ?)",
                [(novel_id, gid) for gid in genre_ids],
            )

    def _row_to_genre(self, row) -> Genre:
        return Genre(
            id=row["id"], name=row["name"], slug=row["slug"],
            description=row["description"] or "",
        )

    def _attach_genres(self, conn: sqlite3.Connection, novels: list[Novel]) -> list[Novel]:
        if not novels:
            return novels
        by_id = {n.id: n for n in novels}
        placeholders = ",".join("?" * len(by_id))
        rows = conn.execute(
            "SELECT gn.novel_id, g.* FROM genre_novel gn "
            "JOIN genres g ON g.id = gn.genre_id "
            f"WHERE gn.novel_id IN ({placeholders}) ORDER BY g.name",
            tuple(by_id),
        ).fetchall()
        for r in rows:
            by_id[r["novel_id"]].genres.append(self._row_to_genre(r))
        return novels

    # ---- Novel CRUD ----

    def unique_slug(self, title: str, exclude_id: Optional[int] = None) -> str:
        """Slug for title, suffixed -1, -2, ... until no other novel uses it."""
        base = slugify(title)
        slug = base
        counter = 1
        with self._get_conn() as conn:
            while conn.execute(
                "SELECT 1 FROM novels WHERE slug = ? AND id IS NOT ?",
                (slug, exclude_id),
            ).fetchone():
                slug = f"{base}-{counter}"
                counter += 1
        return slug

    def create_novel(self, novel: Novel) -> int:
        if not novel.slug:
            novel.slug = self.unique_slug(novel.title)
        with self._get_conn() as conn:
            cursor = conn.execute(
                "INSERT INTO novels (title, slug, author, description, status) "
                "VALUES (?, ?, ?, ?, ?)",
                (novel.title, novel.slug, novel.author, novel.description,
                 novel.status.value),
            )
            novel_id = cursor.lastrowid
        if novel.genres:
            self.set_novel_genres(novel_id, novel.genre_ids)
        return novel_id

    def get_novel(self, novel_id: int) -> Optional[Novel]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM novels WHERE id = ?", (novel_id,)).fetchone()
            if not row:
                return None
            return self._attach_genres(conn, [self._row_to_novel(row)])[0]

    def get_novel_by_slug(self, slug: str) -> Optional[Novel]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM novels WHERE slug = ?", (slug,)).fetchone()
            if not row:
                return None
            return self._attach_genres(conn, [self._row_to_novel(row)])[0]

    def update_novel(self, novel: Novel):
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE novels SET title=?, slug=?, author=?, description=?, status=?, "
                "updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (novel.title, novel.slug, novel.author, novel.description,
                 novel.status.value, novel.id),
            )

    def delete_novel(self, novel_id: int):
        """Delete a novel; chapters, ratings and genre links cascade."""
        with self._get_conn() as conn:
            conn.execute("DELETE FROM novels WHERE id = ?", (novel_id,))
        logger.info("Novel %d and all associated data deleted", novel_id)

    def list_novels(
        self,
        genre_slug: Optional[str] = None,
        status: Optional[NovelStatus] = None,
        order_by: str = "updated_at",
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Novel]:
        where, params = self._novel_filters(genre_slug, status)
        sql = f"SELECT n.* FROM novels n{where} ORDER BY {_ORDER_BY[order_by]}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [limit, offset]
        with self._get_conn() as conn:
            rows = conn.execute(sql, params).fetchall()
            return self._attach_genres(conn, [self._row_to_novel(r) for r in rows])

    def count_novels(
        self, genre_slug: Optional[str] = None, status: Optional[NovelStatus] = None,
    ) -> int:
        where, params = self._novel_filters(genre_slug, status)
        with self._get_conn() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM novels n{where}", params).fetchone()[0]

    def _novel_filters(self, genre_slug, status) -> tuple[str, list]:
        clauses, params = [], []
        if genre_slug:
            clauses.append(
                "EXISTS (SELECT 1 FROM genre_novel gn JOIN genres g ON g.id = gn.genre_id "
                "WHERE gn.novel_id = n.id AND g.slug = ?)"
            )
            params.append(genre_slug)
        if status:
            clauses.append("n.status = ?")
            params.append(NovelStatus(status).value)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        return where, params

    def search_novels(self, query: str, limit: int = 10) -> list[Novel]:
        pattern = f"%{query}%"
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT n.* FROM novels n WHERE n.title LIKE ? OR n.author LIKE ? "
                "OR n.description LIKE ? ORDER BY n.id LIMIT ?",
                (pattern, pattern, pattern, limit),
            ).fetchall()
            return self._attach_genres(conn, [self._row_to_novel(r) for r in rows])

    def get_genre_neighbours(self, novel_id: int) -> list[Novel]:
        """Novels sharing at least one genre with novel_id, excluding it, in id order."""
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT n.* FROM novels n WHERE n.id != ? AND EXISTS ("
                "SELECT 1 FROM genre_novel a JOIN genre_novel b ON a.genre_id = b.genre_id "
                "WHERE a.novel_id = n.id AND b.novel_id = ?) ORDER BY n.id",
                (novel_id, novel_id),
            ).fetchall()
            return self._attach_genres(conn, [self._row_to_novel(r) for r in rows])

    def increment_views(self, novel_id: int) -> int:
        """Bump the view counter; returns the new value (0 if the novel is gone)."""
        with self._get_conn() as conn:
            conn.execute("UPDATE novels SET views = views + 1 WHERE id = ?", (novel_id,))
            row = conn.execute("SELECT views FROM novels WHERE id = ?", (novel_id,)).fetchone()
            return row["views"] if row else 0

    def adjust_chapter_count(self, novel_id: int, delta: int):
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE novels SET total_chapters = MAX(total_chapters + ?, 0), "
                "updated_at=CURRENT_TIMESTAMP WHERE id = ?",
                (delta, novel_id),
            )

    def set_chapter_count(self, novel_id: int, total: int):
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE novels SET total_chapters = ? WHERE id = ?", (total, novel_id),
            )

    def _row_to_novel(self, row) -> Novel:
        return Novel(
            id=row["id"], title=row["title"], slug=row["slug"],
            author=row["author"], description=row["description"] or "",
            status=NovelStatus(row["status"]),
            views=row["views"], rating=float(row["rating"] or 0),
            rating_count=row["rating_count"],
            total_chapters=row["total_chapters"],
            created_at=row["created_at"], updated_at=row["updated_at"],
        )

    # ---- Chapter CRUD ----

    def create_chapter(self, chapter: Chapter) -> int:
        with self._get_conn() as conn:
            cursor = conn.execute(
                "INSERT INTO chapters (novel_id, chapter_number, title, content, "
                "word_count, is_free) VALUES (?, ?, ?, ?, ?, ?)",
                (chapter.novel_id, chapter.chapter_number, chapter.title,
                 chapter.content, chapter.word_count, chapter.is_free),
            )
            return cursor.lastrowid

    def get_chapter(self, novel_id: int, chapter_number: int) -> Optional[Chapter]:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM chapters WHERE novel_id = ? AND chapter_number = ?",
                (novel_id, chapter_number),
            ).fetchone()
            if not row:
                return None
            return self._row_to_chapter(row)

    def get_chapters(self, novel_id: int) -> list[Chapter]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM chapters WHERE novel_id = ? ORDER BY chapter_number",
                (novel_id,),
            ).fetchall()
            return [self._row_to_chapter(r) for r in rows]

    def get_adjacent_chapters(
        self, novel_id: int, chapter_number: int,
    ) -> tuple[Optional[Chapter], Optional[Chapter]]:
        """Return (previous, next) chapters around chapter_number."""
        with self._get_conn() as conn:
            prev_row = conn.execute(
                "SELECT * FROM chapters WHERE novel_id = ? AND chapter_number < ? "
                "ORDER BY chapter_number DESC LIMIT 1",
                (novel_id, chapter_number),
            ).fetchone()
            next_row = conn.execute(
                "SELECT * FROM chapters WHERE novel_id = ? AND chapter_number > ? "
                "ORDER BY chapter_number LIMIT 1",
                (novel_id, chapter_number),
            ).fetchone()
            return (
                self._row_to_chapter(prev_row) if prev_row else None,
                self._row_to_chapter(next_row) if next_row else None,
            )

    def update_chapter(self, chapter: Chapter):
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE chapters SET chapter_number=?, title=?, content=?, word_count=?, "
                "is_free=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (chapter.chapter_number, chapter.title, chapter.content,
                 chapter.word_count, chapter.is_free, chapter.id),
            )

    def increment_chapter_views(self, novel_id: int, chapter_number: int) -> int:
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE chapters SET views = views + 1 WHERE novel_id = ? AND chapter_number = ?",
                (novel_id, chapter_number),
            )
            row = conn.execute(
                "SELECT views FROM chapters WHERE novel_id = ? AND chapter_number = ?",
                (novel_id, chapter_number),
            ).fetchone()
            return row["views"] if row else 0

    def delete_chapter(self, novel_id: int, chapter_number: int) -> bool:
        with self._get_conn() as conn:
            cursor = conn.execute(
                "DELETE FROM chapters WHERE novel_id = ? AND chapter_number = ?",
                (novel_id, chapter_number),
            )
            return cursor.rowcount > 0

    def get_last_chapter_number(self, novel_id: int) -> int:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT MAX(chapter_number) as max_ch FROM chapters WHERE novel_id = ?",
                (novel_id,),
            ).fetchone()
            return row["max_ch"] or 0

    def count_chapters(self, novel_id: int) -> int:
        with self._get_conn() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM chapters WHERE novel_id = ?", (novel_id,),
            ).fetchone()[0]

    def _row_to_chapter(self, row) -> Chapter:
        return Chapter(
            id=row["id"], novel_id=row["novel_id"],
            chapter_number=row["chapter_number"], title=row["title"],
            content=row["content"] or "", word_count=row["word_count"],
            views=row["views"], is_free=bool(row["is_free"]),
            created_at=row["created_at"], updated_at=row["updated_at"],
        )

    # ---- Rating CRUD ----

    def upsert_rating(self, rating: Rating) -> tuple[int, bool]:
        """Insert or update the (user, novel) rating; returns (id, created)."""
        with self._get_conn() as conn:
            existing = conn.execute(
                "SELECT id FROM ratings WHERE user_id = ? AND novel_id = ?",
                (rating.user_id, rating.novel_id),
            ).fetchone()
            if existing:
                conn.execute(
                    "UPDATE ratings SET rating=?, review=?, updated_at=CURRENT_TIMESTAMP "
                    "WHERE id=?",
                    (rating.rating, rating.review, existing["id"]),
                )
                return existing["id"], False
            cursor = conn.execute(
                "INSERT INTO ratings (novel_id, user_id, rating, review) VALUES (?, ?, ?, ?)",
                (rating.novel_id, rating.user_id, rating.rating, rating.review),
            )
            return cursor.lastrowid, True

    def get_rating(self, rating_id: int) -> Optional[Rating]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM ratings WHERE id = ?", (rating_id,)).fetchone()
            return self._row_to_rating(row) if row else None

    def get_user_rating(self, user_id: int, novel_id: int) -> Optional[Rating]:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM ratings WHERE user_id = ? AND novel_id = ?",
                (user_id, novel_id),
            ).fetchone()
            return self._row_to_rating(row) if row else None

    def delete_rating(self, rating_id: int) -> bool:
        with self._get_conn() as conn:
            cursor = conn.execute("DELETE FROM ratings WHERE id = ?", (rating_id,))
            return cursor.rowcount > 0

    def dashboard_counts(self, since: str) -> dict:
        """Site-wide totals; novels_since counts novels created at or after since."""
        with self._get_conn() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM novels) AS novels,
                    (SELECT COUNT(*) FROM chapters) AS chapters,
                    (SELECT COUNT(*) FROM ratings) AS ratings,
                    (SELECT COUNT(*) FROM novels WHERE created_at >= ?) AS novels_since,
                    (SELECT COALESCE(SUM(views), 0) FROM novels) AS total_views,
                    (SELECT AVG(rating) FROM ratings) AS average_rating
                """,
                (since,),
            ).fetchone()
        return dict(row)

    def top_genres(self, limit: int = 5) -> list[tuple[str, int]]:
        """Genre names with their novel counts, most used first."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """
                SELECT g.name, COUNT(*) AS c
                FROM genre_novel gn JOIN genres g ON g.id = gn.genre_id
                GROUP BY g.id ORDER BY c DESC, g.name LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [(r["name"], r["c"]) for r in rows]

    def rating_breakdown(self, novel_id: int) -> dict[int, int]:
        """Number of ratings per star value, 5 down to 1."""
        breakdown = {stars: 0 for stars in range(5, 0, -1)}
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT rating, COUNT(*) AS c FROM ratings WHERE novel_id = ? GROUP BY rating",
                (novel_id,),
            ).fetchall()
        for r in rows:
            breakdown[r["rating"]] = r["c"]
        return breakdown

    def refresh_novel_rating(self, novel_id: int) -> tuple[float, int]:
        """Recompute rating (mean, two decimals) and rating_count from the ratings table."""
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS c, AVG(rating) AS a FROM ratings WHERE novel_id = ?",
                (novel_id,),
            ).fetchone()
            count = row["c"]
            average = round(row["a"], 2) if count else 0.0
            conn.execute(
                "UPDATE novels SET rating = ?, rating_count = ?, "
                "updated_at=CURRENT_TIMESTAMP WHERE id = ?",
                (average, count, novel_id),
            )
            return average, count

    def _row_to_rating(self, row) -> Rating:
        return Rating(
            id=row["id"], novel_id=row["novel_id"], user_id=row["user_id"],
            rating=row["rating"], review=row["review"],
            created_at=row["created_at"], updated_at=row["updated_at"],
        )
