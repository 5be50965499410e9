"""Database operations for the local post cache."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import create_engine, delete, select, update, func
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config import LOCAL_ID_OFFSET, get_database_url
from shared.db_models import Base, CACHE_TABLES, PostRecord, UserRecord
from shared.models import Post

logger = logging.getLogger(__name__)

# Any mismatch with the stored version drops and recreates the cache tables
SCHEMA_VERSION = 2

# Keeps each multi-row INSERT well under SQLite's bound parameter limit
UPSERT_CHUNK_SIZE = 100


class DatabaseOperations:
    """Handles all local storage operations for posts and users."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or get_database_url()

        engine_kwargs = {}
        if self.database_url.startswith("sqlite"):
            # Store calls run on worker threads
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.database_url or self.database_url in ("sqlite://", "sqlite:///"):
                # One shared connection, otherwise every thread sees its own empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def init_schema(self) -> None:
        """
        Create tables, dropping the post and user tables first if the stored
        schema version differs from SCHEMA_VERSION.

        There is no migration path: a version change loses all cached posts
        and registered users. Preferences are kept.
        """
        with self.engine.begin() as conn:
            current_version = conn.exec_driver_sql("PRAGMA user_version").scalar()

            if current_version != SCHEMA_VERSION:
                if current_version:
                    logger.warning(
                        f"Schema version {current_version} does not match {SCHEMA_VERSION}, "
                        f"dropping posts and users"
                    )
                else:
                    logger.info(f"Creating schema version {SCHEMA_VERSION}")
                Base.metadata.drop_all(bind=conn, tables=CACHE_TABLES)
                Base.metadata.create_all(bind=conn)
                conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")
            else:
                Base.metadata.create_all(bind=conn)

    def get_schema_version(self) -> int:
        """Return the schema version stored in the database file."""
        with self.engine.connect() as conn:
            return conn.exec_driver_sql("PRAGMA user_version").scalar()

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()

    # Post Operations

    def upsert_post(self, post: Post) -> None:
        """
        Insert a post, replacing any existing post with the same id.

        Args:
            post: The post to store
        """
        with self.get_session() as session:
            session.execute(self._upsert_statement([post]))
            session.commit()

    def bulk_upsert_posts(self, posts: Iterable[Post]) -> int:
        """
        Insert or replace many posts in a single transaction.

        Either every post is stored or none is.

        Args:
            posts: Posts to store

        Returns:
            Number of posts written
        """
        posts = list(posts)
        with self.get_session() as session, session.begin():
            self._write_chunks(session, posts)
        return len(posts)

    def replace_all_posts(self, posts: Iterable[Post]) -> int:
        """
        Replace the whole posts table with the given posts.

        The delete and the inserts share one transaction, so a failure
        midway leaves the previous contents in place.

        Args:
            posts: The complete new set of posts

        Returns:
            Number of posts stored
        """
        posts = list(posts)
        with self.get_session() as session, session.begin():
            session.execute(delete(PostRecord))
            self._write_chunks(session, posts)

        logger.info(f"Replaced local posts with {len(posts)} records")
        return len(posts)

    def list_posts(self) -> List[Post]:
        """
        Get all stored posts, newest id first.

        Returns:
            List of posts (empty if none are stored)
        """
        with self.get_session() as session:
            stmt = select(PostRecord).order_by(PostRecord.id.desc())
            return [record.to_post() for record in session.execute(stmt).scalars()]

    def get_post(self, post_id: int) -> Optional[Post]:
        """
        Get a post by id.

        Args:
            post_id: The post id

        Returns:
            The post or None if not found
        """
        with self.get_session() as session:
            record = session.get(PostRecord, post_id)
            return record.to_post() if record else None

    def update_post(
        self,
        post_id: int,
        title: str,
        body: str,
        user_id: Optional[int] = None,
        is_favorite: Optional[bool] = None
    ) -> int:
        """
        Update the stored fields of a post.

        Args:
            post_id: The post id
            title: New title
            body: New body
            user_id: New owner id, or None to keep the stored one
            is_favorite: New favorite flag, or None to keep the stored one

        Returns:
            Number of rows affected (0 if the id is not stored)
        """
        values = {"title": title, "body": body}
        if user_id is not None:
            values["user_id"] = user_id
        if is_favorite is not None:
            values["is_favorite"] = is_favorite

        with self.get_session() as session:
            result = session.execute(
                update(PostRecord).where(PostRecord.id == post_id).values(**values)
            )
            session.commit()
            return result.rowcount

    def delete_post(self, post_id: int) -> int:
        """
        Delete a post. Deleting an id that is not stored is a no-op.

        Returns:
            Number of rows deleted
        """
        with self.get_session() as session:
            result = session.execute(delete(PostRecord).where(PostRecord.id == post_id))
            session.commit()
            return result.rowcount

    def delete_all_posts(self) -> int:
        """Delete every stored post."""
        with self.get_session() as session:
            result = session.execute(delete(PostRecord))
            session.commit()
            return result.rowcount

    def count_posts(self) -> int:
        with self.get_session() as session:
            return session.execute(select(func.count()).select_from(PostRecord)).scalar()

    def next_local_id(self) -> int:
        """Id for a post created locally: current count plus LOCAL_ID_OFFSET."""
        return self.count_posts() + LOCAL_ID_OFFSET

    def insert_local_post(
        self,
        title: str,
        body: str,
        user_id: int,
        is_favorite: bool = False
    ) -> Post:
        """
        Store a post created locally under a fresh id.

        The id starts at next_local_id() and moves up past ids that are
        already taken, so an existing post is never overwritten.

        Returns:
            The stored post
        """
        post_id = self.next_local_id()
        while True:
            with self.get_session() as session:
                session.add(PostRecord(
                    id=post_id,
                    user_id=user_id,
                    title=title,
                    body=body,
                    is_favorite=is_favorite
                ))
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    logger.debug(f"Post id {post_id} taken, trying {post_id + 1}")
                    post_id += 1
                    continue

            return Post(id=post_id, user_id=user_id, title=title, body=body, is_favorite=is_favorite)

    def list_favorites(self) -> List[Post]:
        """Get favorite posts, newest id first."""
        with self.get_session() as session:
            stmt = select(PostRecord).where(
                PostRecord.is_favorite.is_(True)
            ).order_by(
                PostRecord.id.desc()
            )
            return [record.to_post() for record in session.execute(stmt).scalars()]

    def set_favorite(self, post_id: int, is_favorite: bool) -> int:
        """
        Update only the favorite flag of a post.

        Returns:
            Number of rows affected
        """
        with self.get_session() as session:
            result = session.execute(
                update(PostRecord)
                .where(PostRecord.id == post_id)
                .values(is_favorite=is_favorite)
            )
            session.commit()
            return result.rowcount

    # User Operations

    def register_user(self, username: str, password: str) -> bool:
        """
        Register a new user.

        Args:
            username: Unique username
            password: Password, stored as given

        Returns:
            True if the user was created, False if the username is taken
        """
        if self.username_exists(username):
            return False

        with self.get_session() as session:
            session.add(UserRecord(username=username, password=password))
            try:
                session.commit()
            except IntegrityError:
                # Registered concurrently between the lookup and the insert
                session.rollback()
                logger.info(f"Username {username} already registered")
                return False

        logger.info(f"Registered user {username}")
        return True

    def authenticate(self, username: str, password: str) -> bool:
        """Return True if a user matches both username and password exactly."""
        with self.get_session() as session:
            stmt = select(UserRecord.id).where(
                UserRecord.username == username,
                UserRecord.password == password
            )
            return session.execute(stmt).first() is not None

    def username_exists(self, username: str) -> bool:
        with self.get_session() as session:
            stmt = select(UserRecord.id).where(UserRecord.username == username)
            return session.execute(stmt).first() is not None

    # Helpers

    def _write_chunks(self, session: Session, posts: List[Post]) -> None:
        for start in range(0, len(posts), UPSERT_CHUNK_SIZE):
            session.execute(self._upsert_statement(posts[start:start + UPSERT_CHUNK_SIZE]))

    @staticmethod
    def _upsert_statement(posts: List[Post]):
        # SQLite's INSERT ... ON CONFLICT DO UPDATE
        stmt = insert(PostRecord).values([
            {
                "id": post.id,
                "user_id": post.user_id,
                "title": post.title,
                "body": post.body,
                "is_favorite": post.is_favorite,
            }
            for post in posts
        ])
        return stmt.on_conflict_do_update(
            index_elements=['id'],
            set_={
                'user_id': stmt.excluded.user_id,
                'title': stmt.excluded.title,
                'body': stmt.excluded.body,
                'is_favorite': stmt.excluded.is_favorite,
            }
        )
