"""SQLite-backed embedding store with FAISS nearest-neighbour search."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import faiss
import numpy as np
from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .config import Settings
from .schemas import LATEST_VERSION, ChunkInput
from .utils import text_snippet


logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when a storage operation fails."""
    pass


class DimensionMismatchError(ValueError):
    """Raised when a vector does not match the store's configured dimension."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class EmbeddingRecord(Base):
    """One embedded chunk, unique per (package, version, content_hash)."""

    __tablename__ = "embeddings"
    __table_args__ = (
        UniqueConstraint("package", "version", "content_hash", name="uq_embeddings_scope_hash"),
        Index("idx_embeddings_package_version", "package", "version"),
        Index("idx_embeddings_package_hash", "package", "content_hash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    package: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[str] = mapped_column(String, nullable=False, default=LATEST_VERSION)
    source_file: Mapped[str] = mapped_column(String, nullable=False)
    source_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    start_byte: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end_byte: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    text_snippet: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    vector: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def vector_array(self) -> np.ndarray:
        return decode_vector(self.vector)


def encode_vector(vector: Sequence[float]) -> bytes:
    """Pack a vector as little-endian float32 bytes."""
    return np.asarray(vector, dtype="<f4").tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    """Unpack float32 bytes into a numpy vector."""
    return np.frombuffer(blob, dtype="<f4")


class VectorStore:
    """
    Embedding records in a relational database.

    Rows live in SQLite (or any SQLAlchemy URL); nearest-neighbour queries
    load the scoped vectors into a FAISS ``IndexFlatL2``.
    """

    def __init__(self, database_url: str, dimension: int = 384, echo: bool = False) -> None:
        self.database_url = database_url
        self.dimension = dimension
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, echo=echo, connect_args=connect_args)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "VectorStore":
        """Open the configured store, creating the database if needed."""
        if settings.database_url is None:
            settings.data_path.mkdir(parents=True, exist_ok=True)
        store = cls(settings.resolved_database_url, dimension=settings.embedding_dimension)
        store.create_tables()
        return store

    def create_tables(self) -> None:
        """Create the embeddings table and indexes if missing."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to initialize store at {self.database_url}: {exc}") from exc

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session whose work is committed together or not at all."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Store transaction failed: {exc}") from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def check_dimension(self, blob: bytes) -> None:
        found = len(blob) // 4
        if len(blob) % 4 or found != self.dimension:
            raise DimensionMismatchError(
                f"Vector has {found} dimensions, store expects {self.dimension}"
            )

    # -------------------------------------------------
    # Lookups
    # -------------------------------------------------

    def find_reusable_vector(self, package: str, version: str, content_hash: str) -> Optional[bytes]:
        """
        Find a stored vector for this content.

        A record in the same version is preferred; otherwise any version of the
        package. Among several matches the most recently updated wins.
        """
        same_version = (EmbeddingRecord.version == version).desc()
        query = (
            select(EmbeddingRecord.vector)
            .where(EmbeddingRecord.package == package, EmbeddingRecord.content_hash == content_hash)
            .order_by(same_version, EmbeddingRecord.updated_at.desc(), EmbeddingRecord.id.desc())
            .limit(1)
        )
        try:
            with self._session_factory() as session:
                return session.execute(query).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Lookup failed for {package}: {exc}") from exc

    def _scope_filter(self, package: Optional[str], version: Optional[str]) -> list:
        conditions = []
        if package is not None:
            conditions.append(EmbeddingRecord.package == package)
        if version is not None:
            conditions.append(EmbeddingRecord.version == version)
        return conditions

    def count(self, package: Optional[str], version: Optional[str]) -> int:
        query = select(func.count(EmbeddingRecord.id)).where(*self._scope_filter(package, version))
        try:
            with self._session_factory() as session:
                return session.execute(query).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreError(f"Count failed: {exc}") from exc

    def exists(self, package: Optional[str], version: Optional[str]) -> bool:
        query = select(EmbeddingRecord.id).where(*self._scope_filter(package, version)).limit(1)
        try:
            with self._session_factory() as session:
                return session.execute(query).first() is not None
        except SQLAlchemyError as exc:
            raise StoreError(f"Existence check failed: {exc}") from exc

    def get(self, package: str, version: str, content_hash: str) -> Optional[EmbeddingRecord]:
        query = select(EmbeddingRecord).where(
            EmbeddingRecord.package == package,
            EmbeddingRecord.version == version,
            EmbeddingRecord.content_hash == content_hash,
        )
        with self._session_factory() as session:
            return session.execute(query).scalar_one_or_none()

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    def upsert(
        self,
        session: Session,
        package: str,
        version: str,
        chunk: ChunkInput,
        vector: bytes,
    ) -> Tuple[EmbeddingRecord, bool]:
        """
        Insert or update the record for (package, version, content_hash).

        Returns:
            (record, created) where created is False for an in-place update
        """
        self.check_dimension(vector)
        record = session.execute(
            select(EmbeddingRecord).where(
                EmbeddingRecord.package == package,
                EmbeddingRecord.version == version,
                EmbeddingRecord.content_hash == chunk.content_hash,
            )
        ).scalar_one_or_none()

        created = record is None
        if created:
            record = EmbeddingRecord(package=package, version=version, content_hash=chunk.content_hash)
            session.add(record)

        record.source_file = chunk.source_file
        record.source_type = chunk.source_type
        record.start_byte = chunk.start_byte
        record.end_byte = chunk.end_byte
        record.url = chunk.url
        record.text = chunk.text
        record.text_snippet = text_snippet(chunk.text)
        record.vector = vector
        if not created:
            record.updated_at = _utcnow()
        session.flush()
        return record, created

    def prune_superseded(
        self,
        session: Session,
        package: str,
        version: str,
        hashes_by_file: Dict[str, Set[str]],
    ) -> int:
        """Delete records of the given files whose content is no longer produced."""
        removed = 0
        for source_file, hashes in hashes_by_file.items():
            result = session.execute(
                delete(EmbeddingRecord).where(
                    EmbeddingRecord.package == package,
                    EmbeddingRecord.version == version,
                    EmbeddingRecord.source_file == source_file,
                    EmbeddingRecord.content_hash.not_in(sorted(hashes)),
                )
            )
            removed += result.rowcount or 0
        return removed

    def delete(self, package: str, version: str) -> int:
        """Delete every record of one (package, version) scope."""
        with self.transaction() as session:
            result = session.execute(
                delete(EmbeddingRecord).where(
                    EmbeddingRecord.package == package,
                    EmbeddingRecord.version == version,
                )
            )
            return result.rowcount or 0

    # -------------------------------------------------
    # Nearest neighbour
    # -------------------------------------------------

    def nearest(
        self,
        query_vector: Sequence[float],
        top_k: Optional[int],
        package: Optional[str] = None,
        version: Optional[str] = None,
    ) -> List[Tuple[EmbeddingRecord, float]]:
        """
        Records closest to the query vector by Euclidean distance.

        Args:
            query_vector: Vector of the store's dimension
            top_k: Maximum number of hits; None returns every scoped record
            package: Restrict to one package (None = all packages)
            version: Restrict to one version (None = all versions)

        Returns:
            (record, distance) pairs in ascending distance order
        """
        query = np.asarray(query_vector, dtype="float32").reshape(1, -1)
        if query.shape[1] != self.dimension:
            raise DimensionMismatchError(
                f"Query vector has {query.shape[1]} dimensions, store expects {self.dimension}"
            )

        stmt = select(EmbeddingRecord).where(*self._scope_filter(package, version)).order_by(EmbeddingRecord.id)
        try:
            with self._session_factory() as session:
                records = list(session.execute(stmt).scalars())
        except SQLAlchemyError as exc:
            raise StoreError(f"Nearest-neighbour query failed: {exc}") from exc

        if not records:
            return []

        matrix = np.vstack([record.vector_array() for record in records]).astype("float32")
        index = faiss.IndexFlatL2(self.dimension)
        index.add(np.ascontiguousarray(matrix))

        k = len(records) if top_k is None else min(top_k, len(records))
        if k <= 0:
            return []
        distances, indices = index.search(np.ascontiguousarray(query), k)

        hits: List[Tuple[EmbeddingRecord, float]] = []
        for idx, squared in zip(indices[0], distances[0]):
            if idx == -1:
                break
            # IndexFlatL2 reports squared distances
            hits.append((records[int(idx)], float(np.sqrt(max(float(squared), 0.0)))))
        return hits
