"""
Tables backing the document store.

Resource hierarchy (each level addressed by a self link):

    dbs/{rid}/                                   DatabaseRecord
    dbs/{rid}/colls/{rid}/                       CollectionRecord
    dbs/{rid}/colls/{rid}/docs/{rid}/            DocumentRecord
    dbs/{rid}/colls/{rid}/sprocs/{rid}/          StoredProcedureRecord

`id` is the user-facing name and is unique within its parent; `rid` is the
store-generated resource id used in links.
"""

import time
import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def new_rid() -> str:
    return uuid.uuid4().hex[:16]


def new_etag() -> str:
    return f'"{uuid.uuid4()}"'


def now_ts() -> int:
    """Epoch seconds, the resolution of the `_ts` metadata field."""
    return int(time.time())


class DatabaseRecord(Base):
    __tablename__ = "store_databases"

    rid: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_rid)
    id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    etag: Mapped[str] = mapped_column(String(64), nullable=False, default=new_etag)
    ts: Mapped[int] = mapped_column(Integer, nullable=False, default=now_ts)

    @property
    def self_link(self) -> str:
        return f"dbs/{self.rid}/"

    def to_resource(self) -> dict[str, Any]:
        return {"id": self.id, "_rid": self.rid, "_self": self.self_link, "_etag": self.etag, "_ts": self.ts}


class CollectionRecord(Base):
    __tablename__ = "store_collections"
    __table_args__ = (UniqueConstraint("database_rid", "id"),)

    rid: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_rid)
    id: Mapped[str] = mapped_column(String(255), nullable=False)
    database_rid: Mapped[str] = mapped_column(
        String(32), ForeignKey("store_databases.rid", ondelete="CASCADE"), index=True, nullable=False
    )
    # Provisioned throughput (request units) the collection was created with.
    offer_throughput: Mapped[int] = mapped_column(Integer, nullable=False, default=400)
    etag: Mapped[str] = mapped_column(String(64), nullable=False, default=new_etag)
    ts: Mapped[int] = mapped_column(Integer, nullable=False, default=now_ts)

    @property
    def self_link(self) -> str:
        return f"dbs/{self.database_rid}/colls/{self.rid}/"

    def to_resource(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "_rid": self.rid,
            "_self": self.self_link,
            "_etag": self.etag,
            "_ts": self.ts,
            "offerThroughput": self.offer_throughput,
        }


class StoredProcedureRecord(Base):
    __tablename__ = "store_stored_procedures"
    __table_args__ = (UniqueConstraint("collection_rid", "id"),)

    rid: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_rid)
    id: Mapped[str] = mapped_column(String(255), nullable=False)
    collection_rid: Mapped[str] = mapped_column(
        String(32), ForeignKey("store_collections.rid", ondelete="CASCADE"), index=True, nullable=False
    )
    database_rid: Mapped[str] = mapped_column(String(32), nullable=False)
    # Name of the registered server-side script (see store.procedures).
    server_script: Mapped[str] = mapped_column(String(255), nullable=False)
    etag: Mapped[str] = mapped_column(String(64), nullable=False, default=new_etag)
    ts: Mapped[int] = mapped_column(Integer, nullable=False, default=now_ts)

    @property
    def self_link(self) -> str:
        return f"dbs/{self.database_rid}/colls/{self.collection_rid}/sprocs/{self.rid}/"

    def to_resource(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "_rid": self.rid,
            "_self": self.self_link,
            "_etag": self.etag,
            "_ts": self.ts,
            "serverScript": self.server_script,
        }


class DocumentRecord(Base):
    __tablename__ = "store_documents"
    __table_args__ = (UniqueConstraint("collection_rid", "id"),)

    rid: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_rid)
    id: Mapped[str] = mapped_column(String(255), nullable=False)
    collection_rid: Mapped[str] = mapped_column(
        String(32), ForeignKey("store_collections.rid", ondelete="CASCADE"), index=True, nullable=False
    )
    database_rid: Mapped[str] = mapped_column(String(32), nullable=False)
    # User document without store metadata.
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    etag: Mapped[str] = mapped_column(String(64), nullable=False, default=new_etag)
    ts: Mapped[int] = mapped_column(Integer, nullable=False, default=now_ts)
    # Seconds after `ts` at which the document expires; None = never.
    ttl: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @property
    def self_link(self) -> str:
        return f"dbs/{self.database_rid}/colls/{self.collection_rid}/docs/{self.rid}/"

    def is_expired(self, at: int | None = None) -> bool:
        if self.ttl is None or self.ttl < 0:
            return False
        return (at if at is not None else now_ts()) >= self.ts + self.ttl

    def to_resource(self) -> dict[str, Any]:
        resource = dict(self.body)
        resource.update(
            {
                "id": self.id,
                "_rid": self.rid,
                "_self": self.self_link,
                "_etag": self.etag,
                "_ts": self.ts,
                "_attachments": "attachments/",
            }
        )
        if self.ttl is not None:
            resource["ttl"] = self.ttl
        return resource
