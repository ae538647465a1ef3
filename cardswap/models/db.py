"""
SQLAlchemy ORM models for persistent storage.

Foreign-key cascades are not relied upon: helpers in ``cardswap.db.operations``
delete child rows and null out dangling references explicitly so behaviour is
identical on every backend.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cardswap.models.card import CardSnapshot


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    One catalog printing.

    Keyed by the Scryfall printing id; many printings share an oracle id.
    """

    __tablename__ = "cards"

    scryfall_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    oracle_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    set_code: Mapped[str] = mapped_column(String(16))
    set_name: Mapped[str] = mapped_column(String(255), default="")
    collector_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    image_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_uri_small: Mapped[str | None] = mapped_column(Text, nullable=True)
    prices_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    prices_usd_foil: Mapped[float | None] = mapped_column(Float, nullable=True)
    rarity: Mapped[str | None] = mapped_column(String(32), nullable=True)
    type_line: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mana_cost: Mapped[str | None] = mapped_column(String(64), nullable=True)
    colors: Mapped[list[str]] = mapped_column(JSON, default=list)
    color_identity: Mapped[list[str]] = mapped_column(JSON, default=list)
    cmc: Mapped[float | None] = mapped_column(Float, nullable=True)
    legalities: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    released_at: Mapped[str | None] = mapped_column(String(10), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<CardDB(name={self.name}, set={self.set_code}, id={self.scryfall_id})>"


class CollectionEntryDB(Base):
    """One stack of owned copies of a single printing."""

    __tablename__ = "collection_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    card_id: Mapped[str] = mapped_column(String(64), ForeignKey("cards.scryfall_id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    condition: Mapped[str] = mapped_column(String(3), default="NM")
    foil: Mapped[bool] = mapped_column(Boolean, default=False)

    # Pricing
    price_mode: Mapped[str] = mapped_column(String(16), default="percentage")
    price_percentage: Mapped[float] = mapped_column(Float, default=80.0)
    price_fixed: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_override: Mapped[bool] = mapped_column(Boolean, default=False)

    is_paused: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<CollectionEntryDB(id={self.id}, user={self.user_id}, "
            f"card={self.card_id}, qty={self.quantity})>"
        )


class WishlistEntryDB(Base):
    """A wanted card, identified by oracle id rather than a printing."""

    __tablename__ = "wishlist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    oracle_id: Mapped[str] = mapped_column(String(64), index=True)
    # Printing the user picked when adding the card; informational only
    card_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("cards.scryfall_id"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    max_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_condition: Mapped[str] = mapped_column(String(3), default="LP")
    foil_preference: Mapped[str] = mapped_column(String(16), default="any")
    edition_preference: Mapped[str] = mapped_column(String(16), default="any")
    specific_editions: Mapped[list[str]] = mapped_column(JSON, default=list)
    priority: Mapped[int] = mapped_column(Integer, default=5)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<WishlistEntryDB(id={self.id}, user={self.user_id}, "
            f"oracle={self.oracle_id}, qty={self.quantity})>"
        )


class LocationDB(Base):
    """A user's geo-point. Only the active one takes part in matching."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255), default="Home")
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    radius_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<LocationDB(user={self.user_id}, active={self.is_active})>"


class UserPreferencesDB(Base):
    """Per-user trading preferences."""

    __tablename__ = "user_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    trade_mode: Mapped[str] = mapped_column(String(16), default="both")
    default_price_percentage: Mapped[float] = mapped_column(Float, default=80.0)
    minimum_price: Mapped[float] = mapped_column(Float, default=0.0)
    collection_paused: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<UserPreferencesDB(user={self.user_id}, mode={self.trade_mode})>"


class MatchDB(Base):
    """
    A computed pairing of two users.

    ``user_a_id`` is always the lexicographically lower user id, so an
    unordered pair maps to exactly one row.
    """

    __tablename__ = "matches"
    __table_args__ = (UniqueConstraint("user_a_id", "user_b_id", name="uq_match_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_a_id: Mapped[str] = mapped_column(String(255), index=True)
    user_b_id: Mapped[str] = mapped_column(String(255), index=True)

    # Relative to user_a
    match_type: Mapped[str] = mapped_column(String(16))
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    cards_a_wants_count: Mapped[int] = mapped_column(Integer, default=0)
    cards_b_wants_count: Mapped[int] = mapped_column(Integer, default=0)
    value_a_wants: Mapped[float] = mapped_column(Float, default=0.0)
    value_b_wants: Mapped[float] = mapped_column(Float, default=0.0)
    match_score: Mapped[float] = mapped_column(Float, default=0.0)
    has_price_warnings: Mapped[bool] = mapped_column(Boolean, default=False)
    is_user_modified: Mapped[bool] = mapped_column(Boolean, default=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    requested_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    escrow_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    user_a_completed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    user_b_completed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    has_conflict: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def other_user(self, user_id: str) -> str:
        """The participant that is not ``user_id``."""
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)

    def __repr__(self) -> str:
        return (
            f"<MatchDB(id={self.id}, a={self.user_a_id}, b={self.user_b_id}, "
            f"status={self.status})>"
        )


class MatchCardDB(Base):
    """
    One card line of a match.

    Name, set and image are copied from the catalog when the line is written
    and never refreshed; see ``snapshot``.
    """

    __tablename__ = "match_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), index=True
    )
    direction: Mapped[str] = mapped_column(String(8))

    # Origin (null for custom lines without a wishlist side, or once settled away)
    wishlist_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("wishlist_entries.id", ondelete="SET NULL"), nullable=True
    )
    collection_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("collection_entries.id", ondelete="SET NULL"), nullable=True
    )

    # Catalog snapshot
    card_id: Mapped[str] = mapped_column(String(64))
    card_name: Mapped[str] = mapped_column(String(255))
    card_set_code: Mapped[str] = mapped_column(String(16))
    card_image_uri: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Terms
    asking_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_exceeds_max: Mapped[bool] = mapped_column(Boolean, default=False)
    collection_condition: Mapped[str] = mapped_column(String(3))
    wishlist_min_condition: Mapped[str | None] = mapped_column(String(3), nullable=True)
    is_foil: Mapped[bool] = mapped_column(Boolean, default=False)
    quantity_available: Mapped[int] = mapped_column(Integer, default=1)
    quantity_wanted: Mapped[int] = mapped_column(Integer, default=1)

    # User edits
    is_excluded: Mapped[bool] = mapped_column(Boolean, default=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False)
    added_by_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def snapshot(self) -> CardSnapshot:
        return CardSnapshot(
            card_id=self.card_id,
            name=self.card_name,
            set_code=self.card_set_code,
            image_uri=self.card_image_uri,
        )

    @property
    def traded_quantity(self) -> int:
        """Copies that change hands if this line settles."""
        return min(self.quantity_available, self.quantity_wanted)

    def __repr__(self) -> str:
        return (
            f"<MatchCardDB(id={self.id}, match={self.match_id}, card={self.card_name}, "
            f"dir={self.direction})>"
        )


class NotificationDB(Base):
    """A user-facing notification written by lifecycle transitions."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    type: Mapped[str] = mapped_column(String(32))
    match_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    from_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, default="")
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<NotificationDB(user={self.user_id}, type={self.type})>"


class InventoryEventDB(Base):
    """Outbox row: a user's inventory changed and their matches need recomputing."""

    __tablename__ = "inventory_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    reason: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryEventDB(user={self.user_id}, reason={self.reason}, {self.status})>"


class MatchCommentDB(Base):
    """A message one participant left on a match."""

    __tablename__ = "match_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_edited(self) -> bool:
        return self.updated_at is not None

    def __repr__(self) -> str:
        return f"<MatchCommentDB(id={self.id}, match={self.match_id}, user={self.user_id})>"
