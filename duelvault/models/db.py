"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

DECK_NAME_MAX_LENGTH = 100
SHARE_TOKEN_MAX_LENGTH = 64


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    Cached card metadata from the external metadata source.

    The primary key is the metadata source's card id.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), index=True)
    type_line: Mapped[str] = mapped_column(String(100))
    frame_type: Mapped[str] = mapped_column(String(50), default="")

    # Ruleset -> banlist status value, e.g. {"tcg": "limited"}
    banlist: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, name={self.name})>"


class OwnedEditionDB(Base):
    """
    One owned printing in a user's collection.

    Tracks how many copies of a specific edition a user owns.
    """

    __tablename__ = "owned_editions"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "card_id", "set_code", "rarity", "language", name="uq_user_edition"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id"), index=True)
    set_code: Mapped[str] = mapped_column(String(50))
    rarity: Mapped[str] = mapped_column(String(50))
    language: Mapped[str] = mapped_column(String(5), default="EN")
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    card: Mapped["CardDB"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<OwnedEditionDB(user={self.user_id}, card={self.card_id}, "
            f"set={self.set_code}, qty={self.quantity})>"
        )


class DeckDB(Base):
    """A user's constructed deck."""

    __tablename__ = "decks"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(DECK_NAME_MAX_LENGTH), index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    respect_banlist: Mapped[bool] = mapped_column(Boolean, default=True)
    ruleset: Mapped[str] = mapped_column(String(10), default="tcg")

    # Guest read access; NULL while the deck is not shared
    share_token: Mapped[str | None] = mapped_column(
        String(SHARE_TOKEN_MAX_LENGTH), unique=True, index=True, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    cards: Mapped[list["DeckCardDB"]] = relationship(
        back_populates="deck",
        cascade="all, delete-orphan",
        order_by="DeckCardDB.position",
    )

    def __repr__(self) -> str:
        return f"<DeckDB(id={self.id}, name={self.name})>"


class DeckCardDB(Base):
    """
    One deck entry.

    Edition columns are all NULL for card-level entries. A reprint's edition
    carries its own card id, so it is stored apart from the entry's card.
    """

    __tablename__ = "deck_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    entry_id: Mapped[int] = mapped_column(Integer)
    position: Mapped[int] = mapped_column(Integer, default=0)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id"))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    is_extra_deck: Mapped[bool] = mapped_column(Boolean, default=False)

    edition_card_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    set_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rarity: Mapped[str | None] = mapped_column(String(50), nullable=True)
    language: Mapped[str | None] = mapped_column(String(5), nullable=True)

    deck: Mapped["DeckDB"] = relationship(back_populates="cards")
    card: Mapped["CardDB"] = relationship()

    def __repr__(self) -> str:
        return f"<DeckCardDB(deck={self.deck_id}, card={self.card_id}, qty={self.quantity})>"
