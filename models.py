from sqlalchemy import Column, ForeignKey, Integer, String, Text, DateTime, Table, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from datetime import datetime, timezone
from typing import Optional
DEFAULT_BACKGROUND = "#0079bf"
def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)
class Base(DeclarativeBase):
    pass
board_members_table = Table(
    'board_members',
    Base.metadata,
    Column('board_id', Integer, ForeignKey('boards.id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Index('idx_board_members_board_id', 'board_id'),
    Index('idx_board_members_user_id', 'user_id'),
)
card_assignees_table = Table(
    'card_assignees',
    Base.metadata,
    Column('card_id', Integer, ForeignKey('cards.id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Index('idx_card_assignees_card_id', 'card_id'),
    Index('idx_card_assignees_user_id', 'user_id'),
)
class User(Base):
    __tablename__ = 'users'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
class Board(Base):
    __tablename__ = 'boards'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    background: Mapped[str] = mapped_column(String(32), nullable=False, default=DEFAULT_BACKGROUND)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    owner: Mapped["User"] = relationship("User", foreign_keys=[owner_id])
    members: Mapped[list["User"]] = relationship("User", secondary=board_members_table, order_by=board_members_table.c.user_id)
    def has_member(self, user_id: int) -> bool:
        return any(member.id == user_id for member in self.members)
class List(Base):
    __tablename__ = 'lists'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    board_id: Mapped[int] = mapped_column(Integer, ForeignKey('boards.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    __table_args__ = (Index('idx_lists_board_position', 'board_id', 'position'),)
class Card(Base):
    __tablename__ = 'cards'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    list_id: Mapped[int] = mapped_column(Integer, ForeignKey('lists.id', ondelete='CASCADE'), nullable=False, index=True)
    board_id: Mapped[int] = mapped_column(Integer, ForeignKey('boards.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    assignees: Mapped[list["User"]] = relationship("User", secondary=card_assignees_table, order_by=card_assignees_table.c.user_id)
    labels: Mapped[list["CardLabel"]] = relationship("CardLabel", cascade="all, delete-orphan", passive_deletes=True, order_by="CardLabel.id")
    attachments: Mapped[list["CardAttachment"]] = relationship("CardAttachment", cascade="all, delete-orphan", passive_deletes=True, order_by="CardAttachment.id")
    comments: Mapped[list["Comment"]] = relationship("Comment", cascade="all, delete-orphan", passive_deletes=True, order_by="Comment.id")
    __table_args__ = (Index('idx_cards_list_position', 'list_id', 'position'),)
class CardLabel(Base):
    __tablename__ = 'card_labels'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey('cards.id', ondelete='CASCADE'), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    color: Mapped[str] = mapped_column(String(32), nullable=False)
class CardAttachment(Base):
    __tablename__ = 'card_attachments'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey('cards.id', ondelete='CASCADE'), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
class Comment(Base):
    __tablename__ = 'comments'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey('cards.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    user: Mapped[Optional["User"]] = relationship("User", foreign_keys=[user_id])
