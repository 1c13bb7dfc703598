from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker


Base = declarative_base()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True)
    title = Column(Text, nullable=False, default="New Conversation")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class ChatMessage(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(16), nullable=False)  # user, assistant, system
    content = Column(Text, nullable=False)
    model = Column(String(64), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_now)
    session_id = Column(Integer, ForeignKey("chat_sessions.id"), nullable=False, index=True)


class Database:
    """Engine plus session factory for the chat session tables."""

    def __init__(self, url: str):
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_session(self, title: str, user_id: Optional[int] = None) -> ChatSession:
        with self.session_scope() as db:
            row = ChatSession(title=title, user_id=user_id)
            db.add(row)
            db.flush()
            db.refresh(row)
            return row

    def list_sessions(self) -> List[ChatSession]:
        with self.session_scope() as db:
            return list(db.scalars(select(ChatSession).order_by(ChatSession.updated_at)))

    def get_session(self, session_id: int) -> Optional[ChatSession]:
        with self.session_scope() as db:
            return db.get(ChatSession, session_id)

    def get_messages(self, session_id: int) -> List[ChatMessage]:
        with self.session_scope() as db:
            query = (
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.timestamp, ChatMessage.id)
            )
            return list(db.scalars(query))

    def delete_session(self, session_id: int) -> bool:
        """Delete a session and its messages; False when the session does not exist."""
        with self.session_scope() as db:
            db.execute(delete(ChatMessage).where(ChatMessage.session_id == session_id))
            result = db.execute(delete(ChatSession).where(ChatSession.id == session_id))
            return result.rowcount > 0

    def record_exchange(
        self,
        session_id: int,
        model: str,
        assistant_role: str,
        assistant_content: str,
        user_content: Optional[str] = None,
    ) -> None:
        """Store the user turn (if any) and the reply, then advance updatedAt."""
        with self.session_scope() as db:
            if user_content is not None:
                db.add(ChatMessage(role="user", content=user_content, model=model, session_id=session_id))
            db.add(
                ChatMessage(
                    role=assistant_role,
                    content=assistant_content,
                    model=model,
                    session_id=session_id,
                )
            )
            db.execute(
                update(ChatSession).where(ChatSession.id == session_id).values(updated_at=_now())
            )
