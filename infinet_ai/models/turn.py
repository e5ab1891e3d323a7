from sqlalchemy import Column, DateTime, Integer, String, Text

from infinet_ai.database import Base


class ConversationTurnRecord(Base):
    __tablename__ = "conversation_turns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_key = Column(String(255), nullable=False, index=True)
    role = Column(String(16), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
