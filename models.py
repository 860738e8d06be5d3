from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from database import Base

DEFAULT_TITLE = "Doctor–Patient Session"

class Conversation(Base):
    __tablename__ = "conversations"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, default=DEFAULT_TITLE)
    created_at = Column(DateTime, server_default=func.now())
    messages = relationship("Message", back_populates="conversation")

class Message(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), index=True)
    role = Column(String)
    source_language = Column(String)
    target_language = Column(String)
    text = Column(Text, default="")
    translated_text = Column(Text, default="")
    audio_path = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    conversation = relationship("Conversation", back_populates="messages")
