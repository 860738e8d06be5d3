"""Persistence for conversations and their messages.

Rows are append-only: nothing here updates or deletes. Every write commits
before returning, so a row handed back to the caller is already durable.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

import models

SEARCH_LIMIT = 100


class ConversationNotFound(LookupError):
    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class ConversationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_conversation(self, title: Optional[str] = None) -> models.Conversation:
        convo = models.Conversation(title=title or models.DEFAULT_TITLE)
        self.db.add(convo); await self.db.commit(); await self.db.refresh(convo)
        return convo

    async def list_conversations(self) -> list[models.Conversation]:
        result = await self.db.execute(
            select(models.Conversation).order_by(models.Conversation.created_at.desc(), models.Conversation.id.desc())
        )
        return list(result.scalars().all())

    async def require_conversation(self, conversation_id: int) -> models.Conversation:
        convo = await self.db.get(models.Conversation, conversation_id)
        if convo is None:
            raise ConversationNotFound(conversation_id)
        return convo

    async def list_messages(self, conversation_id: int) -> list[models.Message]:
        """Messages of one conversation, oldest first; ties keep insertion order."""
        result = await self.db.execute(
            select(models.Message)
            .where(models.Message.conversation_id == conversation_id)
            .order_by(models.Message.created_at.asc(), models.Message.id.asc())
        )
        return list(result.scalars().all())

    async def get_conversation(self, conversation_id: int) -> tuple[models.Conversation, list[models.Message]]:
        convo = await self.require_conversation(conversation_id)
        return convo, await self.list_messages(conversation_id)

    async def append_message(
        self,
        conversation_id: int,
        role: str,
        source_language: str,
        target_language: str,
        text: str,
        translated_text: str,
        audio_path: Optional[str] = None,
    ) -> models.Message:
        await self.require_conversation(conversation_id)
        message = models.Message(
            conversation_id=conversation_id,
            role=role,
            source_language=source_language,
            target_language=target_language,
            text=text,
            translated_text=translated_text,
            audio_path=audio_path,
        )
        self.db.add(message); await self.db.commit(); await self.db.refresh(message)
        return message

    async def search(self, query: str) -> list[tuple[models.Message, str]]:
        """Case-insensitive substring search over original and translated text.

        Returns ``(message, conversation title)`` pairs, newest first, at most
        ``SEARCH_LIMIT`` of them. A blank query never reaches the database.
        """
        q = (query or "").strip()
        if not q:
            return []
        stmt = (
            select(models.Message, models.Conversation.title)
            .join(models.Conversation, models.Message.conversation_id == models.Conversation.id)
            .where(or_(
                models.Message.text.icontains(q, autoescape=True),
                models.Message.translated_text.icontains(q, autoescape=True),
            ))
            .order_by(models.Message.created_at.desc(), models.Message.id.desc())
            .limit(SEARCH_LIMIT)
        )
        result = await self.db.execute(stmt)
        return [(message, title) for message, title in result.all()]
