"""Service for messenger_chat_connections rows."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.constants.messengers import MessengerType
from app.models.chat_connection import ChatConnection
from app.models.mixins import utcnow


class ChatConnectionService:
    """Lookups and idempotent upserts keyed by (messenger_type, messenger_chat_id)."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _key_query(self, messenger_type: MessengerType, chat_id: str) -> Query:
        return self.db.query(ChatConnection).filter(
            ChatConnection.messenger_type == MessengerType(messenger_type).value,
            ChatConnection.messenger_chat_id == str(chat_id),
        )

    def get_active(
        self, messenger_type: MessengerType, chat_id: str
    ) -> Optional[ChatConnection]:
        """Most recently updated active row for the key."""
        return (
            self._key_query(messenger_type, chat_id)
            .filter(ChatConnection.is_active.is_(True))
            .order_by(ChatConnection.updated_at.desc())
            .first()
        )

    def get(self, messenger_type: MessengerType, chat_id: str) -> Optional[ChatConnection]:
        return self._key_query(messenger_type, chat_id).first()

    def upsert(
        self,
        messenger_type: MessengerType,
        chat_id: str,
        domain: str,
        connector_id: Optional[str],
        counterpart_id: Optional[str] = None,
        counterpart_name: Optional[str] = None,
        profile_id: Optional[UUID] = None,
    ) -> ChatConnection:
        """Insert or overwrite the binding; the last writer's metadata wins."""
        values = dict(
            domain=domain,
            connector_id=connector_id,
            counterpart_id=counterpart_id,
            counterpart_name=counterpart_name,
            is_active=True,
            updated_at=utcnow(),
        )
        if profile_id is not None:
            values["profile_id"] = profile_id

        connection = self.get(messenger_type, chat_id)
        if connection is None:
            connection = ChatConnection(
                messenger_type=MessengerType(messenger_type).value,
                messenger_chat_id=str(chat_id),
                **values,
            )
            self.db.add(connection)
            try:
                self.db.commit()
            except IntegrityError:
                # a concurrent request inserted the same key first
                self.db.rollback()
                connection = self.get(messenger_type, chat_id)
                if connection is None:
                    raise
                return self._apply(connection, values)
            self.db.refresh(connection)
            return connection
        return self._apply(connection, values)

    def _apply(self, connection: ChatConnection, values: dict) -> ChatConnection:
        for key, value in values.items():
            setattr(connection, key, value)
        self.db.commit()
        self.db.refresh(connection)
        return connection

    def touch(
        self,
        connection: ChatConnection,
        counterpart_id: Optional[str] = None,
        counterpart_name: Optional[str] = None,
        profile_id: Optional[UUID] = None,
    ) -> ChatConnection:
        """Refresh counterpart metadata and the timestamp of an active binding."""
        values: dict = {"updated_at": utcnow(), "is_active": True}
        if counterpart_id:
            values["counterpart_id"] = counterpart_id
        if counterpart_name:
            values["counterpart_name"] = counterpart_name
        if profile_id is not None and connection.profile_id is None:
            values["profile_id"] = profile_id
        return self._apply(connection, values)

    def deactivate(self, messenger_type: MessengerType, chat_id: str) -> bool:
        updated = (
            self._key_query(messenger_type, chat_id)
            .filter(ChatConnection.is_active.is_(True))
            .update({"is_active": False, "updated_at": utcnow()}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated > 0

    def deactivate_for_profile(self, profile_id: UUID) -> int:
        updated = (
            self.db.query(ChatConnection)
            .filter(
                ChatConnection.profile_id == profile_id,
                ChatConnection.is_active.is_(True),
            )
            .update({"is_active": False, "updated_at": utcnow()}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated

    def deactivate_for_domain(
        self, domain: str, messenger_type: Optional[MessengerType] = None
    ) -> int:
        query = self.db.query(ChatConnection).filter(
            ChatConnection.domain == domain,
            ChatConnection.is_active.is_(True),
        )
        if messenger_type is not None:
            query = query.filter(
                ChatConnection.messenger_type == MessengerType(messenger_type).value
            )
        updated = query.update(
            {"is_active": False, "updated_at": utcnow()}, synchronize_session="fetch"
        )
        self.db.commit()
        return updated

    def get_connections_query(
        self,
        domain: Optional[str] = None,
        messenger_type: Optional[MessengerType] = None,
        active_only: bool = True,
    ) -> Query[ChatConnection]:
        """Query for connections (for pagination)."""
        query = self.db.query(ChatConnection)
        if domain:
            query = query.filter(ChatConnection.domain == domain)
        if messenger_type:
            query = query.filter(
                ChatConnection.messenger_type == MessengerType(messenger_type).value
            )
        if active_only:
            query = query.filter(ChatConnection.is_active.is_(True))
        return query.order_by(ChatConnection.updated_at.desc())
