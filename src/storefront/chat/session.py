"""ChatSession aggregate — a support conversation between a user and admins.

The stored message list is the source of truth. Live delivery over
websockets is best effort; a client that reconnects re-reads the history.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront


class ChatStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"


class SenderRole(Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


@storefront.event(part_of="ChatSession")
class ChatMessagePosted:
    __version__ = 1

    session_id: Identifier(required=True)
    message_id: Identifier(required=True)
    sequence: Integer(required=True)
    sender_id: Identifier(required=True)
    sender_role: String(required=True)
    body: Text(required=True)
    sent_at: DateTime(required=True)


@storefront.event(part_of="ChatSession")
class ChatSessionClosed:
    __version__ = 1

    session_id: Identifier(required=True)
    closed_at: DateTime(required=True)


@storefront.entity(part_of="ChatSession")
class ChatMessage:
    sequence: Integer(required=True, min_value=1)
    sender_id: Identifier(required=True)
    sender_role: String(choices=SenderRole, required=True)
    body: Text(required=True)
    sent_at: DateTime()

    def as_dict(self) -> dict:
        return {
            "message_id": str(self.id),
            "sequence": self.sequence,
            "sender_id": str(self.sender_id),
            "sender_role": self.sender_role,
            "body": self.body,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }


@storefront.aggregate
class ChatSession:
    user_id: Identifier(required=True)
    subject: String(max_length=255)
    status: String(choices=ChatStatus, default=ChatStatus.OPEN.value)
    messages: HasMany(ChatMessage)
    created_at: DateTime()
    closed_at: DateTime()

    def can_access(self, user_id, role) -> bool:
        return role == SenderRole.ADMIN.value or str(user_id) == str(self.user_id)

    def history(self, after_sequence=0) -> list[dict]:
        ordered = sorted(self.messages, key=lambda m: m.sequence)
        return [m.as_dict() for m in ordered if m.sequence > after_sequence]

    def post(self, sender_id, sender_role, body):
        if self.status != ChatStatus.OPEN.value:
            raise ValidationError({"status": ["Cannot post to a closed chat session"]})
        if not body or not body.strip():
            raise ValidationError({"body": ["Message cannot be empty"]})
        if not self.can_access(sender_id, sender_role):
            raise ValidationError({"sender_id": ["Not a participant of this chat session"]})

        now = datetime.now(UTC)
        message = ChatMessage(
            sequence=len(self.messages) + 1,
            sender_id=sender_id,
            sender_role=sender_role,
            body=body.strip(),
            sent_at=now,
        )
        self.add_messages(message)

        self.raise_(
            ChatMessagePosted(
                session_id=str(self.id),
                message_id=str(message.id),
                sequence=message.sequence,
                sender_id=str(sender_id),
                sender_role=sender_role,
                body=message.body,
                sent_at=now,
            )
        )
        return message

    def close(self):
        if self.status == ChatStatus.CLOSED.value:
            raise ValidationError({"status": ["Chat session is already closed"]})

        now = datetime.now(UTC)
        self.status = ChatStatus.CLOSED.value
        self.closed_at = now
        self.raise_(ChatSessionClosed(session_id=str(self.id), closed_at=now))


@storefront.command(part_of="ChatSession")
class OpenChatSession:
    user_id: Identifier(required=True)
    subject: String(max_length=255)


@storefront.command(part_of="ChatSession")
class PostChatMessage:
    session_id: Identifier(required=True)
    sender_id: Identifier(required=True)
    sender_role: String(required=True, max_length=20)
    body: Text(required=True)


@storefront.command(part_of="ChatSession")
class CloseChatSession:
    session_id: Identifier(required=True)


@storefront.command_handler(part_of=ChatSession)
class ChatSessionHandler:
    @handle(OpenChatSession)
    def open_session(self, command):
        session = ChatSession(user_id=command.user_id, subject=command.subject, created_at=datetime.now(UTC))
        current_domain.repository_for(ChatSession).add(session)
        return str(session.id)

    @handle(PostChatMessage)
    def post_message(self, command):
        repo = current_domain.repository_for(ChatSession)
        session = repo.get(command.session_id)
        message = session.post(command.sender_id, command.sender_role, command.body)
        repo.add(session)
        return message.as_dict()

    @handle(CloseChatSession)
    def close_session(self, command):
        repo = current_domain.repository_for(ChatSession)
        session = repo.get(command.session_id)
        session.close()
        repo.add(session)
