"""
Message Store: creation, lookup and the read-state transition.
"""

import logging
from typing import Tuple

from sqlalchemy.orm import Session

from messagely.errors import BadRequest, NotFound
from messagely.models import Message
from messagely.storage import utc_now
from messagely.users import user_exists

logger = logging.getLogger(__name__)

# Largest id a 64-bit INTEGER primary key can hold
MAX_MESSAGE_ID = 2**63 - 1


def _check_message_id(message_id: int) -> None:
    """Out-of-range ids are NotFound without a query."""
    if not 1 <= message_id <= MAX_MESSAGE_ID:
        raise NotFound(f"No such message: {message_id}")


def create_message(db: Session, from_username: str, to_username: str, body: str) -> Message:
    """
    Persist a new message.

    Args:
        db: Database session
        from_username: Sender, must be a registered user
        to_username: Recipient, must be a registered user
        body: Message text, must not be blank

    Returns:
        The persisted Message with its generated id, read_at unset

    Raises:
        BadRequest: blank body, or sender/recipient does not exist
    """
    logger.info(f"Creating message: from={from_username}, to={to_username}")

    if body is None or not body.strip():
        raise BadRequest("Message body must not be empty")
    if not user_exists(db, from_username):
        raise BadRequest("Sender does not exist")
    if not user_exists(db, to_username):
        raise BadRequest("Recipient does not exist")

    message = Message(
        from_username=from_username,
        to_username=to_username,
        body=body,
        sent_at=utc_now(),
        read_at=None,
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    logger.info(f"Message created: id={message.id}")
    return message


def get_message_parties(db: Session, message_id: int) -> Tuple[str, str]:
    """
    Sender and recipient usernames of a message.

    Raises:
        NotFound: no such message
    """
    _check_message_id(message_id)
    row = (
        db.query(Message.from_username, Message.to_username)
        .filter(Message.id == message_id)
        .first()
    )
    if row is None:
        raise NotFound(f"No such message: {message_id}")
    return row.from_username, row.to_username


def get_message(db: Session, message_id: int) -> dict:
    """
    A single message with both parties expanded.

    Returns:
        {id, body, sent_at, read_at, from_user, to_user} where each user is
        {username, first_name, last_name, phone}

    Raises:
        NotFound: no such message
    """
    _check_message_id(message_id)
    message = db.query(Message).filter(Message.id == message_id).first()
    if message is None:
        raise NotFound(f"No such message: {message_id}")

    return {
        "id": message.id,
        "from_user": message.from_user.public_summary(),
        "to_user": message.to_user.public_summary(),
        "body": message.body,
        "sent_at": message.sent_at,
        "read_at": message.read_at,
    }


def mark_read(db: Session, message_id: int) -> dict:
    """
    Set read_at on an unread message.

    The update is conditional on read_at being null, so of two concurrent
    calls exactly one succeeds and read_at is never overwritten.

    Returns:
        {id, read_at}

    Raises:
        NotFound: no such message
        BadRequest: message was already read
    """
    _check_message_id(message_id)
    read_at = utc_now()
    updated = (
        db.query(Message)
        .filter(Message.id == message_id, Message.read_at.is_(None))
        .update({Message.read_at: read_at}, synchronize_session=False)
    )
    db.commit()

    if updated == 0:
        # Either missing or already read; tell them apart for the caller
        get_message_parties(db, message_id)
        logger.info(f"Message {message_id} already read")
        raise BadRequest("Message already read")

    logger.info(f"Message {message_id} marked read")
    return {"id": message_id, "read_at": read_at}
