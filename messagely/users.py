"""
User Directory: registration, authentication and profile lookups.

Functions take a SQLAlchemy session as their first argument, like the
rest of the storage layer.
"""

import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from messagely.errors import Conflict, NotFound
from messagely.models import Message, User
from messagely.security import hash_password, verify_password
from messagely.storage import utc_now

logger = logging.getLogger(__name__)


def register(
    db: Session,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str,
) -> User:
    """
    Create a new user.

    Args:
        db: Database session
        username: Unique username
        password: Plain text password, stored only as a bcrypt hash
        first_name, last_name, phone: Profile fields

    Returns:
        The persisted User, password hash included; callers redact it.

    Raises:
        Conflict: username already taken
    """
    logger.info(f"Registering user: {username}")

    now = utc_now()
    user = User(
        username=username,
        password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        join_at=now,
        last_login_at=now,
    )

    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Duplicate username rejected: {username}")
        raise Conflict(f"Username already taken: {username}")

    db.refresh(user)
    logger.info(f"User registered: {username}")
    return user


def authenticate(db: Session, username: str, password: str) -> bool:
    """
    Check a username/password pair.

    Unknown usernames and wrong passwords both return False.
    """
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        logger.debug("Authentication failed: unknown user")
        return False

    authenticated = verify_password(password, user.password)
    logger.debug(f"Authentication for {username}: {'ok' if authenticated else 'failed'}")
    return authenticated


def update_login_timestamp(db: Session, username: str) -> str:
    """Set last_login_at to now and return it. Assumes the user exists."""
    now = utc_now()
    db.query(User).filter(User.username == username).update(
        {User.last_login_at: now}, synchronize_session=False
    )
    db.commit()
    return now


def user_exists(db: Session, username: str) -> bool:
    return db.query(User.username).filter(User.username == username).first() is not None


def all_users(db: Session) -> List[dict]:
    """Basic info on all users: [{username, first_name, last_name, phone}, ...]"""
    users = db.query(User).order_by(User.username.asc()).all()
    return [user.public_summary() for user in users]


def get_user(db: Session, username: str) -> dict:
    """
    Full public profile for one user.

    Returns:
        {username, first_name, last_name, phone, join_at, last_login_at}

    Raises:
        NotFound: no such user
    """
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise NotFound(f"No such user: {username}")

    return {
        **user.public_summary(),
        "join_at": user.join_at,
        "last_login_at": user.last_login_at,
    }


def messages_from(db: Session, username: str) -> List[dict]:
    """
    Messages sent by this user.

    Returns:
        [{id, to_user, body, sent_at, read_at}] where to_user is
        {username, first_name, last_name, phone}
    """
    messages = (
        db.query(Message)
        .filter(Message.from_username == username)
        .order_by(Message.id.asc())
        .all()
    )
    return [
        {
            "id": msg.id,
            "to_user": msg.to_user.public_summary(),
            "body": msg.body,
            "sent_at": msg.sent_at,
            "read_at": msg.read_at,
        }
        for msg in messages
    ]


def messages_to(db: Session, username: str) -> List[dict]:
    """
    Messages received by this user.

    Returns:
        [{id, from_user, body, sent_at, read_at}] where from_user is
        {username, first_name, last_name, phone}
    """
    messages = (
        db.query(Message)
        .filter(Message.to_username == username)
        .order_by(Message.id.asc())
        .all()
    )
    return [
        {
            "id": msg.id,
            "from_user": msg.from_user.public_summary(),
            "body": msg.body,
            "sent_at": msg.sent_at,
            "read_at": msg.read_at,
        }
        for msg in messages
    ]
