"""Database operations for sweat records."""
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from errors import ClientInputError, PersistenceError
from models import Sweat
from schemas import SweatCreate

logger = logging.getLogger(__name__)

# The only fields a partial update may touch; numeric stats are fixed at creation
UPDATABLE_FIELDS = frozenset({"milo", "potat", "aballs", "zoiv", "urchin_tag"})
UPDATABLE_FLAGS = frozenset({"milo", "potat", "aballs", "zoiv"})


def today_utc() -> str:
    """Today's date as YYYY-MM-DD (UTC)."""
    return datetime.now(UTC).date().isoformat()


def _parse_id(sweat_id: Any) -> int | None:
    try:
        return int(sweat_id)
    except (TypeError, ValueError):
        return None


def list_sweats(session: Session) -> list[Sweat]:
    """All records, newest first."""
    try:
        statement = select(Sweat).order_by(col(Sweat.created_at).desc(), col(Sweat.id).desc())
        return list(session.exec(statement).all())
    except SQLAlchemyError as e:
        logger.error(f"Error listing sweats: {str(e)}")
        raise PersistenceError("DB read error") from e


def create_sweat(session: Session, payload: SweatCreate, urchin_tag: str | None = None) -> Sweat:
    """Persist a new record and return it with its generated id.

    Raises:
        ClientInputError: username missing or blank; nothing is written.
            A non-blank username is stored exactly as sent.
        PersistenceError: the store rejected the write.
    """
    username = payload.username or ""
    if not username.strip():
        raise ClientInputError("username required")

    sweat = Sweat(
        username=username,
        uuid=payload.uuid,
        star=payload.star,
        fkdr=payload.fkdr,
        wlr=payload.wlr,
        bblr=payload.bblr,
        kdr=payload.kdr,
        finals=payload.finals,
        final_deaths=payload.final_deaths,
        beds=payload.beds,
        beds_lost=payload.beds_lost,
        kills=payload.kills,
        deaths=payload.deaths,
        milo=bool(payload.milo),
        potat=bool(payload.potat),
        aballs=bool(payload.aballs),
        zoiv=bool(payload.zoiv),
        cheating=bool(payload.cheating),
        date_added=payload.date_added or today_utc(),
        urchin_tag=urchin_tag,
    )

    try:
        session.add(sweat)
        session.commit()
        session.refresh(sweat)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating sweat for {username}: {str(e)}")
        raise PersistenceError("DB write error") from e

    logger.info(f"Created sweat {sweat.id} for {sweat.username}")
    return sweat


def delete_sweat(session: Session, sweat_id: Any) -> int | None:
    """Delete by id. Returns the deleted id, or None when there is no such record."""
    parsed_id = _parse_id(sweat_id)
    if parsed_id is None:
        return None

    try:
        sweat = session.get(Sweat, parsed_id)
        if not sweat:
            return None
        session.delete(sweat)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting sweat {parsed_id}: {str(e)}")
        raise PersistenceError("DB delete error") from e

    logger.info(f"Deleted sweat {parsed_id}")
    return parsed_id


def update_sweat(session: Session, sweat_id: Any, updates: Mapping[str, Any]) -> Sweat | None:
    """Apply the allow-listed fields in `updates`; everything else is ignored.

    Returns the updated record, or None when there is no such record.
    """
    parsed_id = _parse_id(sweat_id)
    if parsed_id is None:
        return None

    changes = {}
    for key, value in updates.items():
        if key not in UPDATABLE_FIELDS:
            continue
        changes[key] = bool(value) if key in UPDATABLE_FLAGS else value

    try:
        sweat = session.get(Sweat, parsed_id)
        if not sweat:
            return None
        for key, value in changes.items():
            setattr(sweat, key, value)
        if changes:
            session.add(sweat)
            session.commit()
            session.refresh(sweat)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error updating sweat {parsed_id}: {str(e)}")
        raise PersistenceError("DB update error") from e

    logger.info(f"Updated sweat {parsed_id}: {sorted(changes)}")
    return sweat
