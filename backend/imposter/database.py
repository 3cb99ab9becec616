"""Transaction and row-locking helpers for the round engine.

Every public game operation is wrapped in ``@transactional`` so that all of
its writes (vote + bet, removal + turn adjustment + forfeits, tally + payouts)
commit together or not at all.
"""
from functools import wraps
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from imposter import db
from imposter.errors import GameError, ConcurrentUpdate, LobbyNotFound
from imposter.events import Outbox
from imposter.models import Lobby, Round, RoundStatus


def transactional(func):
    """Run ``func`` in one transaction and publish its events after commit.

    The wrapped function receives a fresh ``Outbox`` as its first argument;
    callers do not pass it. On any exception the session is rolled back and
    the exception re-raised, and staged events are discarded. A lost
    optimistic version check surfaces as ``ConcurrentUpdate``.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        outbox = Outbox()
        try:
            result = func(outbox, *args, **kwargs)
            db.session.commit()
        except StaleDataError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[tx-stale] {func.__name__}: {exc}")
            raise ConcurrentUpdate() from exc
        except GameError as exc:
            db.session.rollback()
            current_app.logger.info(f"[tx-rejected] {func.__name__}: {exc}")
            raise
        except Exception:
            db.session.rollback()
            current_app.logger.error(f"[tx-failed] {func.__name__}", exc_info=True)
            raise
        outbox.flush()
        return result

    return wrapper


def flush_unique(instance, error: GameError):
    """Insert ``instance`` now, turning a unique-constraint race into ``error``."""
    db.session.add(instance)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise error from exc
    return instance


def lock_lobby(lobby_id) -> Lobby:
    """Fetch a lobby with a row lock (SELECT ... FOR UPDATE)."""
    lobby = db.session.query(Lobby).filter(Lobby.id == lobby_id).with_for_update().first()
    if not lobby:
        raise LobbyNotFound(lobby_id)
    return lobby


def lock_active_round(lobby_id):
    """Fetch the lobby's unfinished round with a row lock, or None."""
    return (
        db.session.query(Round)
        .filter(Round.lobby_id == lobby_id, Round.status != RoundStatus.COMPLETE)
        .with_for_update()
        .first()
    )


def latest_round(lobby_id):
    return (
        db.session.query(Round)
        .filter(Round.lobby_id == lobby_id)
        .order_by(Round.round_number.desc())
        .first()
    )
