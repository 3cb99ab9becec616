import time
from typing import Set, Tuple

from imposter import socketio
from imposter.errors import GameError


_scheduled_betting_keys: Set[Tuple[int, int]] = set()


def schedule_betting_timer(app, lobby_id: int, round_id: int) -> None:
    """Close the betting phase of ``round_id`` after BETTING_DURATION_SEC.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (lobby_id, round_id)
    - Runs inline under TESTING, otherwise as a Socket.IO background task
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    key = (lobby_id, round_id)
    if key in _scheduled_betting_keys:
        app.logger.info(f"[timer-skip] lobby={lobby_id} round={round_id} already scheduled")
        return
    _scheduled_betting_keys.add(key)

    duration = int(app.config.get('BETTING_DURATION_SEC', 15))
    if app.config.get('TESTING'):
        duration = 0
    app.logger.info(f"[timer-set] lobby={lobby_id} round={round_id} duration={duration}s")

    def _worker(lid: int, rid: int, delay: int):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0
            while slept < delay:
                step = min(hb, delay - slept)
                time.sleep(step)
                slept += step
                app.logger.info(f"[timer-heartbeat] lobby={lid} round={rid} remaining={max(0, delay - slept)}s")
        elif delay:
            time.sleep(delay)

        from .lifecycle import complete_betting_phase
        with app.app_context():
            _scheduled_betting_keys.discard((lid, rid))
            try:
                result = complete_betting_phase(lid, round_id=rid)
            except GameError as exc:
                app.logger.info(f"[timer-abort] lobby={lid} round={rid}: {exc}")
                return
            app.logger.info(f"[timer-fire] lobby={lid} round={rid} advanced={result['advanced']}")

    if app.config.get('TESTING'):
        _worker(lobby_id, round_id, duration)
    else:
        socketio.start_background_task(_worker, lobby_id, round_id, duration)
