import json
import logging

from .database import get_db, FEEDBACK_SESSION_KEY
from .records import FeedbackSessionStatus
from feedback_portal.config import DEFAULT_ROUND, FEEDBACK_ROUNDS
from feedback_portal.exceptions import ValidationError
from feedback_portal.utils import to_bool

logger = logging.getLogger(__name__)


class ConfigStore:
    """Key/value settings persisted as JSON in the config table."""

    def get(self, key):
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT value FROM config WHERE key = ?', (key,))
            row = cursor.fetchone()
            return json.loads(row['value']) if row else None

    def upsert(self, key, value):
        with get_db() as conn:
            conn.execute('''
                INSERT INTO config (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            ''', (key, json.dumps(value)))


class FeedbackSession:
    """The admin-controlled feedback session toggle (active flag + round)."""

    def __init__(self, config_store=None):
        self.config_store = config_store or ConfigStore()

    def status(self):
        value = self.config_store.get(FEEDBACK_SESSION_KEY)
        if value is None:
            value = {'isActive': False, 'activeRound': DEFAULT_ROUND}
            self.config_store.upsert(FEEDBACK_SESSION_KEY, value)
        elif isinstance(value, bool):
            # Older deployments stored a bare boolean
            value = {'isActive': value, 'activeRound': DEFAULT_ROUND}
            self.config_store.upsert(FEEDBACK_SESSION_KEY, value)
            logger.info("Migrated boolean feedback session flag to round-aware value")

        return FeedbackSessionStatus(
            is_active=bool(value.get('isActive', False)),
            active_round=str(value.get('activeRound') or DEFAULT_ROUND),
        )

    def toggle(self, is_active=None, active_round=None):
        """Overwrite the session state. Last write wins."""
        active_round = str(active_round) if active_round else DEFAULT_ROUND
        if active_round not in FEEDBACK_ROUNDS:
            raise ValidationError(
                f"Feedback round must be one of: {', '.join(FEEDBACK_ROUNDS)}",
                field='activeRound',
            )
        status = FeedbackSessionStatus(is_active=to_bool(is_active), active_round=active_round)
        self.config_store.upsert(FEEDBACK_SESSION_KEY, status.to_dict())
        logger.info(
            f"Feedback session updated: {'Active' if status.is_active else 'Inactive'} "
            f"(Round {status.active_round})"
        )
        return status
