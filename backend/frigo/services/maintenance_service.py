# Overview: Service-layer operations for housekeeping of security events and stale sessions.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent, SessionToken
from frigo.time_utils import utcnow


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def purge_expired_sessions(*, grace_days: int = 7) -> int:
    """
    Delete session rows that expired or were revoked more than grace_days ago.

    Recent rows are kept so a logout or timeout can still be investigated.
    """
    cutoff = utcnow() - timedelta(days=grace_days)
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < cutoff,
            db.and_(SessionToken.is_revoked.is_(True), SessionToken.revoked_at < cutoff),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
