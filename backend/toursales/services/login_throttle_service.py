"""
Login Throttling Service

WHY: Login is delegated to the identity service, which does not throttle.
Failed attempts are recorded here per email, and once too many accumulate
the login endpoint answers 429 until the lockout window passes.

RULES:
- Failures are counted within the lockout window (LOGIN_LOCKOUT_MINUTES)
- Only failures after the most recent successful login count
- Locked once failures >= LOGIN_MAX_FAILED_ATTEMPTS
- Lockout ends LOGIN_LOCKOUT_MINUTES after the most recent failure
"""

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import LoginAttempt
from toursales.time_utils import utcnow


# Defaults when no app config is available
MAX_FAILED_ATTEMPTS = 10
LOCKOUT_MINUTES = 15


def _normalize(identifier: str) -> str:
    return (identifier or "").strip().lower()


def _limits() -> tuple[int, timedelta]:
    config = current_app.config
    max_attempts = int(config.get("LOGIN_MAX_FAILED_ATTEMPTS", MAX_FAILED_ATTEMPTS))
    minutes = int(config.get("LOGIN_LOCKOUT_MINUTES", LOCKOUT_MINUTES))
    return max_attempts, timedelta(minutes=minutes)


def _last_success_at(identifier: str):
    last = db.session.query(LoginAttempt.occurred_at).filter(
        LoginAttempt.identifier == identifier,
        LoginAttempt.success.is_(True),
    ).order_by(LoginAttempt.occurred_at.desc()).first()
    return last[0] if last else None


def _recent_failures_query(identifier: str):
    _, window = _limits()
    cutoff = utcnow() - window
    last_success = _last_success_at(identifier)
    if last_success is not None and last_success > cutoff:
        cutoff = last_success

    return db.session.query(LoginAttempt).filter(
        LoginAttempt.identifier == identifier,
        LoginAttempt.success.is_(False),
        LoginAttempt.occurred_at > cutoff,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    """Failed attempts inside the window and after the last successful login."""
    return _recent_failures_query(_normalize(identifier)).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    identifier = _normalize(identifier)
    max_attempts, window = _limits()

    failures = _recent_failures_query(identifier)
    if failures.count() < max_attempts:
        return False, None

    most_recent = failures.order_by(LoginAttempt.occurred_at.desc()).first()
    lockout_end = most_recent.occurred_at + window
    now = utcnow()
    if now < lockout_end:
        return True, int((lockout_end - now).total_seconds())
    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failed login attempt. Returns the recent failure count."""
    identifier = _normalize(identifier)
    db.session.add(LoginAttempt(
        identifier=identifier,
        success=False,
        reason=reason[:1000] if reason else None,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Record a successful login; earlier failures stop counting."""
    db.session.add(LoginAttempt(
        identifier=_normalize(identifier),
        success=True,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()


def get_lockout_status(identifier: str) -> dict:
    max_attempts, window = _limits()
    is_locked, seconds_remaining = is_account_locked(identifier)
    minutes = int(window.total_seconds() / 60)

    return {
        "locked": is_locked,
        "failed_attempts": get_recent_failed_attempts(identifier),
        "max_attempts": max_attempts,
        "seconds_until_unlock": seconds_remaining,
        "lockout_window_minutes": minutes,
        "lockout_duration_minutes": minutes,
    }


def cleanup_login_attempts(*, retention_days: int = 90) -> int:
    """Delete login attempts older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(LoginAttempt).filter(
        LoginAttempt.occurred_at < cutoff
    ).delete()
    db.session.commit()
    return deleted
