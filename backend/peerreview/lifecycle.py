from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from .db import transaction
from .models import Assessment, AuthSession, utcnow
from .settings import settings


logger = logging.getLogger(__name__)


def advance_statuses(db: Session, now: Optional[datetime] = None) -> int:
	"""Open assessments whose start has passed and close those whose end has.

	Returns the number of assessments moved.
	"""
	now = now or utcnow()
	moved = 0
	with transaction(db):
		# Close first so an assessment past both times goes straight to closed
		res = db.execute(
			update(Assessment)
			.where(Assessment.status.in_(("pending", "open")), Assessment.end_time <= now)
			.values(status="closed")
		)
		moved += res.rowcount or 0
		res = db.execute(
			update(Assessment)
			.where(Assessment.status == "pending", Assessment.start_time <= now)
			.values(status="open")
		)
		moved += res.rowcount or 0
	if moved:
		logger.info("status sweep moved %d assessments", moved)
	return moved


def expire_idle_sessions(db: Session, now: Optional[datetime] = None, idle_minutes: Optional[int] = None) -> int:
	minutes = settings.session_idle_minutes if idle_minutes is None else idle_minutes
	if minutes <= 0:
		return 0
	threshold = (now or utcnow()) - timedelta(minutes=minutes)
	with transaction(db):
		res = db.execute(
			update(AuthSession)
			.where(AuthSession.status == "active", AuthSession.last_activity_at < threshold)
			.values(status="expired")
		)
	expired = res.rowcount or 0
	if expired:
		logger.info("expired %d idle sessions", expired)
	return expired
