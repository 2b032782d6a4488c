import asyncio
from datetime import datetime, timedelta

import pytest

from peerreview import main
from peerreview.assessments import get_assessment
from peerreview.lifecycle import advance_statuses, expire_idle_sessions
from peerreview.models import AuthSession


def test_sweep_opens_then_closes(db, people, review):
	assert advance_statuses(db, now=review.start_time - timedelta(minutes=1)) == 0
	assert get_assessment(db, review.id).status == "pending"

	assert advance_statuses(db, now=review.start_time) == 1
	assert get_assessment(db, review.id).status == "open"

	assert advance_statuses(db, now=review.end_time + timedelta(seconds=1)) == 1
	assert get_assessment(db, review.id).status == "closed"

	assert advance_statuses(db, now=review.end_time + timedelta(days=30)) == 0


def test_sweep_closes_pending_past_its_end(db, people, review):
	advance_statuses(db, now=review.end_time + timedelta(hours=1))
	assert get_assessment(db, review.id).status == "closed"


def test_expire_idle_sessions(db, people):
	now = datetime(2026, 10, 1, 12, 0)
	db.add_all([
		AuthSession(session_id="old", user_id=people.ann.user_id, last_activity_at=now - timedelta(hours=3)),
		AuthSession(session_id="fresh", user_id=people.bob.user_id, last_activity_at=now - timedelta(minutes=5)),
		AuthSession(session_id="gone", user_id=people.cat.user_id, status="revoked", last_activity_at=now - timedelta(days=3)),
	])
	db.commit()

	assert expire_idle_sessions(db, now=now, idle_minutes=0) == 0
	assert expire_idle_sessions(db, now=now, idle_minutes=60) == 1
	statuses = {s.session_id: s.status for s in db.query(AuthSession).all()}
	assert statuses == {"old": "expired", "fresh": "active", "gone": "revoked"}


def test_sweep_watcher_logs_and_keeps_running(monkeypatch, caplog):
	calls = []

	def flaky_sweep():
		calls.append(len(calls))
		if len(calls) == 1:
			raise RuntimeError("database is locked")
		raise asyncio.CancelledError()

	async def no_wait(_seconds):
		return None

	monkeypatch.setattr(main, "run_sweep", flaky_sweep)
	monkeypatch.setattr(main.asyncio, "sleep", no_wait)
	with pytest.raises(asyncio.CancelledError):
		asyncio.run(main._sweep_watcher())
	assert len(calls) == 2
	assert "status sweep failed" in caplog.text
