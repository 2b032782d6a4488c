from __future__ import annotations
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from peerreview.assessments import create_assessment
from peerreview.db import Base, get_db
from peerreview.main import app
from peerreview.models import Course, Enrollment, User
from peerreview.schemas import AssessmentSpec, Principal, QuestionSpec


@pytest.fixture
def session_factory():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	yield factory
	engine.dispose()


@pytest.fixture
def db(session_factory):
	session = session_factory()
	try:
		yield session
	finally:
		session.close()


@pytest.fixture
def people(db):
	"""A course taught by ``teacher`` with students ann, bob and cat enrolled.

	``dan`` is a student who is not enrolled and ``other_teacher`` owns nothing.
	"""
	users = {
		"teacher": User(id="t1", first_name="Tess", last_name="Teacher", email="t1@example.edu", role="teacher"),
		"other_teacher": User(id="t2", first_name="Otto", last_name="Other", email="t2@example.edu", role="teacher"),
		"ann": User(id="s1", first_name="Ann", last_name="Avery", email="s1@example.edu", role="student"),
		"bob": User(id="s2", first_name="Bob", last_name="Brown", email="s2@example.edu", role="student"),
		"cat": User(id="s3", first_name="Cat", last_name="Cole", email="s3@example.edu", role="student"),
		"dan": User(id="s4", first_name="Dan", last_name="Drake", email="s4@example.edu", role="student"),
	}
	course = Course(id="c1", name="Software Design", number="CSC 4100", section="001", term="Fall")
	db.add_all(list(users.values()) + [course])
	db.flush()
	for key in ("teacher", "ann", "bob", "cat"):
		db.add(Enrollment(course_id=course.id, user_id=users[key].id))
	db.commit()
	principals = {key: Principal(user_id=u.id, role=u.role) for key, u in users.items()}
	return SimpleNamespace(course=course, users=users, **principals)


def likert(text: str = "Rate your teammate", options=("1", "2", "3", "4", "5")) -> QuestionSpec:
	return QuestionSpec(type="likert", text=text, options=list(options))


def make_spec(**overrides) -> AssessmentSpec:
	now = datetime(2026, 9, 1, 12, 0)
	fields = dict(
		name="Sprint 1 review",
		kind="review",
		visibility="public",
		start_time=now,
		end_time=now + timedelta(days=7),
		questions=[likert("Communication"), likert("Code quality")],
	)
	fields.update(overrides)
	return AssessmentSpec(**fields)


@pytest.fixture
def review(db, people):
	return create_assessment(db, people.course.id, people.teacher.user_id, make_spec())


@pytest.fixture
def client(session_factory):
	def _get_db():
		session = session_factory()
		try:
			yield session
		finally:
			session.close()

	app.dependency_overrides[get_db] = _get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def spec_factory():
	return make_spec
