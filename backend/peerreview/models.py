from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Date, Integer, Text, ForeignKey, Index, JSON, func
from sqlalchemy.orm import relationship
from .db import Base


def _new_id() -> str:
	return str(uuid.uuid4())


def utcnow() -> datetime:
	# Stored naive, always UTC
	return datetime.now(timezone.utc).replace(tzinfo=None)


# Users, courses and enrollments are owned by the account/course side of the
# application; the review core only reads them.
class User(Base):
	__tablename__ = "users"
	id = Column(String(64), primary_key=True, default=_new_id)
	first_name = Column(String(128), nullable=False)
	last_name = Column(String(128), nullable=False)
	email = Column(String(256), nullable=False, unique=True)
	role = Column(String(16), nullable=False)  # "student" | "teacher"
	created_at = Column(DateTime, default=utcnow, nullable=False)


class Course(Base):
	__tablename__ = "courses"
	id = Column(String(64), primary_key=True, default=_new_id)
	name = Column(String(256), nullable=False)
	number = Column(String(64), nullable=False)
	section = Column(String(64), nullable=False, default="")
	term = Column(String(64), nullable=False, default="")
	start_date = Column(Date, nullable=True)
	end_date = Column(Date, nullable=True)


class Enrollment(Base):
	__tablename__ = "enrollments"
	course_id = Column(String(64), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
	user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


class Assessment(Base):
	__tablename__ = "assessments"
	id = Column(String(64), primary_key=True, default=_new_id)
	course_id = Column(String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
	owner_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	name = Column(String(256), nullable=False)
	kind = Column(String(16), nullable=False)  # quiz | survey | review
	visibility = Column(String(16), nullable=False, default="private")
	status = Column(String(16), nullable=False, default="pending")
	start_time = Column(DateTime, nullable=False)
	end_time = Column(DateTime, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)

	questions = relationship(
		"Question",
		back_populates="assessment",
		order_by="Question.position",
		cascade="all, delete-orphan",
		passive_deletes=True,
	)
	responses = relationship(
		"Response",
		back_populates="assessment",
		cascade="all, delete-orphan",
		passive_deletes=True,
	)


class Question(Base):
	__tablename__ = "questions"
	id = Column(String(64), primary_key=True, default=_new_id)
	assessment_id = Column(String(64), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
	position = Column(Integer, nullable=False, default=0)
	type = Column(String(32), nullable=False)  # likert | multiple_choice | short_answer
	text = Column(Text, nullable=False)
	options = Column(JSON, nullable=False, default=list)
	helper_text = Column(Text, nullable=True)

	assessment = relationship("Assessment", back_populates="questions")


class Response(Base):
	__tablename__ = "responses"
	id = Column(String(64), primary_key=True, default=_new_id)
	assessment_id = Column(String(64), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
	question_id = Column(String(64), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
	author_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	# Reviews about a user are deleted with the user, never re-pointed at NULL
	target_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
	text = Column(Text, nullable=False)
	visibility = Column(String(16), nullable=False, default="private")
	created_at = Column(DateTime, default=utcnow, nullable=False)

	assessment = relationship("Assessment", back_populates="responses")

	# NULL targets compare unequal in a plain unique constraint, so the slot
	# key coalesces them to one value.
	__table_args__ = (
		Index(
			"uq_response_slot",
			"question_id",
			"author_id",
			func.coalesce(target_id, ""),
			unique=True,
		),
	)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True, index=True)
	user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	status = Column(String(16), nullable=False, default="active")  # active | expired | revoked
	started_at = Column(DateTime, default=utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=utcnow, nullable=False)
