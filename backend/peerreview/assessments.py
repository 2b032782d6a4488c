"""Assessment definitions: validation, atomic creation and status changes."""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from .db import transaction
from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .models import Assessment, Course, Question, Response
from .schemas import (
	ASSESSMENT_KINDS,
	OPTION_TYPES,
	QUESTION_TYPES,
	STATUSES,
	VISIBILITIES,
	AssessmentOut,
	AssessmentSpec,
	AssessmentSummary,
	Principal,
)


logger = logging.getLogger(__name__)

# Forward moves of the status machine. pending -> closed cancels an
# assessment that never opened.
ALLOWED_TRANSITIONS: Dict[str, tuple] = {
	"pending": ("open", "closed"),
	"open": ("closed",),
	"closed": (),
}


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
	if value is None or value.tzinfo is None:
		return value
	return value.astimezone(timezone.utc).replace(tzinfo=None)


_DATETIME = TypeAdapter(datetime)


def _parse_time(value: Any) -> Optional[datetime]:
	"""Coerce an ISO string or datetime to naive UTC; ValueError when it is neither."""
	if value is None or value == "":
		return None
	try:
		parsed = _DATETIME.validate_python(value)
	except PydanticValidationError as exc:
		raise ValueError(f"not a valid datetime: {value!r}") from exc
	return _naive_utc(parsed)


def validate_assessment_spec(spec: AssessmentSpec) -> List[Dict[str, str]]:
	"""Return every violation in ``spec`` as ``{field, message}`` pairs."""
	errors: List[Dict[str, str]] = []

	def fail(field: str, message: str) -> None:
		errors.append({"field": field, "message": message})

	if not (spec.name or "").strip():
		fail("name", "name is required")
	if spec.kind not in ASSESSMENT_KINDS:
		fail("kind", f"kind must be one of {list(ASSESSMENT_KINDS)}")
	if spec.visibility not in VISIBILITIES:
		fail("visibility", f"visibility must be one of {list(VISIBILITIES)}")

	def time_field(field: str, label: str) -> Optional[datetime]:
		try:
			value = _parse_time(getattr(spec, field))
		except ValueError:
			fail(field, f"{label} is not a valid datetime")
			return None
		if value is None:
			fail(field, f"{label} is required")
		return value

	start = time_field("start_time", "start time")
	end = time_field("end_time", "end time")
	if start is not None and end is not None and start >= end:
		fail("end_time", "end time must be after start time")

	if not spec.questions:
		fail("questions", "at least one question is required")
	for index, question in enumerate(spec.questions):
		prefix = f"questions[{index}]"
		if question.type not in QUESTION_TYPES:
			fail(f"{prefix}.type", f"type must be one of {list(QUESTION_TYPES)}")
		if not (question.text or "").strip():
			fail(f"{prefix}.text", "question text is required")
		if question.type in OPTION_TYPES:
			if not question.options:
				fail(f"{prefix}.options", f"{question.type} questions need at least one option")
			elif any(not (opt or "").strip() for opt in question.options):
				fail(f"{prefix}.options", "options must not be blank")
	return errors


def create_assessment(db: Session, course_id: str, owner_id: str, spec: AssessmentSpec) -> AssessmentOut:
	errors = validate_assessment_spec(spec)
	if errors:
		raise ValidationError(errors)
	if db.get(Course, course_id) is None:
		raise NotFoundError(f"course {course_id} not found")

	with transaction(db):
		assessment = Assessment(
			course_id=course_id,
			owner_id=owner_id,
			name=spec.name.strip(),
			kind=spec.kind,
			visibility=spec.visibility,
			status="pending",
			start_time=_parse_time(spec.start_time),
			end_time=_parse_time(spec.end_time),
		)
		for position, q in enumerate(spec.questions):
			assessment.questions.append(
				Question(
					position=position,
					type=q.type,
					text=q.text.strip(),
					options=[opt.strip() for opt in q.options] if q.type in OPTION_TYPES else [],
					helper_text=q.helper_text,
				)
			)
		db.add(assessment)
		db.flush()
		out = AssessmentOut.model_validate(assessment)
	logger.info("assessment %s created in course %s with %d questions", out.id, course_id, len(out.questions))
	return out


def _load(db: Session, assessment_id: str) -> Assessment:
	row = db.get(Assessment, assessment_id, options=[selectinload(Assessment.questions)])
	if row is None:
		raise NotFoundError(f"assessment {assessment_id} not found")
	return row


def get_assessment(db: Session, assessment_id: str) -> AssessmentOut:
	return AssessmentOut.model_validate(_load(db, assessment_id))


def _require_owner(principal: Principal, assessment: Assessment) -> None:
	if not principal.is_teacher or principal.user_id != assessment.owner_id:
		raise PermissionDeniedError("only the owning instructor can change this assessment")


def set_status(db: Session, principal: Principal, assessment_id: str, status: str) -> AssessmentOut:
	assessment = _load(db, assessment_id)
	_require_owner(principal, assessment)
	if status not in STATUSES:
		raise ValidationError([{"field": "status", "message": f"status must be one of {list(STATUSES)}"}])
	if status not in ALLOWED_TRANSITIONS[assessment.status]:
		raise ValidationError([{"field": "status", "message": f"cannot move from {assessment.status} to {status}"}])
	previous = assessment.status
	with transaction(db):
		assessment.status = status
	logger.info("assessment %s status %s -> %s", assessment_id, previous, status)
	return AssessmentOut.model_validate(assessment)


def delete_assessment(db: Session, principal: Principal, assessment_id: str) -> None:
	assessment = _load(db, assessment_id)
	_require_owner(principal, assessment)
	with transaction(db):
		db.delete(assessment)
	logger.info("assessment %s deleted", assessment_id)


def list_owned_assessments(db: Session, owner_id: str) -> List[AssessmentSummary]:
	counts = (
		select(Response.assessment_id, func.count(Response.id).label("n"))
		.group_by(Response.assessment_id)
		.subquery()
	)
	stmt = (
		select(Assessment, Course.name, Course.number, func.coalesce(counts.c.n, 0))
		.join(Course, Course.id == Assessment.course_id)
		.outerjoin(counts, counts.c.assessment_id == Assessment.id)
		.where(Assessment.owner_id == owner_id)
		.order_by(Assessment.end_time.desc())
	)
	return [
		AssessmentSummary(
			id=a.id,
			name=a.name,
			kind=a.kind,
			status=a.status,
			visibility=a.visibility,
			start_time=a.start_time,
			end_time=a.end_time,
			course_name=course_name,
			course_number=course_number,
			response_count=n,
		)
		for a, course_name, course_number, n in db.execute(stmt).all()
	]
