from __future__ import annotations
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .db import transaction
from .errors import (
	AssessmentClosedError,
	DuplicateResponseError,
	InvalidTargetError,
	NotFoundError,
	PermissionDeniedError,
	QuestionMismatchError,
	ValidationError,
)
from .models import Assessment, Enrollment, Question, Response
from .schemas import VISIBILITIES, Principal, ResponseOut
from .visibility import visible_to


logger = logging.getLogger(__name__)

ACCEPTING_STATUSES = ("pending", "open")
# Only review assessments are about somebody else
PEER_REVIEW_KINDS = ("review",)


def _is_enrolled(db: Session, course_id: str, user_id: str) -> bool:
	return db.get(Enrollment, (course_id, user_id)) is not None


def _slot_taken(db: Session, question_id: str, author_id: str, target_id: Optional[str]) -> bool:
	stmt = select(Response.id).where(Response.question_id == question_id, Response.author_id == author_id)
	if target_id is None:
		stmt = stmt.where(Response.target_id.is_(None))
	else:
		stmt = stmt.where(Response.target_id == target_id)
	return db.execute(stmt.limit(1)).first() is not None


def submit_response(
	db: Session,
	principal: Principal,
	assessment_id: str,
	question_id: str,
	target_id: Optional[str],
	text: str,
	visibility: str,
) -> ResponseOut:
	text = (text or "").strip()
	target_id = target_id or None
	errors: List[Dict[str, str]] = []
	if not text:
		errors.append({"field": "text", "message": "response text is required"})
	if visibility not in VISIBILITIES:
		errors.append({"field": "visibility", "message": f"visibility must be one of {list(VISIBILITIES)}"})
	if errors:
		raise ValidationError(errors)

	assessment = db.get(Assessment, assessment_id)
	if assessment is None:
		raise NotFoundError(f"assessment {assessment_id} not found")
	if assessment.status not in ACCEPTING_STATUSES:
		raise AssessmentClosedError(f"assessment {assessment_id} is {assessment.status}")

	question = db.get(Question, question_id)
	if question is None or question.assessment_id != assessment.id:
		raise QuestionMismatchError(f"question {question_id} is not part of assessment {assessment_id}")

	is_owner = principal.user_id == assessment.owner_id
	if not is_owner and not _is_enrolled(db, assessment.course_id, principal.user_id):
		raise PermissionDeniedError("only members of the course can respond")

	if target_id is not None:
		if assessment.kind not in PEER_REVIEW_KINDS:
			raise InvalidTargetError(f"{assessment.kind} assessments do not take a target")
		if target_id == principal.user_id:
			raise InvalidTargetError("a self review has no target")
		if not _is_enrolled(db, assessment.course_id, target_id):
			raise InvalidTargetError(f"user {target_id} is not enrolled in this course")

	if _slot_taken(db, question_id, principal.user_id, target_id):
		logger.warning("duplicate response rejected for question %s by %s", question_id, principal.user_id)
		raise DuplicateResponseError()

	row = Response(
		assessment_id=assessment.id,
		question_id=question.id,
		author_id=principal.user_id,
		target_id=target_id,
		text=text,
		visibility=visibility,
	)
	with transaction(db):
		db.add(row)
		try:
			db.flush()
		except IntegrityError as exc:
			# Lost a race with an identical submission
			logger.warning("duplicate response rejected at insert for question %s by %s", question_id, principal.user_id)
			raise DuplicateResponseError() from exc
		out = ResponseOut.model_validate(row)
	logger.info("response %s submitted to assessment %s", out.id, assessment_id)
	return out


def list_responses(db: Session, principal: Principal, assessment_id: str) -> List[ResponseOut]:
	if db.get(Assessment, assessment_id) is None:
		raise NotFoundError(f"assessment {assessment_id} not found")
	rows = (
		db.execute(
			select(Response)
			.options(joinedload(Response.assessment))
			.where(Response.assessment_id == assessment_id)
			.order_by(Response.created_at)
		)
		.scalars()
		.all()
	)
	return [ResponseOut.model_validate(r) for r in visible_to(principal, rows)]
