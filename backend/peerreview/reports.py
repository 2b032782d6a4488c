"""Score aggregation over visible responses.

Scores are computed on read from the stored response text. A response counts
only when its text is a plain decimal number; anything else is left out of the
mean rather than treated as zero. With a scale ``(low, high)`` every counted
value is mapped linearly onto 0-100 and values outside the scale are left out.
"""
from __future__ import annotations
import logging
import math
import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .models import Assessment, Course, Enrollment, Response, User
from .schemas import AssessmentAverage, Principal, StudentAverage
from .visibility import visible_to


logger = logging.getLogger(__name__)

SCOPES = ("course", "assessment")
BASES = ("authored", "received")
SORT_KEYS = ("name", "average")
ORDERS = ("asc", "desc")

Scale = Tuple[float, float]

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def parse_score(text: Optional[str]) -> Optional[float]:
	"""Return the number ``text`` spells out, or None when it is not one.

	The whole trimmed text has to be the number: ``"4"``, ``"-0.5"`` and
	``" 3.0 "`` parse, ``"abc4"``, ``"4/5"``, ``"nan"`` and ``""`` do not.
	"""
	if text is None:
		return None
	candidate = text.strip()
	if not _NUMBER.fullmatch(candidate):
		return None
	value = float(candidate)
	return value if math.isfinite(value) else None


def check_scale(scale_min: Optional[float], scale_max: Optional[float]) -> Optional[Scale]:
	if scale_min is None and scale_max is None:
		return None
	errors = []
	if scale_min is None:
		errors.append({"field": "scale_min", "message": "scale_min is required with scale_max"})
	if scale_max is None:
		errors.append({"field": "scale_max", "message": "scale_max is required with scale_min"})
	for field, bound in (("scale_min", scale_min), ("scale_max", scale_max)):
		if bound is not None and not math.isfinite(bound):
			errors.append({"field": field, "message": f"{field} must be a finite number"})
	if not errors and scale_min >= scale_max:
		errors.append({"field": "scale_max", "message": "scale_max must be greater than scale_min"})
	if errors:
		raise ValidationError(errors)
	return (float(scale_min), float(scale_max))


def rescale(value: float, scale: Optional[Scale]) -> Optional[float]:
	if scale is None:
		return value
	low, high = scale
	if value < low or value > high:
		return None
	return (value - low) / (high - low) * 100.0


def average_of(texts: Iterable[str], scale: Optional[Scale] = None) -> Optional[float]:
	"""Mean of the numeric texts, or None when there are none."""
	values = []
	for text in texts:
		raw = parse_score(text)
		if raw is None:
			continue
		scaled = rescale(raw, scale)
		if scaled is not None:
			values.append(scaled)
	if not values:
		return None
	return sum(values) / len(values)


def sort_report(records: Sequence[StudentAverage], by: str = "name", descending: bool = False) -> List[StudentAverage]:
	if by not in SORT_KEYS:
		raise ValidationError([{"field": "sort", "message": f"sort must be one of {list(SORT_KEYS)}"}])
	if by == "name":
		key = lambda r: (r.last_name.lower(), r.first_name.lower(), r.student_id)
		return sorted(records, key=key, reverse=descending)
	# Rows without an average go last in either direction
	scored = [r for r in records if r.average is not None]
	unscored = [r for r in records if r.average is None]
	scored.sort(key=lambda r: r.average, reverse=descending)
	return scored + sorted(unscored, key=lambda r: (r.last_name.lower(), r.first_name.lower()))


def is_descending(order: str) -> bool:
	if (order or "").lower() not in ORDERS:
		raise ValidationError([{"field": "order", "message": f"order must be one of {list(ORDERS)}"}])
	return order.lower() == "desc"


def _check_basis(basis: str) -> None:
	if basis not in BASES:
		raise ValidationError([{"field": "basis", "message": f"basis must be one of {list(BASES)}"}])


def _subject_column(basis: str):
	return Response.author_id if basis == "authored" else Response.target_id


def _visible_responses(db: Session, principal: Principal, *criteria) -> List[Response]:
	stmt = select(Response).options(joinedload(Response.assessment)).join(Assessment, Assessment.id == Response.assessment_id)
	rows = db.execute(stmt.where(*criteria)).scalars().all()
	return visible_to(principal, rows)


def _record(user: User, average: Optional[float]) -> StudentAverage:
	return StudentAverage(
		student_id=user.id,
		first_name=user.first_name,
		last_name=user.last_name,
		average=average,
	)


def _scope_criteria(db: Session, scope: str, scope_id: str) -> list:
	if scope == "course":
		if db.get(Course, scope_id) is None:
			raise NotFoundError(f"course {scope_id} not found")
		return [Assessment.course_id == scope_id]
	if scope == "assessment":
		if db.get(Assessment, scope_id) is None:
			raise NotFoundError(f"assessment {scope_id} not found")
		return [Response.assessment_id == scope_id]
	raise ValidationError([{"field": "scope", "message": f"scope must be one of {list(SCOPES)}"}])


def student_average(
	db: Session,
	principal: Principal,
	student_id: str,
	scope: str,
	scope_id: str,
	*,
	basis: str = "authored",
	scale: Optional[Scale] = None,
) -> StudentAverage:
	_check_basis(basis)
	student = db.get(User, student_id)
	if student is None:
		raise NotFoundError(f"student {student_id} not found")
	criteria = _scope_criteria(db, scope, scope_id)
	rows = _visible_responses(db, principal, _subject_column(basis) == student_id, *criteria)
	return _record(student, average_of((r.text for r in rows), scale))


def _roster_report(
	db: Session,
	principal: Principal,
	students: Sequence[User],
	criteria: list,
	basis: str,
	scale: Optional[Scale],
) -> List[StudentAverage]:
	ids = [s.id for s in students]
	if not ids:
		return []
	subject = _subject_column(basis)
	by_student: Dict[str, List[str]] = defaultdict(list)
	for r in _visible_responses(db, principal, subject.in_(ids), *criteria):
		by_student[getattr(r, subject.key)].append(r.text)
	return [_record(s, average_of(by_student.get(s.id, ()), scale)) for s in students]


def _enrolled_students(db: Session, course_ids) -> List[User]:
	stmt = (
		select(User)
		.join(Enrollment, Enrollment.user_id == User.id)
		.where(Enrollment.course_id.in_(list(course_ids)), User.role == "student")
		.distinct()
	)
	return list(db.execute(stmt).scalars().all())


def course_report(
	db: Session,
	principal: Principal,
	course_id: str,
	*,
	basis: str = "authored",
	scale: Optional[Scale] = None,
) -> List[StudentAverage]:
	_check_basis(basis)
	criteria = _scope_criteria(db, "course", course_id)
	students = _enrolled_students(db, [course_id])
	return _roster_report(db, principal, students, criteria, basis, scale)


def assessment_report(
	db: Session,
	principal: Principal,
	assessment_id: str,
	*,
	basis: str = "authored",
	scale: Optional[Scale] = None,
) -> List[StudentAverage]:
	_check_basis(basis)
	criteria = _scope_criteria(db, "assessment", assessment_id)
	assessment = db.get(Assessment, assessment_id)
	students = _enrolled_students(db, [assessment.course_id])
	return _roster_report(db, principal, students, criteria, basis, scale)


def student_assessment_averages(
	db: Session,
	principal: Principal,
	student_id: str,
	*,
	basis: str = "authored",
	scale: Optional[Scale] = None,
) -> List[AssessmentAverage]:
	"""Average per assessment the student has visible responses in."""
	_check_basis(basis)
	if db.get(User, student_id) is None:
		raise NotFoundError(f"student {student_id} not found")
	grouped: Dict[str, List[Response]] = defaultdict(list)
	for r in _visible_responses(db, principal, _subject_column(basis) == student_id):
		grouped[r.assessment_id].append(r)
	results = []
	for rows in grouped.values():
		assessment = rows[0].assessment
		results.append(
			AssessmentAverage(
				assessment_id=assessment.id,
				name=assessment.name,
				average=average_of((r.text for r in rows), scale),
			)
		)
	return sorted(results, key=lambda a: a.name.lower())


def teacher_student_report(
	db: Session,
	principal: Principal,
	*,
	basis: str = "authored",
	scale: Optional[Scale] = None,
) -> List[StudentAverage]:
	"""Every student in the teacher's courses, over that teacher's assessments."""
	if not principal.is_teacher:
		raise PermissionDeniedError("only instructors can view student reports")
	_check_basis(basis)
	course_ids = db.execute(
		select(Assessment.course_id).where(Assessment.owner_id == principal.user_id).distinct()
	).scalars().all()
	students = _enrolled_students(db, course_ids) if course_ids else []
	criteria = [Assessment.owner_id == principal.user_id]
	records = _roster_report(db, principal, students, criteria, basis, scale)
	logger.debug("teacher report for %s: %d students", principal.user_id, len(records))
	return sort_report(records, by="name")
