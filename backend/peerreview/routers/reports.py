from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import reports
from ..db import get_db
from ..schemas import Principal, StudentAverage
from .auth import get_current_principal, require_teacher

router = APIRouter(prefix="/reports", tags=["reports"])


class ReportParams:
	def __init__(
		self,
		basis: str = Query("authored"),
		scale_min: Optional[float] = Query(None),
		scale_max: Optional[float] = Query(None),
		sort: str = Query("name"),
		order: str = Query("asc"),
	) -> None:
		self.basis = basis
		self.scale = reports.check_scale(scale_min, scale_max)
		self.sort = sort
		self.descending = reports.is_descending(order)


def _row(record: StudentAverage) -> Dict[str, Any]:
	return {
		"id": record.student_id,
		"studentId": record.student_id,
		"firstName": record.first_name,
		"lastName": record.last_name,
		"name": f"{record.first_name} {record.last_name}",
		"average": record.average,
		"display": record.display,
	}


def _rows(records: List[StudentAverage], params: ReportParams) -> List[Dict[str, Any]]:
	return [_row(r) for r in reports.sort_report(records, by=params.sort, descending=params.descending)]


@router.get("/student/{user_id}")
def student_report(
	user_id: str,
	params: ReportParams = Depends(),
	principal: Principal = Depends(get_current_principal),
	db: Session = Depends(get_db),
):
	averages = reports.student_assessment_averages(db, principal, user_id, basis=params.basis, scale=params.scale)
	return [
		{"id": a.assessment_id, "name": a.name, "average": a.average}
		for a in averages
	]


@router.get("/course/{course_id}")
def course_report(
	course_id: str,
	params: ReportParams = Depends(),
	principal: Principal = Depends(get_current_principal),
	db: Session = Depends(get_db),
):
	return _rows(reports.course_report(db, principal, course_id, basis=params.basis, scale=params.scale), params)


@router.get("/assessment/{assessment_id}")
def assessment_report(
	assessment_id: str,
	params: ReportParams = Depends(),
	principal: Principal = Depends(get_current_principal),
	db: Session = Depends(get_db),
):
	return _rows(reports.assessment_report(db, principal, assessment_id, basis=params.basis, scale=params.scale), params)


@router.get("/teacher/students")
def teacher_students(
	params: ReportParams = Depends(),
	principal: Principal = Depends(require_teacher),
	db: Session = Depends(get_db),
):
	return _rows(reports.teacher_student_report(db, principal, basis=params.basis, scale=params.scale), params)
