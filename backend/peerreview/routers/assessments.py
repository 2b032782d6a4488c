from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends, Response as HTTPResponse
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from .. import assessments as service
from ..db import get_db
from ..responses import list_responses
from ..schemas import AssessmentOut, AssessmentSpec, AssessmentSummary, Principal, ResponseOut
from .auth import get_current_principal, require_teacher

router = APIRouter(prefix="/assessments", tags=["assessments"])


class CreateAssessmentRequest(AssessmentSpec):
	course_id: str = Field(validation_alias=AliasChoices("course_id", "courseId"))


class CreateAssessmentResponse(BaseModel):
	assessmentId: str


class StatusRequest(BaseModel):
	status: str


@router.post("", status_code=201, response_model=CreateAssessmentResponse)
def create_assessment(
	req: CreateAssessmentRequest,
	principal: Principal = Depends(require_teacher),
	db: Session = Depends(get_db),
):
	created = service.create_assessment(db, req.course_id, principal.user_id, req)
	return CreateAssessmentResponse(assessmentId=created.id)


@router.get("/teacher", response_model=List[AssessmentSummary])
def teacher_assessments(principal: Principal = Depends(require_teacher), db: Session = Depends(get_db)):
	return service.list_owned_assessments(db, principal.user_id)


@router.get("/{assessment_id}", response_model=AssessmentOut)
def get_assessment(
	assessment_id: str,
	principal: Principal = Depends(get_current_principal),
	db: Session = Depends(get_db),
):
	return service.get_assessment(db, assessment_id)


@router.post("/{assessment_id}/status", response_model=AssessmentOut)
def change_status(
	assessment_id: str,
	req: StatusRequest,
	principal: Principal = Depends(require_teacher),
	db: Session = Depends(get_db),
):
	return service.set_status(db, principal, assessment_id, req.status)


@router.delete("/{assessment_id}", status_code=204)
def delete_assessment(
	assessment_id: str,
	principal: Principal = Depends(require_teacher),
	db: Session = Depends(get_db),
):
	service.delete_assessment(db, principal, assessment_id)
	return HTTPResponse(status_code=204)


@router.get("/{assessment_id}/responses", response_model=List[ResponseOut])
def assessment_responses(
	assessment_id: str,
	principal: Principal = Depends(get_current_principal),
	db: Session = Depends(get_db),
):
	return list_responses(db, principal, assessment_id)
