from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..responses import submit_response
from ..schemas import Principal
from .auth import get_current_principal

router = APIRouter(prefix="/responses", tags=["responses"])


class SubmitResponseRequest(BaseModel):
	assessment_id: str = Field(validation_alias=AliasChoices("assessment_id", "assessmentId"))
	question_id: str = Field(validation_alias=AliasChoices("question_id", "questionId"))
	target_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("target_id", "targetUserId", "targetId"))
	text: str = Field(default="", validation_alias=AliasChoices("text", "responseText"))
	visibility: str = "private"


class SubmitResponseResponse(BaseModel):
	responseId: str


@router.post("", status_code=201, response_model=SubmitResponseResponse)
def submit(
	req: SubmitResponseRequest,
	principal: Principal = Depends(get_current_principal),
	db: Session = Depends(get_db),
):
	created = submit_response(
		db,
		principal,
		req.assessment_id,
		req.question_id,
		req.target_id,
		req.text,
		req.visibility,
	)
	return SubmitResponseResponse(responseId=created.id)
