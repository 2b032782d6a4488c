from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


ASSESSMENT_KINDS = ("quiz", "survey", "review")
VISIBILITIES = ("public", "private")
STATUSES = ("pending", "open", "closed")
QUESTION_TYPES = ("likert", "multiple_choice", "short_answer")
# Question types whose answers are picked from an options list
OPTION_TYPES = ("likert", "multiple_choice")
ROLES = ("student", "teacher")


class Principal(BaseModel):
	model_config = ConfigDict(frozen=True)

	user_id: str
	role: str

	@property
	def is_teacher(self) -> bool:
		return self.role == "teacher"


# Inputs are loosely typed on purpose so that validation can report every
# problem at once instead of failing on the first bad field.
class QuestionSpec(BaseModel):
	type: str = ""
	text: str = ""
	options: List[str] = Field(default_factory=list)
	helper_text: Optional[str] = Field(default=None, validation_alias=AliasChoices("helper_text", "helperText"))


class AssessmentSpec(BaseModel):
	name: str = ""
	kind: str = Field(default="", validation_alias=AliasChoices("kind", "type"))
	visibility: str = "private"
	start_time: Any = Field(default=None, validation_alias=AliasChoices("start_time", "startTime"))
	end_time: Any = Field(default=None, validation_alias=AliasChoices("end_time", "endTime"))
	questions: List[QuestionSpec] = Field(default_factory=list)


class QuestionOut(BaseModel):
	model_config = ConfigDict(frozen=True, from_attributes=True)

	id: str
	assessment_id: str
	position: int
	type: str
	text: str
	options: Tuple[str, ...] = ()
	helper_text: Optional[str] = None


class AssessmentOut(BaseModel):
	model_config = ConfigDict(frozen=True, from_attributes=True)

	id: str
	course_id: str
	owner_id: str
	name: str
	kind: str
	visibility: str
	status: str
	start_time: datetime
	end_time: datetime
	questions: Tuple[QuestionOut, ...] = ()


class AssessmentSummary(BaseModel):
	id: str
	name: str
	kind: str
	status: str
	visibility: str
	start_time: datetime
	end_time: datetime
	course_name: str
	course_number: str
	response_count: int


class ResponseOut(BaseModel):
	model_config = ConfigDict(frozen=True, from_attributes=True)

	id: str
	assessment_id: str
	question_id: str
	author_id: str
	target_id: Optional[str] = None
	text: str
	visibility: str
	created_at: datetime


class StudentAverage(BaseModel):
	student_id: str
	first_name: str
	last_name: str
	average: Optional[float] = None

	@property
	def display(self) -> str:
		if self.average is None:
			return "N/A"
		return f"{self.average:.1f}%"


class AssessmentAverage(BaseModel):
	assessment_id: str
	name: str
	average: Optional[float] = None
