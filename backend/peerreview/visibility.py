"""Read access to responses.

A response is readable when it is public, or when the viewer wrote it, is its
target, or is the teacher who owns its assessment. Every path that hands
response text or a score derived from it to a caller goes through
``visible_to`` first.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, TypeVar

from .schemas import Principal


R = TypeVar("R")


def can_view(principal: Principal, response, owner_id: Optional[str]) -> bool:
	if response.visibility == "public":
		return True
	if principal.user_id == response.author_id:
		return True
	if response.target_id is not None and principal.user_id == response.target_id:
		return True
	return principal.is_teacher and owner_id is not None and principal.user_id == owner_id


def visible_to(principal: Principal, responses: Iterable[R]) -> List[R]:
	# Each response must come with its assessment already loaded.
	return [r for r in responses if can_view(principal, r, r.assessment.owner_id)]
