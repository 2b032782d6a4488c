from __future__ import annotations
from typing import Dict, List, Optional


class PeerReviewError(Exception):
	"""Base class for every error the core reports to its callers.

	``status_code`` is the HTTP status the API layer answers with.
	"""

	status_code = 400
	default_message = "request failed"

	def __init__(self, message: Optional[str] = None) -> None:
		self.message = message or self.default_message
		super().__init__(self.message)

	def to_dict(self) -> Dict[str, object]:
		return {"error": type(self).__name__, "detail": self.message}


class ValidationError(PeerReviewError):
	"""Malformed input. Carries every violation, not just the first."""

	default_message = "validation failed"

	def __init__(self, errors: List[Dict[str, str]]) -> None:
		self.errors = list(errors)
		summary = "; ".join(f"{e['field']}: {e['message']}" for e in self.errors)
		super().__init__(f"validation failed: {summary}" if summary else None)

	def to_dict(self) -> Dict[str, object]:
		data = super().to_dict()
		data["errors"] = self.errors
		return data


class AuthError(PeerReviewError):
	status_code = 401
	default_message = "could not validate credentials"


class PermissionDeniedError(PeerReviewError):
	status_code = 403
	default_message = "not allowed"


class NotFoundError(PeerReviewError):
	status_code = 404
	default_message = "not found"


class AssessmentClosedError(PeerReviewError):
	status_code = 409
	default_message = "assessment is closed"


class QuestionMismatchError(PeerReviewError):
	default_message = "question does not belong to assessment"


class InvalidTargetError(PeerReviewError):
	default_message = "invalid review target"


class DuplicateResponseError(PeerReviewError):
	status_code = 409
	default_message = "a response for this question already exists"


class StorageError(PeerReviewError):
	# The message is fixed; the underlying cause is logged, never returned.
	status_code = 500
	default_message = "storage error"

	def __init__(self) -> None:
		super().__init__(None)
