from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import AuthError, PermissionDeniedError
from ..models import AuthSession, User, utcnow
from ..schemas import Principal
from ..settings import settings

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	"""Return a safe JWT expiry timestamp.

	Uses the configured token lifetime when no explicit delta is given and
	caps at the largest representable datetime instead of overflowing.
	"""
	delta = expires_delta
	if delta is None:
		minutes = getattr(settings, "access_token_expire_minutes", None)
		if isinstance(minutes, int) and minutes > 0:
			delta = timedelta(minutes=minutes)
		else:
			delta = timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def issue_session(db: Session, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
	"""Open a server-side session for an existing user and return its token.

	Credential checks happen before this is called; the login flow lives
	outside this service.
	"""
	if db.get(User, user_id) is None:
		raise AuthError("unknown user")
	session_id = uuid.uuid4().hex
	with transaction(db):
		db.add(AuthSession(session_id=session_id, user_id=user_id))
	return create_access_token({"sub": user_id, "jti": session_id}, expires_delta)


def _decode(token: Optional[str]) -> tuple:
	if not token:
		raise AuthError("missing session token")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise AuthError("invalid or expired session token")
	user_id = payload.get("sub")
	session_id = payload.get("jti")
	if user_id is None or session_id is None:
		raise AuthError("invalid session token")
	return user_id, session_id


def authenticate(db: Session, token: Optional[str]) -> Principal:
	user_id, session_id = _decode(token)
	row = db.get(AuthSession, session_id)
	if row is None or row.user_id != user_id:
		logger.warning("unknown session presented for user %s", user_id)
		raise AuthError("invalid session")
	if row.status != "active":
		logger.warning("%s session presented for user %s", row.status, user_id)
		raise AuthError(f"session {row.status}")
	user = db.get(User, user_id)
	if user is None:
		raise AuthError("invalid session")
	with transaction(db):
		row.last_activity_at = utcnow()
	return Principal(user_id=user.id, role=user.role)


def revoke_session(db: Session, token: Optional[str]) -> None:
	_, session_id = _decode(token)
	row = db.get(AuthSession, session_id)
	if row is None:
		raise AuthError("invalid session")
	with transaction(db):
		row.status = "revoked"
	logger.info("session %s revoked", session_id)


def _bearer_token(creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
	return creds.credentials if creds else None


def get_current_principal(
	creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
	db: Session = Depends(get_db),
) -> Principal:
	return authenticate(db, _bearer_token(creds))


def require_teacher(principal: Principal = Depends(get_current_principal)) -> Principal:
	if not principal.is_teacher:
		raise PermissionDeniedError("only instructors can do this")
	return principal


@router.get("/me", response_model=Principal)
async def me(principal: Principal = Depends(get_current_principal)):
	return principal


@router.post("/logout", status_code=204)
def logout(
	creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
	db: Session = Depends(get_db),
):
	revoke_session(db, _bearer_token(creds))
