# booking_engine/api/deps.py
from typing import Optional
from fastapi import Depends, HTTPException, status, Security
from fastapi.security import OAuth2PasswordBearer, APIKeyHeader
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from booking_engine.core.config import settings
from booking_engine.db.session import get_db
from booking_engine.schemas.token import TokenPayload
from booking_engine.services.booking_events import BookingEventDispatcher, get_event_dispatcher
from booking_engine.services.booking_lifecycle import BookingLifecycleService
from booking_engine.services.change_proposals import ChangeProposalService
from booking_engine.services.publication_gate import PublicationGate


# The `tokenUrl` doesn't have to be a real endpoint in this service,
# it's just for the OpenAPI documentation.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")
oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def _decode_token(token: str) -> TokenPayload:
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    return TokenPayload(**payload)


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        return _decode_token(token)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise credentials_exception


def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme_optional),
) -> Optional[TokenPayload]:
    if token is None:
        return None
    try:
        return _decode_token(token)
    except (JWTError, ValueError):
        return None


# Define the header we expect the key to be in
api_key_header = APIKeyHeader(name="X-Internal-Api-Key", auto_error=False)


def get_internal_api_key_optional(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Returns the API key if it's valid, otherwise returns None. Does not raise an error.
    An unset INTERNAL_API_KEY never matches.
    """
    if api_key and settings.INTERNAL_API_KEY and api_key == settings.INTERNAL_API_KEY:
        return api_key
    return None


def require_admin_or_internal(
    current_user: Optional[TokenPayload] = Depends(get_current_user_optional),
    api_key: Optional[str] = Depends(get_internal_api_key_optional),
) -> Optional[TokenPayload]:
    """
    Administrative procedures accept either an admin JWT or the internal API
    key. Returns the admin's token payload, or None for internal callers.
    """
    if api_key is not None:
        return current_user
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return current_user


def get_lifecycle_service(
    db: Session = Depends(get_db),
    dispatcher: BookingEventDispatcher = Depends(get_event_dispatcher),
) -> BookingLifecycleService:
    return BookingLifecycleService(db, dispatcher)


def get_proposal_service(
    db: Session = Depends(get_db),
    lifecycle: BookingLifecycleService = Depends(get_lifecycle_service),
) -> ChangeProposalService:
    return ChangeProposalService(db, lifecycle=lifecycle)


def get_publication_gate(
    db: Session = Depends(get_db),
    dispatcher: BookingEventDispatcher = Depends(get_event_dispatcher),
) -> PublicationGate:
    return PublicationGate(db, dispatcher)
