"""Auth router - signup, login and the current-user profile."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, get_db
from app.core.rate_limit import AUTH_LIMIT, limiter
from app.schemas.auth import AuthResponse, LoginRequest, MeResponse, SignupRequest
from app.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(AUTH_LIMIT)
def signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)):
    """Create a student account and return a token for it."""
    return auth_service.signup(db, body, request)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    return auth_service.login(db, body.email, body.password, request)


@router.get("/me", response_model=MeResponse)
def me(user=Depends(get_current_user), db: Session = Depends(get_db)):
    return auth_service.get_me(db, user)
