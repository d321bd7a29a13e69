from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from multichat.db.session import get_session
from multichat.models.user import User
from multichat.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from multichat.schemas.user import UserOut
from multichat.services.auth_service import (
    authenticate_user,
    create_access_token,
    create_user,
    get_current_user,
    get_user_by_email,
)

router = APIRouter(prefix='/auth', tags=['auth'])


def _to_user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, is_active=user.is_active, role=user.role)


@router.post('/register', response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, session: Session = Depends(get_session)) -> UserOut:
    if get_user_by_email(session, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email already registered')
    user = create_user(session, payload.email, payload.password)
    return _to_user_out(user)


@router.post('/login', response_model=TokenResponse)
def login(payload: LoginRequest, session: Session = Depends(get_session)) -> TokenResponse:
    user = authenticate_user(session, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='User is inactive')
    return TokenResponse(access_token=create_access_token(user.id))


@router.get('/me', response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return _to_user_out(user)
