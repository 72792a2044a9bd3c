# trowool/api/auth.py
# Роуты для регистрации, получения JWT токена и выхода.
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from trowool.core import security
from trowool.core.config import settings
from trowool.db.session import get_db
from trowool.models.user import User
from trowool.schemas.auth import RegisterRequest, TokenOut, UserOut

router = APIRouter()

@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Регистрация пользователя: email + password."""
    email = data.email.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    hashed = security.get_password_hash(data.password)
    user = User(email=email, hashed_password=hashed, full_name=data.full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

@router.post("/token", response_model=TokenOut)
def login(response: Response, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Логин: возвращает access_token (JWT) и кладёт его в http-only cookie.
    OAuth2PasswordRequestForm ожидает username и password — используем email как username.
    """
    user = db.query(User).filter(User.email == form_data.username.strip().lower()).first()
    if not user or not user.hashed_password or not security.verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Incorrect credentials")
    user.last_login = datetime.utcnow()
    db.commit()

    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = security.create_access_token(subject=str(user.id), expires_delta=access_token_expires)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(access_token_expires.total_seconds()),
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return {"access_token": token, "token_type": "bearer"}

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, path="/")

@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(security.get_current_user)):
    return current_user
