import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from certexam import config
from certexam.database import get_db
from certexam.models.user import User
from certexam.schemas.user import UserCreate, UserResponse
from certexam.utils.auth import authenticate, get_current_user, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

@router.get("/me", response_model=UserResponse)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        id=str(uuid4()),
        email=email,
        name=payload.name.strip(),
        password_hash=get_password_hash(payload.password),
        is_admin=email in config.admin_emails(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.id}{' (admin)' if user.is_admin else ''}")
    return user

@router.post("/token")
def login(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Simplified auth: the access token is the user id.
    A real deployment puts its identity provider in front of this service.
    """
    user = authenticate(db, form.username, form.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    return {"access_token": user.id, "token_type": "bearer"}
