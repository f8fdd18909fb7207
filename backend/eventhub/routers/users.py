"""User API routes."""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.exceptions import EmailTaken, UserNotFound
from eventhub.models.user import User
from eventhub.schemas.rsvp import ErrorOut
from eventhub.schemas.user import UserCreate, UserUpdate, UserOut

logger = logging.getLogger(__name__)
router = APIRouter()


def _email_taken(db: Session, email: str) -> bool:
    return db.query(User).filter(User.email == email).first() is not None


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise UserNotFound()
    return user


def _commit_user(db: Session, user: User) -> User:
    """Commit, reporting a lost race on the unique email as a conflict."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailTaken()
    db.refresh(user)
    return user


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED,
             responses={409: {"model": ErrorOut}})
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a new user."""
    if _email_taken(db, payload.email):
        raise EmailTaken()
    user = User(**payload.model_dump())
    db.add(user)
    _commit_user(db, user)
    logger.info("Created user %s (%s)", user.user_id, user.name)
    return user


@router.get("/", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db)):
    """List all users."""
    return db.query(User).all()


@router.get("/{user_id}", response_model=UserOut, responses={404: {"model": ErrorOut}})
def get_user(user_id: str, db: Session = Depends(get_db)):
    """Fetch a single user by ID."""
    return _get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserOut,
              responses={404: {"model": ErrorOut}, 409: {"model": ErrorOut}})
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    """Update a user's name or email (partial update)."""
    user = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] != user.email and _email_taken(db, changes["email"]):
        raise EmailTaken()
    for field, value in changes.items():
        setattr(user, field, value)
    _commit_user(db, user)
    logger.info("Updated user %s", user_id)
    return user
