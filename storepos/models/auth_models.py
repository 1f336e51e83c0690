import uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey

from storepos.core.security import utcnow

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)

    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, default="")

    role = Column(String, nullable=False, default="user")  # user / admin / superadmin
    is_verified = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "superadmin")


class OTPChallenge(Base):
    """One-time code sent to an email.

    A challenge is live while it is neither consumed nor superseded and its
    expiry is in the future. Issuing a new challenge supersedes the live one,
    so at most one code per email can be verified at a time.
    """
    __tablename__ = "otp_challenges"

    id = Column(String, primary_key=True, default=new_id)

    email = Column(String, nullable=False, index=True)
    code_hash = Column(String, nullable=False)

    attempts = Column(Integer, nullable=False, default=0)

    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)
    superseded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String, primary_key=True, default=new_id)

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    token = Column(String, nullable=False, unique=True, index=True)
    is_revoked = Column(Boolean, default=False)
    expires_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=utcnow)
