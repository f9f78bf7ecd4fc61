# Database Models for the Campaign Engine

from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import uuid
import enum

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


def enum_column(enum_cls, name: str):
    """Enum type persisted by value, matching the lowercase labels used in migrations."""
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x], name=name)


# Enums
class UserType(str, enum.Enum):
    BRAND = "brand"
    INFLUENCER = "influencer"
    ADMIN = "admin"


# Models
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    user_type = Column(enum_column(UserType, "usertype"), nullable=False, default=UserType.BRAND)

    # Paystack transfer recipient for influencer payouts
    paystack_recipient_code = Column(String(100))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User {self.email} ({self.user_type.value if self.user_type else None})>"
