"""
prize_portal/orm/user.py
User model: students, entities (organizing clubs) and treasury staff.
Role is fixed at provisioning; deactivation is a soft flag.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from enum import Enum
from prize_portal.orm.base import BaseModel


class UserRole(str, Enum):
    """User roles"""
    student = "student"
    entity = "entity"
    treasury = "treasury"


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, index=True)

    # Display names: students and entities carry different ones
    student_name = Column(String(200), nullable=True)
    entity_name = Column(String(200), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_login = Column(DateTime, nullable=True)

    @property
    def display_name(self) -> str:
        if self.role == UserRole.entity:
            return self.entity_name or self.email
        return self.student_name or self.email

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "student_name": self.student_name,
            "entity_name": self.entity_name,
            "is_active": self.is_active,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
