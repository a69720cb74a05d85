"""
User model (read-only here, owned by the auth service)
"""

from sqlalchemy import Column, Integer, String

from medevents.core.db import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(50), default="student", nullable=False)
    fcm_token = Column(String(500), nullable=True)
