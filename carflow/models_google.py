"""
Google Workspace Integration Models
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class GoogleIntegration(Base):
    __tablename__ = "google_integrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)
    scopes = Column(Text, nullable=True)  # space separated, as granted

    # Google user info
    google_user_email = Column(String(255), nullable=True)
    google_calendar_id = Column(String(500), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="google_integration")

    def has_scope(self, scope: str) -> bool:
        return bool(self.scopes) and scope in self.scopes.split()
