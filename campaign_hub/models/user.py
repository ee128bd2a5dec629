from sqlalchemy import Column, String, DateTime

from campaign_hub.models.campaign import Base, utcnow


class User(Base):
    """
    Local directory entry for an identity resolved from a bearer token.
    Accounts themselves live in the user service.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
