"""Login codes and follow relationships."""
from sqlalchemy import Column, Text

from tvratings_service.models.base import UserBase


class VerificationCode(UserBase):
    """The latest login code sent to an email address."""
    __tablename__ = 'codes'

    email = Column(Text, primary_key=True)
    code = Column(Text)

    def __repr__(self):
        return f"<VerificationCode(email='{self.email}')>"


class Follow(UserBase):
    """A user following a show."""
    __tablename__ = 'follows'

    email = Column(Text, primary_key=True)
    showId = Column(Text, primary_key=True)

    def __repr__(self):
        return f"<Follow(email='{self.email}', showId='{self.showId}')>"
