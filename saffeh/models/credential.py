# saffeh/models/credential.py
"""
Credential table — two key/value rows: the auth token and the serialized user.
Written at login/logout/profile update, read by every authenticated call.
"""

from sqlalchemy import Column, String, DateTime, Text
from saffeh.database import Base


class StoredCredential(Base):
    __tablename__ = "credentials"

    key = Column(String(50), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<StoredCredential {self.key} updated={self.updated_at}>"
