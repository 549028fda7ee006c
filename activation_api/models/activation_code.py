# activation_api/models/activation_code.py

from sqlalchemy import Boolean, Column, DateTime, String, Text, false, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()

CODE_LENGTH = 20


class ActivationCode(Base):
    __tablename__ = "activation_codes"

    code = Column(String(CODE_LENGTH), primary_key=True)
    is_used = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<ActivationCode {self.code} used={self.is_used}>"
