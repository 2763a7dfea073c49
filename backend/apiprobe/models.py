from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from .db import Base


class Environment(Base):
    __tablename__ = "environments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    # Stored order (by id) is the order the resolver applies bindings in.
    variables = relationship(
        "EnvironmentVariable",
        back_populates="environment",
        cascade="all, delete-orphan",
        order_by="EnvironmentVariable.id",
    )


class EnvironmentVariable(Base):
    __tablename__ = "environment_variables"

    id = Column(Integer, primary_key=True, index=True)
    environment_id = Column(
        Integer, ForeignKey("environments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=True)

    environment = relationship("Environment", back_populates="variables")
