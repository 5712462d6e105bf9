import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Float, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from db import Base

USER_ROLES = ("admin", "creator", "viewer")
SURVEY_STATUSES = ("draft", "published", "closed")
QUESTION_TYPES = ("single", "multiple", "likert", "text")
AUDIT_ACTIONS = ("create", "publish", "update", "delete")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def _new_uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String(36), primary_key=True, default=_new_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    gender = Column(String(50), nullable=True)
    birth_date = Column(String(10), nullable=True)  # ISO date, YYYY-MM-DD
    created_at = Column(DateTime(timezone=True), default=_now_utc)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan",
                         foreign_keys="UserRole.user_id")
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
    surveys = relationship("Survey", back_populates="owner", cascade="all, delete-orphan")
    responses = relationship("Response", back_populates="user", cascade="all, delete-orphan")

    @property
    def role_names(self) -> list[str]:
        return sorted(r.role for r in self.roles)


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
        # audit_log keeps record ids of deleted rows; never hand them out again
        {"sqlite_autoincrement": True},
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String(20), nullable=False)
    assigned_at = Column(DateTime(timezone=True), default=_now_utc)
    assigned_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    user = relationship("Profile", back_populates="roles", foreign_keys=[user_id])


class AuthSession(Base):
    __tablename__ = "auth_sessions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    token = Column(String(512), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True)
    fingerprint = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    user = relationship("Profile", back_populates="sessions")


class Survey(Base):
    __tablename__ = "surveys"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="draft")
    slug = Column(String(80), nullable=False)
    public_slug = Column(String(80), unique=True, index=True, nullable=False)
    cover_image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)
    owner = relationship("Profile", back_populates="surveys")
    questions = relationship("SurveyQuestion", back_populates="survey", cascade="all, delete-orphan",
                             order_by="SurveyQuestion.order_index")
    responses = relationship("Response", back_populates="survey", cascade="all, delete-orphan")


class SurveyQuestion(Base):
    __tablename__ = "survey_questions"
    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(String(20), nullable=False, default="single")
    question_text = Column(Text, nullable=False)
    required = Column(Boolean, default=True)
    order_index = Column(Integer, nullable=False, default=0)
    options = Column(JSON, nullable=True)  # free-form per-question settings
    created_at = Column(DateTime(timezone=True), default=_now_utc)
    survey = relationship("Survey", back_populates="questions")
    options_list = relationship("SurveyOption", back_populates="question", cascade="all, delete-orphan",
                                order_by="SurveyOption.order_index")
    items = relationship("ResponseItem", back_populates="question", cascade="all, delete-orphan")


class SurveyOption(Base):
    __tablename__ = "survey_options"
    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("survey_questions.id", ondelete="CASCADE"), index=True, nullable=False)
    label = Column(String(255), nullable=False)
    value = Column(String(255), nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_now_utc)
    question = relationship("SurveyQuestion", back_populates="options_list")


class Response(Base):
    __tablename__ = "responses"
    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=_now_utc)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    survey = relationship("Survey", back_populates="responses")
    user = relationship("Profile", back_populates="responses")
    items = relationship("ResponseItem", back_populates="response", cascade="all, delete-orphan")


class ResponseItem(Base):
    __tablename__ = "response_items"
    id = Column(Integer, primary_key=True, index=True)
    response_id = Column(Integer, ForeignKey("responses.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("survey_questions.id", ondelete="CASCADE"), index=True, nullable=False)
    value_text = Column(Text, nullable=True)
    value_numeric = Column(Float, nullable=True)
    value_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc)
    response = relationship("Response", back_populates="items")
    question = relationship("SurveyQuestion", back_populates="items")


class AuditLog(Base):
    __tablename__ = "audit_log"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    action = Column(String(20), nullable=False)
    table_name = Column(String(50), nullable=False)
    record_id = Column(String(64), nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc, index=True)
