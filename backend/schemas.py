# schemas.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Literal

RoleName = Literal["admin", "creator", "viewer"]
SurveyStatus = Literal["draft", "published", "closed"]
QuestionType = Literal["single", "multiple", "likert", "text"]
AuditAction = Literal["create", "publish", "update", "delete"]

# ------------------------
# Auth / profiles
# ------------------------
class SignUp(BaseModel):
    email: str
    password: str
    display_name: str = ""

class SignIn(BaseModel):
    email: str
    password: str

class ProfileOut(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")

class AuthUser(BaseModel):
    id: str
    email: str
    profile: ProfileOut
    roles: List[RoleName]
    is_admin: bool
    is_creator: bool
    is_viewer: bool

class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: AuthUser

# ------------------------
# Surveys
# ------------------------
class OptionIn(BaseModel):
    label: str
    value: str = ""

class OptionOut(BaseModel):
    id: int
    label: str
    value: str
    order_index: int
    class Config:
        from_attributes = True

class QuestionIn(BaseModel):
    type: QuestionType = "single"
    question_text: str
    required: bool = True
    options: Optional[Dict[str, Any]] = None
    options_list: List[OptionIn] = []

class QuestionOut(BaseModel):
    id: int
    type: QuestionType
    question_text: str
    required: bool
    order_index: int
    options: Optional[Dict[str, Any]] = None
    options_list: List[OptionOut] = []
    class Config:
        from_attributes = True

class SurveySave(BaseModel):
    title: str
    description: Optional[str] = None
    status: Literal["draft", "published"] = "draft"
    cover_image_url: Optional[str] = None
    questions: List[QuestionIn] = []

class SurveyOut(BaseModel):
    id: int
    owner_id: str
    title: str
    description: Optional[str] = None
    status: SurveyStatus
    slug: str
    public_slug: str
    cover_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class SurveyListItem(SurveyOut):
    questions_count: int = 0
    responses_count: int = 0

class SurveyForm(BaseModel):
    survey: SurveyOut
    questions: List[QuestionOut]

class StatusChange(BaseModel):
    status: Literal["published", "closed"]

# ------------------------
# Responses
# ------------------------
class ResponseItemOut(BaseModel):
    id: int
    question_id: int
    value_text: Optional[str] = None
    value_numeric: Optional[float] = None
    value_json: Optional[Dict[str, Any]] = None
    class Config:
        from_attributes = True

class ResponseOut(BaseModel):
    id: int
    survey_id: int
    user_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    items: List[ResponseItemOut] = []
    class Config:
        from_attributes = True

class SurveyDetail(BaseModel):
    survey: SurveyOut
    questions: List[QuestionOut]
    public_url: str
    responses_count: int
    responses: List[ResponseOut]

class PublicSurvey(BaseModel):
    survey: SurveyOut
    questions: List[QuestionOut]

class SubmitResponse(BaseModel):
    # question id -> answer (str for text/single/likert, list[str] for multiple)
    answers: Dict[int, Any]

class AnswerDetail(BaseModel):
    question_id: int
    question_text: str
    question_type: QuestionType
    answer_text: Optional[str] = None
    answer_numeric: Optional[float] = None
    answer_json: Optional[Dict[str, Any]] = None
    options: List[OptionOut] = []

class ResponseDetail(BaseModel):
    id: int
    survey_id: int
    survey_title: str
    submitted_at: Optional[datetime] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    answers: List[AnswerDetail]

# ------------------------
# Account pages
# ------------------------
class DashboardStats(BaseModel):
    total_surveys: int
    total_responses: int
    active_surveys: int
    recent_responses: int

class RecentActivity(BaseModel):
    id: int
    survey_id: int
    survey_title: str
    action: str
    timestamp: Optional[datetime] = None
    user_name: str

class Dashboard(BaseModel):
    stats: DashboardStats
    recent_activity: List[RecentActivity]

class MyResponse(BaseModel):
    id: int
    survey_id: int
    submitted_at: Optional[datetime] = None
    survey_title: str
    survey_description: str

# ------------------------
# Admin
# ------------------------
class UserWithRoles(BaseModel):
    user_id: str
    email: str
    display_name: Optional[str] = None
    roles: List[RoleName]

class RoleAssign(BaseModel):
    user_id: str
    role: RoleName

class AuditLogOut(BaseModel):
    id: int
    user_id: str
    action: AuditAction
    table_name: str
    record_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True
