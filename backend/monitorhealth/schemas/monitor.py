"""Monitor configuration schemas.

Rules and auth settings are stored as JSON with camelCase keys; these models
accept both the stored aliases and the snake_case field names.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ValidationRules(BaseModel):
    """Criteria a probe response must satisfy to count as a success."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    
    status_code: Optional[int] = Field(None, alias="statusCode")
    required_keys: List[str] = Field(default_factory=list, alias="requiredKeys")
    contains_value: Dict[str, Any] = Field(default_factory=dict, alias="containsValue")
    custom_check: Optional[str] = Field(None, alias="customCheck")


class AuthConfig(BaseModel):
    """Parameters for the auth variants; each variant reads the fields it needs."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    
    username: Optional[str] = None
    password: Optional[str] = None
    token_url: Optional[str] = Field(None, alias="tokenUrl")
    login_url: Optional[str] = Field(None, alias="loginUrl")
    token_field: Optional[str] = Field(None, alias="tokenField")
    header_name: str = Field("Authorization", alias="headerName")
    header_prefix: Optional[str] = Field("Bearer", alias="headerPrefix")
    cookie_name: str = Field("session", alias="cookieName")


class CheckOutcomeResponse(BaseModel):
    """Probe outcome returned by the manual check endpoint."""
    id: Optional[int] = None
    monitor_id: Optional[int] = None
    status: str  # success, failure
    http_status: Optional[int] = None
    latency_ms: int
    error_message: Optional[str] = None
    validation_errors: List[str] = []
    response_data: Optional[str] = None
    response_metadata: Optional[Dict[str, Any]] = None
    checked_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class SchedulerStatusResponse(BaseModel):
    """Scheduler observability snapshot."""
    is_running: bool
    tick_minutes: int
    max_concurrent_checks: int
    in_flight: int
