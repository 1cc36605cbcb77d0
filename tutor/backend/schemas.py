from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
	model_config = ConfigDict(extra="ignore")

	text: Optional[str] = Field(default=None, description="User question, typed or transcribed.")
	user_id: Optional[str] = Field(default=None, description="Optional caller identifier, stored as thread metadata.")


class AskResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	text: str
	audio: Optional[str] = Field(default=None, description="data:audio/mp3;base64 URI, or null.")


class TokenResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	token: str
	expires_in: Optional[int] = None


class ErrorBody(BaseModel):
	model_config = ConfigDict(extra="forbid")

	error: str
	details: Optional[str] = None
	request_id: Optional[str] = None
