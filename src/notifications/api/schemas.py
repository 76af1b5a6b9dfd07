"""Pydantic request/response schemas for the notification endpoints."""

from pydantic import BaseModel, Field


class ConnectionStatsResponse(BaseModel):
    connected_users: int
    total_user_connections: int
    admin_connections: int


class TestNotificationRequest(BaseModel):
    message: str = Field(min_length=1, max_length=500)


class TestNotificationResponse(BaseModel):
    delivered: int
