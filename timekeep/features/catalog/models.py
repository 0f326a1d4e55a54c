"""
Catalog Models

Request models for creating and updating clients, projects and activities.

Models:
- ClientCreate / ClientUpdate
- ProjectCreate / ProjectUpdate
- ActivityCreate / ActivityUpdate

Notes:
    Updates are applied with ``exclude_unset``, so sending
    ``"hourly_rate": null`` clears a project or activity override while
    omitting the field leaves it untouched.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    hourly_rate: float = Field(0.0, ge=0)
    color: str = "#22c55e"


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    color: Optional[str] = None


class ProjectCreate(BaseModel):
    """
    Model for creating projects.
    """
    name: str = Field(..., min_length=1)
    client_id: str
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)  # None inherits the client rate
    color: str = "#16a34a"


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    color: Optional[str] = None


class ActivityCreate(BaseModel):
    """
    Model for creating activities.
    """
    name: str = Field(..., min_length=1)
    project_id: str
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)  # None inherits the project rate


class ActivityUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
