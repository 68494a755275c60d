"""
Pydantic schemas for collections and folders.

A collection is the root of a tree of folders and requests. Every
request is owned by exactly one collection or folder.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from .environment import Variable
from .request import ApiRequest, Auth


class RequestFolder(BaseModel):
    """A folder holding requests and nested folders, with optional auth."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "New Folder"
    requests: list[ApiRequest] = []
    folders: list[RequestFolder] = []
    auth: Auth | None = None


class Collection(BaseModel):
    """Root owner of a request tree plus collection-scoped variables and auth."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "My Collection"
    requests: list[ApiRequest] = []
    folders: list[RequestFolder] = []
    variables: list[Variable] = []
    auth: Auth | None = None


RequestFolder.model_rebuild()
