"""Catalog and binding response records (OSB v2 shapes)."""

from typing import Any

from pydantic import BaseModel, Field


class ServicePlan(BaseModel):
    id: str
    name: str
    description: str


class Service(BaseModel):
    id: str
    name: str
    description: str
    bindable: bool = True
    plan_updateable: bool = False
    tags: list[str] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)
    plans: list[ServicePlan] = Field(default_factory=list)


class SharedDevice(BaseModel):
    volume_id: str
    mount_config: dict[str, Any] = Field(default_factory=dict)


class VolumeMount(BaseModel):
    driver: str
    container_dir: str
    mode: str  # "r" | "rw"
    device_type: str = "shared"
    device: SharedDevice


class Binding(BaseModel):
    """Bind result: no credentials, one volume mount."""

    credentials: dict[str, Any] = Field(default_factory=dict)
    volume_mounts: list[VolumeMount] = Field(default_factory=list)
