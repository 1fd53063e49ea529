"""
api/schemas.py

Pydantic models for all API request and response bodies.

Design philosophy:
  - Request models validate and document what the caller must send.
  - Response models are the single source of truth for what we return.
  - We never expose raw boto3 / hcloud objects, always these normalised shapes.
  - Wire names are camelCase (instanceType, publicIp, ...) because the
    dashboard that calls us speaks JSON that way; Python attributes stay
    snake_case and the aliases bridge the two.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from providers import CanonicalStatus, VMRequest, VMResponse, VMStatus


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class VMCreateRequest(BaseModel):
    """Body for POST /vm/create. Mirrors the VMRequest dataclass."""
    name:                   str           = Field(..., min_length=1, description="Display name; sanitized for Hetzner")
    provider:               str           = Field(..., min_length=1, description="Cloud provider: aws | hetzner")
    instance_type:          str           = Field(..., min_length=1, alias="instanceType", description="e.g. t3.micro, g5.xlarge, cpx21")
    region:                 str           = Field(..., min_length=1, description="AWS region or Hetzner datacenter/location")
    use_spot_instance:      bool          = Field(False, alias="useSpotInstance", description="AWS only: one-time spot request")
    image:                  Optional[str] = Field(None, description="AMI id (AWS) or image name (Hetzner); default is chosen per type")
    auto_terminate_minutes: int           = Field(0, ge=0, alias="autoTerminateMinutes", description="Accepted for compatibility; not acted on")
    user_id:                str           = Field(..., min_length=1, alias="userId", description="Owner identifier, written to instance tags")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "name": "my-gpu-box",
                "provider": "aws",
                "instanceType": "g4dn.xlarge",
                "region": "us-east-1",
                "useSpotInstance": True,
                "userId": "user_123",
            }
        }

    def to_domain(self) -> VMRequest:
        return VMRequest(
            name=self.name,
            provider=self.provider,
            instance_type=self.instance_type,
            region=self.region,
            user_id=self.user_id,
            use_spot_instance=self.use_spot_instance,
            image=self.image or None,
            auto_terminate_minutes=self.auto_terminate_minutes,
        )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class VMCreateResponse(BaseModel):
    """Returned by POST /vm/create. Contains the one-time SSH password."""
    id:            str
    name:          str
    provider:      str
    instance_type: str             = Field(..., alias="instanceType")
    region:        str
    status:        CanonicalStatus
    public_ip:     Optional[str]   = Field(None, alias="publicIp")
    ssh_username:  str             = Field(..., alias="sshUsername")
    ssh_password:  str             = Field(..., alias="sshPassword")
    image:         str
    created_at:    datetime        = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_domain(cls, vm: VMResponse) -> "VMCreateResponse":
        return cls(
            id=vm.id,
            name=vm.name,
            provider=vm.provider,
            instance_type=vm.instance_type,
            region=vm.region,
            status=vm.status,
            public_ip=vm.public_ip,
            ssh_username=vm.ssh_username,
            ssh_password=vm.ssh_password,
            image=vm.image,
            created_at=vm.created_at,
        )


class VMStatusResponse(BaseModel):
    """Returned by GET /vm/{id}/status. Mirrors the VMStatus dataclass."""
    id:         str
    status:     CanonicalStatus
    public_ip:  Optional[str] = Field(None, alias="publicIp")
    updated_at: datetime      = Field(..., alias="updatedAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_domain(cls, status: VMStatus) -> "VMStatusResponse":
        return cls(
            id=status.id,
            status=status.status,
            public_ip=status.public_ip,
            updated_at=status.updated_at,
        )


class MessageResponse(BaseModel):
    message: str


class ProvidersResponse(BaseModel):
    providers: List[str]
