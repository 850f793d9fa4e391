"""Pydantic request models for the dynamic configuration server."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ServerCertificate(BaseModel):
    """One entry of the POST /configuration/servers body."""

    model_config = ConfigDict(populate_by_name=True)

    hostname: Optional[str] = None
    pem_cert_key: Optional[str] = Field(default=None, alias="pemCertKey")


ServerCertificateList = TypeAdapter(list[ServerCertificate])


__all__ = [
    "ServerCertificate",
    "ServerCertificateList",
]
