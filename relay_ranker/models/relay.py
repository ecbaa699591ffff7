from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StatusMessage(BaseModel):
    """Operator note attached to a relay in the catalog."""

    model_config = ConfigDict(frozen=True)

    message: str
    timestamp: str


class Relay(BaseModel):
    """
    One relay record as published in the relay catalog.

    Only hostname and ipv4_addr_in are used for probing; the remaining fields
    are carried along unchanged for display and filtering.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    hostname: str = Field(..., description="Relay hostname, e.g. se-sto-wg-001")
    ipv4_addr_in: str = Field(
        ...,
        description="IPv4 address the relay is probed on",
    )
    country_code: str = ""
    country_name: str = ""
    city_code: str = ""
    city_name: str = ""
    active: bool = False
    owned: bool = False
    provider: str = ""
    ipv6_addr_in: Optional[str] = None
    relay_type: str = Field(
        "",
        alias="type",
        description="Relay protocol type, e.g. wireguard or openvpn",
    )
    status_messages: List[StatusMessage] = Field(default_factory=list)
    pubkey: Optional[str] = None
    multihop_port: Optional[int] = None
    socks_name: Optional[str] = None
    ssh_fingerprint_sha256: Optional[str] = None
    ssh_fingerprint_md5: Optional[str] = None
