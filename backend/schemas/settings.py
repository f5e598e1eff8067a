import re
from typing import Dict, Optional

from pydantic import field_validator

from schemas.tickets import CamelModel

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SettingsRead(CamelModel):
    service_start: str
    service_end: str
    closed_message: str
    inventory: Dict[str, int]
    buffer: Dict[str, int]


class SettingsUpdate(CamelModel):
    service_start: Optional[str] = None
    service_end: Optional[str] = None
    closed_message: Optional[str] = None
    inventory: Optional[Dict[str, int]] = None
    buffer: Optional[Dict[str, int]] = None

    @field_validator("service_start", "service_end")
    @classmethod
    def _hhmm(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not _HHMM.match(v):
            raise ValueError("must be HH:MM (24h)")
        return v

    @field_validator("inventory", "buffer")
    @classmethod
    def _non_negative(cls, v: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
        if v is None:
            return None
        out = {}
        for k, n in v.items():
            key = (k or "").strip().lower()
            if not key:
                raise ValueError("category is required")
            if n < 0:
                raise ValueError(f"{key} must be >= 0")
            out[key] = n
        return out
