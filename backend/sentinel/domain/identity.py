# sentinel/domain/identity.py
from __future__ import annotations

import hashlib
import re
from typing import Iterable

SYNTHETIC_PARCEL_PREFIX = "SYN-"

_COUNTY_SUFFIX = re.compile(r"\s+(county|co\.?)$", re.IGNORECASE)
_PARCEL_DROP = re.compile(r"[^A-Z0-9-]")
_SLUG_DROP = re.compile(r"[^a-z0-9]+")


def normalize_county(raw: str | None, *, known: Iterable[str], default: str) -> str:
    """
    Canonical county spelling.

    Policy:
      - "spokane county", " SPOKANE ", "Spokane Co." -> "Spokane" when Spokane is known
      - unknown names are title-cased ("ada county" -> "Ada")
      - empty/missing -> default
    """
    s = (raw or "").strip()
    s = _COUNTY_SUFFIX.sub("", s).strip()
    if not s:
        return default
    canon = {k.strip().lower(): k.strip() for k in known}
    return canon.get(s.lower(), " ".join(w.capitalize() for w in s.split()))


def normalize_parcel_id(raw: str | None) -> str:
    """Upper-case, keep only A-Z, 0-9 and dashes. May return ''."""
    return _PARCEL_DROP.sub("", (raw or "").upper())


def slugify(*parts: str | None) -> str:
    joined = "-".join(p for p in parts if p)
    return _SLUG_DROP.sub("-", joined.lower()).strip("-")


def synthetic_parcel_id(owner_name: str | None, county: str, address: str | None) -> str:
    """Stable pseudo parcel id for sources without an APN; prefix marks it lower-trust."""
    digest = hashlib.sha256(slugify(owner_name, county, address).encode("utf-8")).hexdigest()
    return SYNTHETIC_PARCEL_PREFIX + digest[:12].upper()


def is_synthetic_parcel_id(parcel_id: str) -> bool:
    return parcel_id.startswith(SYNTHETIC_PARCEL_PREFIX)


def distress_fingerprint(parcel_id: str, county: str, event_type: str, source: str) -> str:
    """Same signal for the same property and source always hashes the same (payload and time excluded)."""
    return hashlib.sha256(f"{parcel_id}:{county}:{event_type}:{source}".encode("utf-8")).hexdigest()
