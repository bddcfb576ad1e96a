"""
PIN code lookup against the India Post directory (api.postalpincode.in).

The service answers with a one-element list::

    [{"Status": "Success", "PostOffice": [{"Name": ..., "District": ..., "State": ...}]}]

``Status`` is ``"Error"`` (and ``PostOffice`` null) for unknown PIN codes.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

import httpx

from funprints.errors import LookupUnavailable

logger = logging.getLogger("funprints.postal")

_PINCODE_RE = re.compile(r"^\d{6}$")


@dataclass(frozen=True)
class Locality:
    name: str
    district: str
    state: str


class PostalLookup:
    def __init__(
        self,
        base_url: str = "https://api.postalpincode.in/pincode",
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def lookup(self, pincode: str) -> List[Locality]:
        """Return the localities served by ``pincode``; empty when unknown.

        Raises ``LookupUnavailable`` when the service cannot be reached or
        answers with something other than a 2xx JSON body.
        """
        if not _PINCODE_RE.match(pincode or ""):
            raise ValueError(f"PIN code must be 6 digits, got {pincode!r}")

        url = f"{self.base_url}/{pincode}"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("PIN code lookup for %s failed: %s", pincode, e)
            raise LookupUnavailable() from e

        return self._parse(data)

    @staticmethod
    def _parse(data) -> List[Locality]:
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise LookupUnavailable("Unexpected response from PIN code service")
        entry = data[0]
        if entry.get("Status") != "Success":
            return []
        offices = entry.get("PostOffice") or []
        return [
            Locality(
                name=o.get("Name", ""),
                district=o.get("District", ""),
                state=o.get("State", ""),
            )
            for o in offices
            if o.get("Name")
        ]
