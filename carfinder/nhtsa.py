# carfinder/nhtsa.py
"""VIN decoding and recall lookups against the public NHTSA APIs."""
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .utils import logger, retry

DECODER_URL = "https://vpic.nhtsa.dot.gov/api/vehicles/decodevinvaluesextended/"
RECALLS_URL = "https://api.nhtsa.gov/recalls/recallsByVehicle"


class NhtsaError(RuntimeError):
    pass


class NhtsaClient:
    def __init__(self, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(timeout=timeout)

    @retry(httpx.TransportError, tries=3, delay=1, backoff=2, target="nhtsa")
    def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        response = self._client.get(url, params=params)
        if response.is_error:
            raise NhtsaError(f"NHTSA request failed: {response.status_code} {response.reason_phrase}")
        return response.json()

    def decode_vin(self, vin: str) -> Optional[Dict[str, Any]]:
        """Return the first decoded result for ``vin``, or ``None`` if NHTSA has none."""
        data = self._get_json(f"{DECODER_URL}{quote(vin.strip(), safe='')}", {"format": "json"})
        results = (data or {}).get("Results") or []
        return results[0] if results else None

    def get_recalls(self, make: str, model: str, year: int) -> Dict[str, Any]:
        logger.debug("Fetching recalls for %s %s %s", year, make, model)
        return self._get_json(RECALLS_URL, {"make": make, "model": model, "modelYear": str(year)})

    def close(self):
        self._client.close()


_client: Optional[NhtsaClient] = None


def get_nhtsa_client() -> NhtsaClient:
    global _client
    if _client is None:
        _client = NhtsaClient()
    return _client
