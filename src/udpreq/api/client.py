from __future__ import annotations
import httpx

class SimApiClient:
    """Control-plane client for the reply simulator's HTTP API."""

    def __init__(self, base_url: str, timeout_s: float = 2.0, client: httpx.Client | None = None):
        # an injected client (e.g. fastapi's TestClient) talks to the app in-process
        self._client = client if client is not None else httpx.Client(base_url=base_url, timeout=timeout_s)

    def close(self) -> None:
        self._client.close()

    def health(self) -> dict:
        r = self._client.get("/health")
        r.raise_for_status()
        return r.json()

    def status(self) -> dict:
        r = self._client.get("/status")
        r.raise_for_status()
        return r.json()

    def reset(self) -> dict:
        r = self._client.post("/control/reset")
        r.raise_for_status()
        return r.json()

    def get_faults(self) -> dict:
        r = self._client.get("/control/faults")
        r.raise_for_status()
        return r.json()

    def set_faults(self, delay_ms: int = 0, drop_rate: float = 0.0, corrupt_rate: float = 0.0) -> dict:
        r = self._client.post(
            "/control/faults",
            json={"delay_ms": delay_ms, "drop_rate": drop_rate, "corrupt_rate": corrupt_rate},
        )
        r.raise_for_status()
        return r.json()
