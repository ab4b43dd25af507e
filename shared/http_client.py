from urllib.parse import urljoin

import requests


class SupabaseHttpClient:
    """
    Simple HTTP client for talking to a Supabase project.

    Always sends the apikey header. The Authorization header carries the
    caller's access token when one is bound, otherwise the key itself.
    """

    def __init__(self, base_url: str, api_key: str, access_token: str = None, timeout: int = 10):
        if not base_url.endswith("/"):
            base_url += "/"
        self.base_url = base_url
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout

    def _headers(self, extra: dict = None) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def request(self, method: str, path: str, params=None, json=None, headers: dict = None, **kwargs):
        # Use per-call timeout if provided, otherwise default
        timeout = kwargs.pop("timeout", self.timeout)

        return requests.request(
            method,
            self.url(path),
            params=params,
            json=json,
            headers=self._headers(headers),
            timeout=timeout,
            **kwargs,
        )
