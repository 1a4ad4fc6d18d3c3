"""Transcript fetcher for lesson videos hosted on Mux.

Two calls:
- list the asset's tracks: GET {MUX_API_BASE_URL}/video/v1/assets/<asset_id>/tracks (basic auth)
- download the chosen text track: GET {MUX_STREAM_BASE_URL}/<playback_id>/text/<track_id>.txt

Any failure (missing credentials, HTTP error, timeout, bad JSON) is reported
as "no transcript"; callers fall back to the lesson description.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from lesson_tutor.core.config import settings


logger = logging.getLogger(__name__)

USER_AGENT = "lesson-tutor/1.0"


def select_track(tracks: List[Dict[str, Any]], preferred_language: Optional[str] = None) -> Optional[str]:
    """Pick the transcript track to read.

    Only ready, auto-generated text tracks qualify. An exact language match
    wins; otherwise the first qualifying track in listing order (the host lists
    tracks oldest first).
    """
    candidates = [
        t
        for t in (tracks or [])
        if isinstance(t, dict)
        and t.get("id")
        and t.get("type") == "text"
        and t.get("text_source") == "generated_vod"
        and t.get("status") == "ready"
    ]
    if not candidates:
        return None

    lang = (preferred_language or "").strip().lower()
    if lang:
        for t in candidates:
            if str(t.get("language_code") or "").strip().lower() == lang:
                return str(t["id"])

    return str(candidates[0]["id"])


class MuxTranscriptProvider:
    def __init__(
        self,
        *,
        token_id: Optional[str] = None,
        token_secret: Optional[str] = None,
        api_base_url: Optional[str] = None,
        stream_base_url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        max_chars: Optional[int] = None,
    ):
        self.token_id = token_id if token_id is not None else settings.MUX_TOKEN_ID
        self.token_secret = token_secret if token_secret is not None else settings.MUX_TOKEN_SECRET
        self.api_base_url = (api_base_url or settings.MUX_API_BASE_URL).rstrip("/")
        self.stream_base_url = (stream_base_url or settings.MUX_STREAM_BASE_URL).rstrip("/")
        self.timeout_sec = float(timeout_sec or settings.TRANSCRIPT_HTTP_TIMEOUT_SEC)
        self.max_chars = int(max_chars or settings.TRANSCRIPT_MAX_CHARS)

    def configured(self) -> bool:
        return bool(self.token_id and self.token_secret)

    def _auth_header(self) -> str:
        raw = f"{self.token_id}:{self.token_secret}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def _http_get(self, url: str, *, headers: Optional[Dict[str, str]] = None) -> bytes:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **(headers or {})})
        with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
            return resp.read()

    def list_tracks(self, asset_id: str) -> List[Dict[str, Any]]:
        safe_id = urllib.parse.quote(str(asset_id), safe="")
        url = f"{self.api_base_url}/video/v1/assets/{safe_id}/tracks"
        data = self._http_get(url, headers={"Authorization": self._auth_header()})
        obj = json.loads(data.decode("utf-8"))
        tracks = obj.get("data") if isinstance(obj, dict) else None
        return [t for t in (tracks or []) if isinstance(t, dict)]

    def download_text(self, playback_id: str, track_id: str, *, token: Optional[str] = None) -> Optional[str]:
        pid = urllib.parse.quote(str(playback_id), safe="")
        tid = urllib.parse.quote(str(track_id), safe="")
        url = f"{self.stream_base_url}/{pid}/text/{tid}.txt"
        if token:
            url += "?token=" + urllib.parse.quote(token, safe="")
        text = self._http_get(url).decode("utf-8", errors="replace")
        return text[: self.max_chars]

    def fetch_transcript(
        self,
        *,
        asset_id: str,
        playback_id: str,
        preferred_language: Optional[str] = None,
    ) -> Optional[str]:
        if not self.configured():
            logger.warning("Transcript provider not configured (MUX_TOKEN_ID / MUX_TOKEN_SECRET missing)")
            return None

        try:
            track_id = select_track(self.list_tracks(asset_id), preferred_language)
            if not track_id:
                return None
            text = self.download_text(playback_id, track_id)
        except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
            logger.warning("Transcript fetch failed for asset %s: %s: %s", asset_id, type(e).__name__, str(e)[:200])
            return None

        text = (text or "").strip()
        return text or None
