from __future__ import annotations

import json
import urllib.error

from lesson_tutor.services.transcript_provider import MuxTranscriptProvider, select_track


def _track(track_id, *, lang="en", status="ready", source="generated_vod", kind="text"):
    return {"id": track_id, "type": kind, "status": status, "text_source": source, "language_code": lang}


def test_select_track_prefers_exact_language_match():
    tracks = [_track("t-en", lang="en"), _track("t-tr", lang="tr")]
    assert select_track(tracks, "TR") == "t-tr"


def test_select_track_falls_back_to_first_ready_generated_track():
    tracks = [
        _track("video", kind="video"),
        _track("preparing", status="preparing"),
        _track("uploaded", source="uploaded"),
        _track("t-en", lang="en"),
        _track("t-de", lang="de"),
    ]
    assert select_track(tracks, "tr") == "t-en"
    assert select_track(tracks, None) == "t-en"


def test_select_track_none_when_nothing_ready():
    assert select_track([_track("p", status="preparing")], "en") is None
    assert select_track([], "en") is None


def _provider(**kwargs):
    return MuxTranscriptProvider(
        token_id="tid",
        token_secret="secret",
        api_base_url="https://api.example.test",
        stream_base_url="https://stream.example.test",
        timeout_sec=2,
        **kwargs,
    )


def test_fetch_transcript_lists_tracks_then_downloads_text(monkeypatch):
    provider = _provider(max_chars=12)
    seen = []

    def _fake_get(url, *, headers=None):
        seen.append((url, dict(headers or {})))
        if url.endswith("/tracks"):
            return json.dumps({"data": [_track("t-en", lang="en"), _track("t-tr", lang="tr")]}).encode("utf-8")
        return b"  transcript body that is long  "

    monkeypatch.setattr(provider, "_http_get", _fake_get)

    got = provider.fetch_transcript(asset_id="asset-1", playback_id="play-1", preferred_language="tr")

    assert got == "transcript"
    assert seen[0][0] == "https://api.example.test/video/v1/assets/asset-1/tracks"
    assert seen[0][1]["Authorization"].startswith("Basic ")
    assert seen[1][0] == "https://stream.example.test/play-1/text/t-tr.txt"


def test_fetch_transcript_returns_none_on_http_failure(monkeypatch):
    provider = _provider()

    def _boom(url, *, headers=None):
        raise urllib.error.URLError("timed out")

    monkeypatch.setattr(provider, "_http_get", _boom)

    assert provider.fetch_transcript(asset_id="a", playback_id="p") is None


def test_fetch_transcript_without_credentials_skips_network(monkeypatch):
    provider = MuxTranscriptProvider(token_id="", token_secret="")

    def _never(*_args, **_kwargs):
        raise AssertionError("network must not be called")

    monkeypatch.setattr(provider, "_http_get", _never)

    assert provider.configured() is False
    assert provider.fetch_transcript(asset_id="a", playback_id="p") is None
