import pytest
import requests

from guildwatch.health import Component, HealthState, HealthStatus
from guildwatch.models import Track, VideoItem
from guildwatch.youtube import YouTubeSource


class FakeResp:
    def __init__(self, payload=None, status=200):
        self._payload = payload
        self.status_code = status
        self.ok = status < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error:
            raise self.error
        return self.response


def _source(monkeypatch, session, health=None):
    src = YouTubeSource(api_key="k", base_url="https://yt.test/v3/", timeout=3, health=health)
    monkeypatch.setattr(src, "_get_session", lambda: session)
    return src


SEARCH_BODY = {
    "items": [
        {
            "id": {"kind": "youtube#video", "videoId": "abc123"},
            "snippet": {
                "title": "Hello",
                "description": "World",
                "publishedAt": "2025-01-01T00:00:00Z",
                "channelId": "UC1",
                "channelTitle": "Chan",
            },
        }
    ]
}


def test_params_per_track():
    src = YouTubeSource(api_key="k")
    upload = src.build_params("UC1", Track.UPLOAD)
    assert "eventType" not in upload
    assert upload["order"] == "date"
    assert upload["maxResults"] == 1
    assert upload["type"] == "video"
    assert src.build_params("UC1", Track.LIVE)["eventType"] == "live"
    assert src.build_params("UC1", Track.SCHEDULED)["eventType"] == "upcoming"


def test_fetch_latest_returns_first_item(monkeypatch):
    session = FakeSession(FakeResp(SEARCH_BODY))
    health = HealthStatus()
    item = _source(monkeypatch, session, health).fetch_latest("UC1", Track.LIVE)

    assert item.video_id == "abc123"
    assert item.title == "Hello"
    assert item.url == "https://www.youtube.com/watch?v=abc123"
    url, params, timeout = session.calls[0]
    assert url == "https://yt.test/v3/search"
    assert params["channelId"] == "UC1"
    assert timeout == 3
    assert health.component(Component.YOUTUBE) == HealthState.HEALTHY


def test_empty_result_is_none(monkeypatch):
    assert _source(monkeypatch, FakeSession(FakeResp({"items": []}))).fetch_latest("UC1", Track.UPLOAD) is None


def test_item_without_video_id_is_none(monkeypatch):
    body = {"items": [{"id": {"kind": "youtube#channel"}}]}
    assert _source(monkeypatch, FakeSession(FakeResp(body))).fetch_latest("UC1", Track.UPLOAD) is None


def test_http_error_is_absorbed(monkeypatch):
    health = HealthStatus()
    src = _source(monkeypatch, FakeSession(FakeResp({"error": {}}, status=403)), health)
    assert src.fetch_latest("UC1", Track.UPLOAD) is None
    assert health.component(Component.YOUTUBE) == HealthState.DEGRADED


def test_network_error_is_absorbed(monkeypatch):
    src = _source(monkeypatch, FakeSession(error=requests.ConnectionError("down")))
    assert src.fetch_latest("UC1", Track.UPLOAD) is None


def test_bad_json_is_absorbed(monkeypatch):
    src = _source(monkeypatch, FakeSession(FakeResp(ValueError("nope"))))
    assert src.fetch_latest("UC1", Track.UPLOAD) is None


def test_empty_channel_id_skips_request(monkeypatch):
    session = FakeSession(FakeResp(SEARCH_BODY))
    assert _source(monkeypatch, session).fetch_latest("", Track.UPLOAD) is None
    assert session.calls == []


@pytest.mark.parametrize(
    "body",
    [
        {"items": ["x"]},
        {"items": [{"id": "abc"}]},
        {"items": [{"id": {"videoId": 42}}]},
        {"items": {"id": {"videoId": "x"}}},
        ["not", "an", "object"],
    ],
)
def test_malformed_body_is_absorbed(monkeypatch, body):
    health = HealthStatus()
    src = _source(monkeypatch, FakeSession(FakeResp(body)), health)
    assert src.fetch_latest("UC1", Track.UPLOAD) is None
    assert health.component(Component.YOUTUBE) == HealthState.DEGRADED


def test_item_with_bad_snippet_keeps_video_id():
    item = VideoItem.from_search_item({"id": {"videoId": "abc"}, "snippet": "oops"})
    assert item.video_id == "abc"
    assert item.title == ""
