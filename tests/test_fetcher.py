import requests

from docmirror.crawler import CrawlConfig, Fetcher


URL = "https://docs.example.com/documentation"


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b"<html></html>") -> None:
        self.status_code = status_code
        self.content = content
        self.url = URL
        self.headers = {"Content-Type": "text/html"}


def make_fetcher(tmp_path, **overrides) -> Fetcher:
    options = {
        "start_url": URL,
        "output_dir": tmp_path,
        "retries": 2,
        "retry_backoff_seconds": 0.0,
    }
    options.update(overrides)
    return Fetcher(CrawlConfig(**options))


def scripted_get(monkeypatch, outcomes):
    calls = []

    def fake_get(self, url, headers=None, timeout=None, allow_redirects=True):
        calls.append((url, headers, timeout))
        outcome = outcomes[min(len(calls), len(outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(requests.Session, "get", fake_get)
    return calls


def test_successful_fetch(monkeypatch, tmp_path):
    calls = scripted_get(monkeypatch, [FakeResponse(200, b"<html>ok</html>")])

    with make_fetcher(tmp_path, user_agent="mirror-bot/1.0", timeout_seconds=5.0) as fetcher:
        result = fetcher.fetch(URL + "/#top")

    assert result.ok
    assert result.body == b"<html>ok</html>"
    assert result.content_type == "text/html"
    assert calls == [(URL, calls[0][1], 5.0)]
    assert calls[0][1]["User-Agent"] == "mirror-bot/1.0"


def test_transient_status_is_retried(monkeypatch, tmp_path):
    calls = scripted_get(monkeypatch, [FakeResponse(503), FakeResponse(200)])

    result = make_fetcher(tmp_path).fetch(URL)

    assert result.ok
    assert len(calls) == 2


def test_client_error_is_not_retried(monkeypatch, tmp_path):
    calls = scripted_get(monkeypatch, [FakeResponse(404)])

    result = make_fetcher(tmp_path).fetch(URL)

    assert not result.ok
    assert result.status_code == 404
    assert result.failure_message == "HTTP status 404"
    assert len(calls) == 1


def test_transport_errors_exhaust_retries(monkeypatch, tmp_path):
    calls = scripted_get(monkeypatch, [requests.ConnectionError("refused")])

    result = make_fetcher(tmp_path, retries=1).fetch(URL)

    assert not result.ok
    assert result.status_code is None
    assert "ConnectionError" in result.failure_message
    assert len(calls) == 2


def test_invalid_url_is_reported(tmp_path):
    result = make_fetcher(tmp_path).fetch("not a url")
    assert not result.ok
    assert result.error == "Invalid or unsupported URL"


def test_closed_fetcher_refuses_work(monkeypatch, tmp_path):
    calls = scripted_get(monkeypatch, [FakeResponse(200)])
    fetcher = make_fetcher(tmp_path)
    fetcher.close()

    result = fetcher.fetch(URL)

    assert result.error == "Fetcher is closed"
    assert calls == []
