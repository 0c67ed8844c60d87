import threading
from typing import Dict, List

import pytest


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stands in for requests.Session; outcomes map URL -> status code or exception."""

    def __init__(self, outcomes: Dict[str, object], calls: List[str], lock: threading.Lock) -> None:
        self.outcomes = outcomes
        self.calls = calls
        self.lock = lock
        self.headers: Dict[str, str] = {}

    def get(self, url, timeout=None, stream=False):
        with self.lock:
            self.calls.append(url)
        outcome = self.outcomes.get(url, 200)
        if isinstance(outcome, BaseException):
            raise outcome
        return FakeResponse(outcome)

    def close(self) -> None:
        pass


class FakeNetwork:
    def __init__(self) -> None:
        self.outcomes: Dict[str, object] = {}
        self.calls: List[str] = []
        self.lock = threading.Lock()

    def session(self) -> FakeSession:
        return FakeSession(self.outcomes, self.calls, self.lock)


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


NGINX_CONF = """
http {
    server {
        listen 80;
        server_name www.example.com example.com;
        return 301 https://$host$request_uri;
    }

    server {
        listen 443 ssl http2;
        listen [::]:443 ssl http2;
        server_name www.example.com;
        location / {
            proxy_pass http://app;
        }
    }

    server {
        listen 8080;
        server_name admin.example.com;
    }

    server {
        listen 80 default_server;
        server_name _;
    }
}
"""


@pytest.fixture
def nginx_conf(tmp_path):
    path = tmp_path / "nginx.conf"
    path.write_text(NGINX_CONF, encoding="utf-8")
    return path
