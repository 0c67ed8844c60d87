from __future__ import annotations

import logging
import queue
import socket
import ssl
import threading
from typing import Callable, Iterator, List, Optional, Sequence, Set, Tuple

import requests

from .models import EndpointGroup, ProbeResult, StatusMessage

USER_AGENT = "vhost-audit/0.1"


def proto_for_port(port: int) -> str:
    if port == 80:
        return "http"
    if port == 443:
        return "https"
    return ""


def iter_causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk an exception and everything it wraps.

    requests nests the socket-level error a few layers down: inside ``args``,
    urllib3's ``MaxRetryError.reason`` and the ``__cause__`` chain.
    """
    seen: Set[int] = set()
    stack: List[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur
        linked = [cur.__cause__, cur.__context__, getattr(cur, "reason", None)]
        linked += [a for a in getattr(cur, "args", ()) if isinstance(a, BaseException)]
        stack.extend(e for e in linked if isinstance(e, BaseException))


def classify_error(exc: BaseException) -> StatusMessage:
    causes = list(iter_causes(exc))

    def has(kind) -> bool:
        return any(isinstance(c, kind) for c in causes)

    if isinstance(exc, requests.exceptions.Timeout) or has(TimeoutError) or has(socket.timeout):
        return StatusMessage.TIMEOUT
    if has(ConnectionRefusedError):
        return StatusMessage.CONN_REFUSED
    if has(socket.gaierror):
        return StatusMessage.NO_HOST
    if has(ssl.SSLCertVerificationError):
        return StatusMessage.FAILED_TO_VERIFY_CERTIFICATE
    if has(ConnectionResetError):
        return StatusMessage.CONN_RESET
    return StatusMessage.UNKNOWN


class ProbeEngine:
    """Fixed-size thread pool that GETs every (server_name, port) pair once.

    The job queue is filled before the workers start and every job yields
    exactly one result, so draining ``total`` results always terminates.

    ``timeout`` bounds each connect and each socket read on its own. It is
    not a deadline for the whole request, so a slow redirect chain can take
    several timeouts; sessions follow at most ``MAX_REDIRECTS`` hops.
    """

    MAX_REDIRECTS = 10

    def __init__(
        self,
        timeout: float = 5.0,
        concurrency: int = 10,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.timeout = timeout
        self.concurrency = concurrency
        self.log = logger or logging.getLogger(__name__)
        self.session_factory = session_factory

    @staticmethod
    def expand(groups: Sequence[EndpointGroup]) -> List[Tuple[str, str]]:
        jobs: List[Tuple[str, str]] = []
        for g in groups:
            jobs.extend(g.pairs())
        return jobs

    def probe(self, groups: Sequence[EndpointGroup]) -> List[ProbeResult]:
        pairs = self.expand(groups)
        total = len(pairs)
        self.log.debug("total jobs: %d", total)
        if total == 0:
            return []

        jobs: queue.Queue[Tuple[str, str]] = queue.Queue(maxsize=total)
        results: queue.Queue[ProbeResult] = queue.Queue(maxsize=total)
        for pair in pairs:
            jobs.put_nowait(pair)

        workers: List[threading.Thread] = []
        for n in range(self.concurrency):
            t = threading.Thread(target=self._worker, args=(jobs, results), name=f"probe-{n + 1}", daemon=True)
            t.start()
            workers.append(t)

        collected: List[ProbeResult] = []
        for current in range(1, total + 1):
            result = results.get()
            self.log.debug(
                "got server status %s:%s -> %s %s (%d/%d)",
                result.server_name, result.port, result.status_code, result.status_message, current, total,
            )
            collected.append(result)
        for t in workers:
            t.join()
        return collected

    def new_session(self) -> requests.Session:
        session = self.session_factory()
        session.headers.update({"User-Agent": USER_AGENT})
        session.max_redirects = self.MAX_REDIRECTS
        return session

    def _worker(self, jobs: queue.Queue, results: queue.Queue) -> None:
        session: Optional[requests.Session] = None
        try:
            session = self.new_session()
        except Exception:
            # jobs are still drained below, each one reported as UNKNOWN
            self.log.exception("could not create http session")
        try:
            while True:
                try:
                    server_name, port = jobs.get_nowait()
                except queue.Empty:
                    return
                if session is None:
                    results.put_nowait(self._unknown(server_name, port))
                    continue
                try:
                    results.put_nowait(self.probe_one(session, server_name, port))
                except Exception:
                    self.log.exception("status check of %s:%s crashed", server_name, port)
                    results.put_nowait(self._unknown(server_name, port))
        finally:
            if session is not None:
                session.close()

    @staticmethod
    def _unknown(server_name: str, port: str) -> ProbeResult:
        return ProbeResult(
            server_name=server_name,
            port=int(port) if port.lstrip("+-").isdigit() else 0,
            status_message=StatusMessage.UNKNOWN,
        )

    def url_for(self, server_name: str, port: int) -> str:
        return f"{proto_for_port(port)}://{server_name}:{port}"

    def probe_one(self, session: requests.Session, server_name: str, port: str) -> ProbeResult:
        try:
            int_port = int(port)
        except ValueError as e:
            self.log.error("failed to convert port to int: %s", e)
            return ProbeResult(
                server_name=server_name,
                port=0,
                status_code=0,
                status_message=f"failed to convert port to int: {e}",
            )

        url = self.url_for(server_name, int_port)
        self.log.debug("getting url %s", url)
        try:
            resp = session.get(url, timeout=self.timeout, stream=True)
        except requests.exceptions.RequestException as e:
            status = classify_error(e)
            self.log.debug("server status check failed for %s: %s (%s)", url, status.value, e)
            return ProbeResult(server_name=server_name, port=int_port, status_code=0, status_message=status)
        try:
            return ProbeResult(
                server_name=server_name,
                port=int_port,
                status_code=resp.status_code,
                status_message=StatusMessage.OK,
            )
        finally:
            resp.close()
