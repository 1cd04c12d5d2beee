"""
Shared connection pool for the gateway endpoint

One ``requests.Session`` per proxy, created lazily and reused by every call.
Callers never touch the session directly: they take a ``ConnectionLease``
from the pool, send one request through it and release it exactly once.
"""

import logging
import queue
import threading
import time
from typing import Callable, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from ..config.connection_policy import ConnectionPolicy
from ..constants import GATEWAY_SCHEME
from ..exceptions import ConfigurationError, TransportError
from ..signing.types import HttpMethod
from .types import RequestBody

logger = logging.getLogger(__name__)


class _IdleTrackingPoolMixin:
    """Stamps each connection with the time it was returned to the pool"""
    
    def _put_conn(self, conn):
        if conn is not None:
            conn.idle_since = time.monotonic()
        super()._put_conn(conn)
    
    def close_idle(self, idle_timeout: float, now: float) -> int:
        """Close the queued connections idle for at least ``idle_timeout`` seconds"""
        pool = self.pool
        if pool is None:
            return 0
        
        kept = []
        closed = 0
        while True:
            try:
                conn = pool.get(block=False)
            except queue.Empty:
                break
            if conn is not None and now - getattr(conn, 'idle_since', now) >= idle_timeout:
                conn.close()
                conn = None
                closed += 1
            kept.append(conn)
        
        # LIFO queue: refill oldest first so the most recently used stays on top
        for conn in reversed(kept):
            try:
                pool.put(conn, block=False)
            except queue.Full:
                if conn is not None:
                    conn.close()
        return closed


class _IdleTrackingHTTPConnectionPool(_IdleTrackingPoolMixin, HTTPConnectionPool):
    pass


class _IdleTrackingHTTPSConnectionPool(_IdleTrackingPoolMixin, HTTPSConnectionPool):
    pass


class IdleTrackingHTTPAdapter(HTTPAdapter):
    """HTTPAdapter whose pooled connections are closed one by one once idle"""
    
    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            'http': _IdleTrackingHTTPConnectionPool,
            'https': _IdleTrackingHTTPSConnectionPool,
        }
    
    def close_idle_connections(self, idle_timeout: float, now: Optional[float] = None) -> int:
        """Close every pooled connection unused for at least ``idle_timeout`` seconds"""
        now = time.monotonic() if now is None else now
        pools = self.poolmanager.pools
        closed = 0
        for key in list(pools.keys()):
            pool = pools.get(key)
            if isinstance(pool, _IdleTrackingPoolMixin):
                closed += pool.close_idle(idle_timeout, now)
        return closed


class ConnectionLease:
    """
    A single call's claim on the pool
    
    Holds at most one response. ``release()`` closes that response (returning
    its connection to the pool, or discarding it if the body was not fully
    read) and frees the pool slot; later calls are no-ops.
    """
    
    def __init__(self, pool: 'ConnectionPool', session: requests.Session):
        self._pool = pool
        self._session = session
        self._lock = threading.Lock()
        self._released = False
        self.response: Optional[requests.Response] = None
    
    @property
    def released(self) -> bool:
        return self._released
    
    def send(
        self,
        method: HttpMethod,
        url: str,
        headers: Mapping[str, str],
        body: RequestBody = None
    ) -> requests.Response:
        """
        Execute one request through the pooled session.
        
        The response is streamed: its body stays unread and its connection
        stays checked out until the lease is released.
        
        Raises:
            TransportError: On timeouts, connection failures or any other
                I/O error. The lease is not released here.
        """
        if self._released:
            raise TransportError("Connection lease was already released", "LEASE_RELEASED")
        
        timeout = self._pool.policy.request_timeout
        try:
            self.response = self._session.request(
                method.value,
                url,
                headers=dict(headers),
                data=body,
                stream=True,
                timeout=(timeout, timeout),
                verify=self._pool.policy.verify_ssl,
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(
                f"Request timeout after {timeout} seconds",
                "TIMEOUT",
                {'method': method.value, 'url': url}
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(
                f"Connection error: {e}",
                "CONNECTION_ERROR",
                {'method': method.value, 'url': url}
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"Http client execution failed: {e}",
                details={'method': method.value, 'url': url}
            ) from e
        
        return self.response
    
    def release(self) -> None:
        """Give the connection back to the pool; safe to call more than once"""
        with self._lock:
            if self._released:
                return
            self._released = True
        
        try:
            if self.response is not None:
                self.response.close()
        finally:
            self._pool._on_release()


class _IdleConnectionReaper(threading.Thread):
    """Background thread that periodically closes idle pooled connections"""
    
    def __init__(self, pool: 'ConnectionPool', interval: float):
        super().__init__(name="documentdb-idle-connection-reaper", daemon=True)
        self._pool = pool
        self._interval = interval
        self._stopped = threading.Event()
    
    def run(self) -> None:
        while not self._stopped.wait(self._interval):
            self._pool.close_idle_connections()
    
    def stop(self) -> None:
        self._stopped.set()


class ConnectionPool:
    """
    Bounded pool of persistent HTTPS connections to one endpoint
    
    The HTTP client is created at most once per pool, on first use. At most
    ``max_pool_size`` leases are out at any time; waiting for one is bounded
    by ``request_timeout``. Connections that stay unused for
    ``idle_connection_timeout`` seconds are closed by a reaper thread.
    """
    
    def __init__(
        self,
        policy: ConnectionPolicy,
        session_factory: Callable[[], requests.Session] = requests.Session
    ):
        """
        Initialize the pool. No sockets or threads are created until the
        first call to ``acquire_client()``.
        
        Args:
            policy: Pool size and timeout settings
            session_factory: Builds the underlying requests session
        """
        self.policy = policy
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(policy.max_pool_size)
        self._client: Optional[requests.Session] = None
        self._adapter: Optional[IdleTrackingHTTPAdapter] = None
        self._reaper: Optional[_IdleConnectionReaper] = None
        self._in_flight = 0
        self._shutdown = False
    
    @property
    def in_flight(self) -> int:
        return self._in_flight
    
    @property
    def is_shutdown(self) -> bool:
        return self._shutdown
    
    def acquire_client(self) -> requests.Session:
        """Return the shared session, creating it on first use"""
        if self._client is None:
            with self._lock:
                if self._shutdown:
                    raise ConfigurationError("Connection pool has been shut down", "POOL_SHUTDOWN")
                if self._client is None:
                    self._client = self._create_client()
        return self._client
    
    def _create_client(self) -> requests.Session:
        session = self._session_factory()
        # Only headers composed by the pipeline go on the wire
        session.headers.clear()
        session.verify = self.policy.verify_ssl
        
        adapter = IdleTrackingHTTPAdapter(
            pool_connections=1,
            pool_maxsize=self.policy.max_pool_size,
            max_retries=0,
        )
        session.mount(f"{GATEWAY_SCHEME}://", adapter)
        self._adapter = adapter
        
        interval = max(self.policy.idle_connection_timeout / 2.0, 0.5)
        self._reaper = _IdleConnectionReaper(self, interval)
        self._reaper.start()
        
        logger.info(
            f"Created connection pool: max_pool_size={self.policy.max_pool_size}, "
            f"request_timeout={self.policy.request_timeout}s, "
            f"idle_connection_timeout={self.policy.idle_connection_timeout}s"
        )
        return session
    
    def acquire(self) -> ConnectionLease:
        """
        Check out a pool slot for one call.
        
        Raises:
            TransportError: If no slot frees up within ``request_timeout``
            ConfigurationError: If the pool was shut down
        """
        session = self.acquire_client()
        
        if not self._slots.acquire(timeout=self.policy.request_timeout):
            raise TransportError(
                f"Timed out after {self.policy.request_timeout} seconds waiting for a pooled connection",
                "POOL_EXHAUSTED",
                {'max_pool_size': self.policy.max_pool_size}
            )
        
        with self._lock:
            self._in_flight += 1
        
        return ConnectionLease(self, session)
    
    def _on_release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._slots.release()
    
    def close_idle_connections(self, now: Optional[float] = None) -> int:
        """
        Close pooled connections that have been unused for at least
        ``idle_connection_timeout`` seconds. Connections checked out by
        in-flight calls are never touched.
        
        Args:
            now: Monotonic timestamp to compare against (defaults to now)
        
        Returns:
            int: Number of connections closed
        """
        adapter = self._adapter
        if adapter is None:
            return 0
        
        closed = adapter.close_idle_connections(self.policy.idle_connection_timeout, now)
        if closed:
            logger.debug(f"Closed {closed} idle connection(s)")
        return closed
    
    def shutdown(self) -> None:
        """Stop the reaper and close every connection; safe to call more than once"""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            client, reaper = self._client, self._reaper
            self._client = None
            self._adapter = None
            self._reaper = None
        
        if reaper is not None:
            reaper.stop()
            if reaper is not threading.current_thread():
                reaper.join(timeout=1.0)
        
        if client is not None:
            client.close()
        
        logger.info("Connection pool shut down")
