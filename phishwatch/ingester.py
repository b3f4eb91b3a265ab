"""Ingester: classifies CertStream frames and feeds certificate updates to the processor."""
from .commons import CertificateUpdate, Heartbeat, MalformedMessageError
from typing import Any, Dict, List, Mapping, Optional, Union, cast

import asyncio
import certstream
import json
import threading
import structlog

logger = structlog.get_logger(__name__)

StreamMessage = Union[Heartbeat, CertificateUpdate]
Payload = Union[str, bytes, bytearray, Mapping[str, Any]]


# ---- Message classification ----

class MessageClassifier:
    """Routes one stream payload to a StreamMessage, or None when it is ignored."""

    HEARTBEAT: str = "heartbeat"
    CERTIFICATE_UPDATE: str = "certificate_update"

    @staticmethod
    def decode(payload: Payload) -> Dict[str, Any]:
        if isinstance(payload, Mapping):
            return dict(payload)
        try:
            frame: Any = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise MalformedMessageError(f"Undecodable stream payload: {e}") from e
        if not isinstance(frame, dict):
            raise MalformedMessageError("Stream payload is not a JSON object")
        return cast(Dict[str, Any], frame)

    @staticmethod
    def classify(payload: Payload) -> Optional[StreamMessage]:
        """Classify a text payload or an already-decoded frame.

        Raises:
            MalformedMessageError: If the payload is not JSON, or a certificate
                update lacks data.leaf_cert.all_domains.
        """
        frame: Dict[str, Any] = MessageClassifier.decode(payload)
        message_type: Any = frame.get("message_type")
        if not isinstance(message_type, str):
            raise MalformedMessageError("Stream payload has no message_type")

        if MessageClassifier.HEARTBEAT in message_type:
            return Heartbeat()
        if MessageClassifier.CERTIFICATE_UPDATE not in message_type:
            return None

        data = frame.get("data")
        leaf_cert = data.get("leaf_cert") if isinstance(data, dict) else None
        all_domains = leaf_cert.get("all_domains") if isinstance(leaf_cert, dict) else None
        if not isinstance(all_domains, list):
            raise MalformedMessageError("certificate_update without data.leaf_cert.all_domains")
        domains: List[str] = [d for d in all_domains if isinstance(d, str)]
        if len(domains) != len(all_domains):
            raise MalformedMessageError("all_domains holds non-string entries")
        return CertificateUpdate(domains=tuple(domains))


# ---- CertStream source ----

class CertStream:
    """Runs the blocking certstream listener in a worker thread.

    Certificate updates are handed to the event loop's queue in arrival
    order; heartbeats and unknown frames are dropped here.
    """

    def __init__(self, url: str, queue: "asyncio.Queue[CertificateUpdate]") -> None:
        self.url = url
        self.queue = queue
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    async def start(self) -> None:
        """Listen until the transport gives up; its error ends the run.

        The listener reconnects on its own and never returns normally, so it
        runs on a daemon thread the event loop does not wait for at shutdown.
        """
        self._loop = asyncio.get_running_loop()
        closed: "asyncio.Future[None]" = self._loop.create_future()
        logger.info("certstream_connecting", url=self.url)
        self._start_listener_thread(closed)
        await closed
        logger.warning("certstream_closed", url=self.url)

    def _start_listener_thread(self, closed: "asyncio.Future[None]") -> None:
        loop = cast(asyncio.AbstractEventLoop, self._loop)

        def settle(error: Optional[BaseException]) -> None:
            if closed.done():
                return
            if error is None:
                closed.set_result(None)
            else:
                closed.set_exception(error)

        def target() -> None:
            error: Optional[BaseException] = None
            try:
                certstream.listen_for_events(
                    self._cert_callback,
                    url=self.url,
                    skip_heartbeats=False,
                    setup_logger=False,
                    on_error=self._on_error,
                )
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(settle, error)
            except RuntimeError:
                # event loop already closed; nobody is waiting
                return

        self._thread = threading.Thread(target=target, name="certstream", daemon=True)
        self._thread.start()

    def _cert_callback(self, message: Any, _context: Any) -> None:
        """Synchronous callback executed in the certstream listener thread."""
        try:
            classified: Optional[StreamMessage] = MessageClassifier.classify(message)
        except MalformedMessageError as e:
            logger.warning("malformed_message_skipped", error=str(e))
            return
        if isinstance(classified, CertificateUpdate) and classified.domains:
            self.publish(classified)

    def publish(self, update: CertificateUpdate) -> None:
        if self._loop is None:
            raise RuntimeError("CertStream.publish called before start()")
        self._loop.call_soon_threadsafe(self.queue.put_nowait, update)

    @staticmethod
    def _on_error(error: Exception) -> None:
        logger.warning("certstream_error", error=str(error))


class Ingester:
    """Owns the certificate-update queue shared with the processor."""

    def __init__(self, url: str) -> None:
        self.queue: "asyncio.Queue[CertificateUpdate]" = asyncio.Queue()
        self.source = CertStream(url, self.queue)

    async def start(self) -> None:
        await self.source.start()
