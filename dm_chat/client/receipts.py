"""Best-effort read receipts posted from a background worker."""
import queue
import threading
from typing import Optional, Tuple

from .api import APIClient, logger

Receipt = Tuple[int, str, int]


class ReadReceiptQueue:
    """Posts ``/room/read/{id}`` calls off the UI thread.

    Failures are logged and otherwise ignored: read state never blocks message
    display or sending.
    """

    def __init__(self, api: APIClient):
        self.api = api
        self._queue: "queue.Queue[Optional[Receipt]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.failures = 0

    def submit(self, room_id: int, username: str, last_read_id: int) -> None:
        self._ensure_worker()
        self._queue.put((room_id, username, last_read_id))

    def join(self) -> None:
        """Block until every submitted receipt has been attempted."""
        self._queue.join()

    def stop(self) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            self._queue.put(None)
            thread.join()

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._work, name="read-receipts", daemon=True)
                self._thread.start()

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                self._post(*item)
            finally:
                self._queue.task_done()

    def _post(self, room_id: int, username: str, last_read_id: int) -> None:
        res = self.api.mark_read(room_id, username, last_read_id)
        if not res.succeeded:
            self.failures += 1
            logger.warning(
                "READ_RECEIPT_FAIL room_id=%s username=%s last_read_id=%s error=%s",
                room_id,
                username,
                last_read_id,
                res.error_message("rejected"),
            )
