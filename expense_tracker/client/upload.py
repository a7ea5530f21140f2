from typing import Callable, List, Optional
import logging
from expense_tracker.client.api import ApiError, ExpenseApiClient

logger = logging.getLogger(__name__)

class ProgressChannel:
    """
    Upload progress as a finite stream of percentages for a single observer.

    Values never decrease; a lower or repeated value is dropped. Once closed
    (completion, error or cancellation) the channel accepts nothing further
    and cannot be reopened. A retry uses a new channel.
    """

    def __init__(self):
        self._observer: Optional[Callable[[int], None]] = None
        self.percent = 0
        self.closed = False
        self.outcome: Optional[str] = None

    def subscribe(self, observer: Callable[[int], None]) -> None:
        if self._observer is not None:
            raise RuntimeError("ProgressChannel already has an observer")
        self._observer = observer

    def publish(self, percent: int) -> None:
        if self.closed:
            return
        percent = max(0, min(100, percent))
        if percent <= self.percent:
            return
        self.percent = percent
        if self._observer:
            self._observer(percent)

    def publish_bytes(self, sent: int, total: int) -> None:
        self.publish(round(sent / total * 100) if total else 100)

    def close(self, outcome: str) -> None:
        if not self.closed:
            self.closed = True
            self.outcome = outcome

class UploadError(Exception):
    """The handshake aborted at `step` ("sign", "transfer" or "attach")."""

    def __init__(self, step: str, message: str):
        super().__init__(message)
        self.step = step

class UploadHandshake:
    """
    Sign, transfer, attach. Each step runs only if the previous one succeeded,
    so a failure anywhere leaves the expense's receipt untouched. One-shot: a
    retry needs a new handshake.
    """

    STEPS: List[str] = ["sign", "transfer", "attach"]

    def __init__(self, api: ExpenseApiClient, expense_id: int, filename: str, content_type: str, data: bytes):
        self.api = api
        self.expense_id = expense_id
        self.filename = filename
        self.content_type = content_type
        self.data = data
        self.progress = ProgressChannel()
        self.key: Optional[str] = None
        self._started = False

    async def run(self) -> str:
        """Run all three steps and return the attached storage key."""
        if self._started:
            raise RuntimeError("UploadHandshake cannot be restarted; start a new one")
        self._started = True

        step = "sign"
        try:
            signed = await self.api.sign_upload(self.filename, self.content_type)

            step = "transfer"
            await self.api.put_object(signed.upload_url, self.data, self.content_type, self.progress.publish_bytes)
            self.progress.publish(100)

            step = "attach"
            await self.api.attach_file(self.expense_id, signed.key)
        except ApiError as e:
            logger.warning(f"Upload for expense {self.expense_id} aborted at {step}: {e}")
            self.progress.close("error")
            raise UploadError(step, str(e)) from e
        except BaseException:
            self.progress.close("cancelled")
            raise

        self.key = signed.key
        self.progress.close("complete")
        logger.info(f"Receipt {signed.key} attached to expense {self.expense_id}")
        return signed.key
