from typing import Callable, Optional
import logging
import httpx
from expense_tracker.schemas.expense import Expense, ExpenseList
from expense_tracker.schemas.upload import SignUploadResponse

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

class ApiError(Exception):
    """Non-2xx response or transport failure talking to the backend or object storage."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class ExpenseApiClient:
    """Thin async wrapper over the REST surface. One method per endpoint."""

    def __init__(self, http: httpx.AsyncClient, api_prefix: str = "/api", chunk_size: int = 64 * 1024):
        self._http = http
        self._prefix = api_prefix.rstrip("/")
        self.chunk_size = chunk_size

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.request(method, f"{self._prefix}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e!r}")
            raise ApiError(f"Network error: {e}") from e

    async def list_expenses(self) -> ExpenseList:
        response = await self._request("GET", "/expenses")
        if response.is_error:
            raise ApiError(f"HTTP {response.status_code}: {response.text or response.reason_phrase}", response.status_code)
        return ExpenseList.model_validate(response.json())

    async def get_expense(self, expense_id: int) -> Expense:
        response = await self._request("GET", f"/expenses/{expense_id}")
        if response.is_error:
            raise ApiError(f"Failed to fetch expense with id {expense_id}", response.status_code)
        return Expense.model_validate(response.json()["expense"])

    async def create_expense(self, title: str, amount: float) -> Expense:
        response = await self._request("POST", "/expenses", json={"title": title, "amount": amount})
        if response.is_error:
            raise ApiError(response.text or "Failed to add expense", response.status_code)
        return Expense.model_validate(response.json()["expense"])

    async def delete_expense(self, expense_id: int) -> int:
        response = await self._request("DELETE", f"/expenses/{expense_id}")
        if response.is_error:
            raise ApiError("Failed to delete expense", response.status_code)
        return expense_id

    async def sign_upload(self, filename: str, content_type: str) -> SignUploadResponse:
        try:
            response = await self._request("POST", "/upload/sign", json={"filename": filename, "type": content_type})
        except ApiError as e:
            raise ApiError("Failed to get upload URL") from e
        if response.is_error:
            raise ApiError("Failed to get upload URL", response.status_code)
        return SignUploadResponse.model_validate(response.json())

    async def put_object(
        self,
        upload_url: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> None:
        """PUT raw bytes straight to a pre-signed URL, reporting bytes sent after each chunk."""
        total = len(data)

        async def chunks():
            sent = 0
            for start in range(0, total, self.chunk_size):
                chunk = data[start:start + self.chunk_size]
                yield chunk
                sent += len(chunk)
                if on_progress:
                    on_progress(sent, total)

        headers = {"Content-Type": content_type, "Content-Length": str(total)}
        try:
            response = await self._http.put(upload_url, content=chunks(), headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"PUT to object storage failed: {e!r}")
            raise ApiError("Network error during upload") from e
        if not 200 <= response.status_code < 300:
            raise ApiError(f"Upload failed with status {response.status_code}", response.status_code)

    async def attach_file(self, expense_id: int, file_key: str) -> None:
        try:
            response = await self._request("PATCH", f"/expenses/{expense_id}", json={"fileKey": file_key})
        except ApiError as e:
            raise ApiError("Failed to update expense") from e
        if response.is_error:
            raise ApiError("Failed to update expense", response.status_code)
