"""
View-models for the four screens: expense list, add-form, detail, upload-form.

They hold exactly the state a renderer needs and forward user actions to the
cache and mutation protocol. Nothing here draws anything.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union
import logging
from expense_tracker.client.api import ApiError
from expense_tracker.client.cache import QueryEntry
from expense_tracker.client.expenses import (
    EXPENSES_KEY,
    LIST_RETRY,
    LIST_STALE_TIME,
    create_expense_mutation,
    delete_expense_mutation,
    parse_amount,
    expense_detail_key,
    validate_new_expense,
)
from expense_tracker.client.session import Session
from expense_tracker.client.upload import UploadError, UploadHandshake
from expense_tracker.schemas.expense import Expense, ExpenseList

logger = logging.getLogger(__name__)

def format_amount(amount: float) -> str:
    return f"${amount:.2f}"

class QueryView:
    """Base for views bound to one cache key; counts renders triggered by cache changes."""

    def __init__(self, session: Session, key):
        self.session = session
        self.key = key
        self.renders = 0
        self._unsubscribe = session.cache.subscribe(key, self._on_change)

    def _on_change(self, entry: QueryEntry) -> None:
        self.renders += 1

    @property
    def entry(self) -> QueryEntry:
        return self.session.cache.entry(self.key)

    @property
    def is_loading(self) -> bool:
        return self.entry.status == "pending"

    @property
    def is_error(self) -> bool:
        return self.entry.status == "error"

    @property
    def error_message(self) -> Optional[str]:
        return str(self.entry.error) if self.entry.error is not None else None

    @property
    def is_fetching(self) -> bool:
        return self.entry.is_fetching

    async def refresh(self) -> None:
        try:
            await self.session.cache.refetch(self.key)
        except ApiError as e:
            logger.warning(f"Refresh of {self.key} failed: {e}")

    def close(self) -> None:
        self._unsubscribe()

class ExpenseListView(QueryView):
    def __init__(self, session: Session, confirm: Optional[Callable[[str], bool]] = None):
        super().__init__(session, EXPENSES_KEY)
        self.confirm = confirm
        self.delete_mutation = delete_expense_mutation(session)

    async def load(self) -> None:
        try:
            await self.session.cache.fetch_query(
                EXPENSES_KEY, self.session.api.list_expenses, retry=LIST_RETRY, stale_time=LIST_STALE_TIME
            )
        except ApiError as e:
            logger.warning(f"Could not load expenses: {e}")

    @property
    def items(self) -> List[Expense]:
        data: Optional[ExpenseList] = self.entry.data
        return list(data.expenses) if data else []

    @property
    def is_empty(self) -> bool:
        return not self.is_loading and not self.items

    def rows(self) -> List[dict]:
        return [
            {
                "id": e.id,
                "title": e.title,
                "amount": format_amount(e.amount),
                "has_receipt": bool(e.file_url),
            }
            for e in self.items
        ]

    @property
    def can_delete(self) -> bool:
        return not self.delete_mutation.is_pending

    async def delete(self, expense: Expense) -> bool:
        if self.confirm is not None and not self.confirm(f'Delete "{expense.title}"?'):
            return False
        return await self.delete_mutation.mutate(expense.id) is not None

class AddExpenseForm:
    def __init__(self, session: Session):
        self.session = session
        self.title = ""
        self.amount: Union[float, str] = ""
        self.form_error: Optional[str] = None
        self.mutation = create_expense_mutation(session, on_created=self._clear)

    def _clear(self, _expense: Expense) -> None:
        self.title = ""
        self.amount = ""
        self.form_error = None

    def _edited(self) -> None:
        self.form_error = None
        if self.mutation.is_error:
            self.mutation.reset()

    def set_title(self, title: str) -> None:
        self.title = title
        self._edited()

    def set_amount(self, amount: Union[float, str]) -> None:
        self.amount = amount
        self._edited()

    @property
    def submit_label(self) -> str:
        return "Adding…" if self.mutation.is_pending else "Add Expense"

    async def submit(self) -> Optional[Expense]:
        """Validate, then create through the optimistic protocol. Returns the created expense."""
        self.form_error = None
        if self.mutation.is_error:
            self.mutation.reset()

        error = validate_new_expense(self.title, self.amount)
        if error:
            self.form_error = error
            return None

        return await self.mutation.mutate({"title": self.title.strip(), "amount": parse_amount(self.amount)})

@dataclass(frozen=True)
class SelectedFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size_kb(self) -> str:
        return f"{len(self.data) / 1024:.1f} KB"

class UploadExpenseForm:
    def __init__(
        self,
        session: Session,
        expense_id: int,
        on_success: Optional[Callable[[], Awaitable[None]]] = None
    ):
        self.session = session
        self.expense_id = expense_id
        self.on_success = on_success
        self.file: Optional[SelectedFile] = None
        self.error: Optional[str] = None
        self.is_uploading = False
        self.progress = 0
        self.handshake: Optional[UploadHandshake] = None

    def select_file(self, name: str, content_type: str, data: bytes) -> None:
        self.file = SelectedFile(name=name, content_type=content_type, data=data)
        self.error = None
        self.progress = 0

    def _on_progress(self, percent: int) -> None:
        self.progress = percent

    @property
    def submit_label(self) -> str:
        return f"Uploading... {self.progress}%" if self.is_uploading else "Upload File"

    @property
    def can_submit(self) -> bool:
        return self.file is not None and not self.is_uploading

    async def submit(self) -> bool:
        if self.file is None:
            self.error = "Please select a file"
            return False

        self.is_uploading = True
        self.error = None
        self.progress = 0
        # A fresh handshake (and progress channel) per attempt
        self.handshake = UploadHandshake(
            self.session.api, self.expense_id, self.file.name, self.file.content_type, self.file.data
        )
        self.handshake.progress.subscribe(self._on_progress)
        try:
            await self.handshake.run()
        except UploadError as e:
            # Keep the selected file so the user can retry the whole handshake
            self.error = str(e)
            self.progress = 0
            self.session.toaster.show_toast(str(e), "error")
            return False
        finally:
            self.is_uploading = False

        self.file = None
        self.error = None
        self.progress = 0
        self.session.toaster.show_toast("Receipt uploaded successfully!", "success")
        if self.on_success is not None:
            await self.on_success()
        return True

class ExpenseDetailView(QueryView):
    def __init__(self, session: Session, expense_id: int):
        super().__init__(session, expense_detail_key(expense_id))
        self.expense_id = expense_id
        self.upload_form = UploadExpenseForm(session, expense_id, on_success=self._on_upload_success)

    async def _fetch(self) -> Expense:
        return await self.session.api.get_expense(self.expense_id)

    async def load(self) -> None:
        try:
            await self.session.cache.fetch_query(self.key, self._fetch)
        except ApiError as e:
            logger.warning(f"Could not load expense {self.expense_id}: {e}")

    async def _on_upload_success(self) -> None:
        # The server re-signs fileUrl on every read; refetch to pick up the new link
        await self.session.cache.invalidate_queries(self.key)

    @property
    def expense(self) -> Optional[Expense]:
        return self.entry.data

    @property
    def amount(self) -> Optional[str]:
        return format_amount(self.expense.amount) if self.expense else None
