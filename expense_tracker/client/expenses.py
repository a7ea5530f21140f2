"""Expense-specific pieces of the optimistic protocol: cache keys, speculative writes, mutations."""
from decimal import Decimal
from typing import Callable, Optional, Tuple, Union
import math
import time
from expense_tracker.client.mutation import OptimisticMutation
from expense_tracker.schemas.expense import Expense, ExpenseList

EXPENSES_KEY = ("expenses",)
LIST_STALE_TIME = 5.0
LIST_RETRY = 1

def expense_detail_key(expense_id: int) -> Tuple[str, int]:
    return ("expenses", expense_id)

class TemporaryIds:
    """
    Clock-derived ids for speculative records, one allocator per session.

    Strictly increasing across calls and never equal to an id already in the
    snapshot. They are discarded on the next refetch and never sent to the server.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._last = 0

    def next_id(self, snapshot: ExpenseList) -> int:
        taken = {e.id for e in snapshot.expenses}
        candidate = max(self._clock() // 1_000_000, self._last + 1)
        while candidate in taken:
            candidate += 1
        self._last = candidate
        return candidate

def append_optimistic_expense(snapshot: ExpenseList, new_item: dict, ids: TemporaryIds) -> ExpenseList:
    optimistic = Expense(
        id=ids.next_id(snapshot),
        title=new_item["title"],
        amount=new_item["amount"],
        file_url=None,
    )
    return ExpenseList(expenses=[*snapshot.expenses, optimistic])

def remove_expense(snapshot: ExpenseList, expense_id: int) -> ExpenseList:
    return ExpenseList(expenses=[e for e in snapshot.expenses if e.id != expense_id])

def parse_amount(amount: Union[int, float, Decimal, str, None]) -> Optional[float]:
    """The amount field as a finite number, or None when it holds no number at all."""
    if amount is None or isinstance(amount, bool):
        return None
    if isinstance(amount, str):
        amount = amount.strip()
        if not amount:
            return None
    if isinstance(amount, (int, float)):
        value = amount
    else:
        try:
            value = float(amount)
        except (TypeError, ValueError):
            return None
    return value if math.isfinite(value) else None

def validate_new_expense(title: str, amount) -> Optional[str]:
    """Return the inline error for the add-form, or None when the input may be submitted."""
    if not title or not title.strip():
        return "Title is required"
    value = parse_amount(amount)
    if value is None or value <= 0:
        return "Amount must be greater than 0"
    return None

def create_expense_mutation(session, on_created: Optional[Callable[[Expense], None]] = None) -> OptimisticMutation:
    async def mutation_fn(new_item: dict) -> Expense:
        return await session.api.create_expense(new_item["title"], new_item["amount"])

    def speculate(snapshot: ExpenseList, new_item: dict) -> ExpenseList:
        return append_optimistic_expense(snapshot, new_item, session.temporary_ids)

    def on_success(expense: Expense, _new_item, _ctx):
        if on_created:
            on_created(expense)
        session.toaster.show_toast(f'Added "{expense.title}" successfully!', "success")

    def on_error(_err, _new_item, _ctx):
        session.toaster.show_toast("Failed to add expense. Please try again.", "error")

    return OptimisticMutation(
        session.cache,
        EXPENSES_KEY,
        mutation_fn,
        speculate,
        on_success=on_success,
        on_error=on_error,
    )

def delete_expense_mutation(session) -> OptimisticMutation:
    def on_success(_expense_id, _variables, _ctx):
        session.toaster.show_toast("Expense deleted successfully!", "success")

    def on_error(_err, _expense_id, _ctx):
        session.toaster.show_toast("Failed to delete expense. Please try again.", "error")

    return OptimisticMutation(
        session.cache,
        EXPENSES_KEY,
        session.api.delete_expense,
        remove_expense,
        on_success=on_success,
        on_error=on_error,
    )
