from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import List, Optional
import itertools
import logging

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class ExpenseRecord:
    """Stored expense row. `file_key` is the object-storage key, not a URL."""
    id: int
    title: str
    amount: float
    file_key: Optional[str] = None

class ExpenseRepository(ABC):
    @abstractmethod
    def list(self) -> List[ExpenseRecord]:
        pass

    @abstractmethod
    def get(self, expense_id: int) -> Optional[ExpenseRecord]:
        pass

    @abstractmethod
    def create(self, title: str, amount: float) -> ExpenseRecord:
        pass

    @abstractmethod
    def attach_file(self, expense_id: int, file_key: str) -> Optional[ExpenseRecord]:
        pass

    @abstractmethod
    def delete(self, expense_id: int) -> bool:
        pass

class InMemoryExpenseRepository(ExpenseRepository):
    def __init__(self):
        # Insertion ordered; ids are never reused within a process
        self._storage: dict = {}
        self._ids = itertools.count(1)

    def list(self) -> List[ExpenseRecord]:
        return list(self._storage.values())

    def get(self, expense_id: int) -> Optional[ExpenseRecord]:
        return self._storage.get(expense_id)

    def create(self, title: str, amount: float) -> ExpenseRecord:
        record = ExpenseRecord(id=next(self._ids), title=title, amount=amount)
        self._storage[record.id] = record
        logger.info(f"Expense created: id={record.id} title={title!r} amount={amount}")
        return record

    def attach_file(self, expense_id: int, file_key: str) -> Optional[ExpenseRecord]:
        record = self._storage.get(expense_id)
        if record is None:
            return None
        record = replace(record, file_key=file_key)
        self._storage[expense_id] = record
        logger.info(f"Receipt attached: id={expense_id} key={file_key}")
        return record

    def delete(self, expense_id: int) -> bool:
        removed = self._storage.pop(expense_id, None)
        if removed is not None:
            logger.info(f"Expense deleted: id={expense_id}")
        return removed is not None

# Global Accessor
expense_repo = InMemoryExpenseRepository()

def get_expense_repo() -> ExpenseRepository:
    return expense_repo
