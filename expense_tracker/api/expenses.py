from fastapi import APIRouter, Depends, HTTPException, Request, Response
import logging
from expense_tracker.core.config import settings
from expense_tracker.core.storage import ObjectStorage, get_object_storage
from expense_tracker.db.memory import ExpenseRecord, ExpenseRepository, get_expense_repo
from expense_tracker.schemas.expense import Expense, ExpenseCreate, ExpenseEnvelope, ExpenseList, ExpensePatch

router = APIRouter(prefix=f"{settings.API_PREFIX}/expenses", tags=["expenses"])
logger = logging.getLogger(__name__)

def public_base_url(request: Request) -> str:
    return settings.PUBLIC_BASE_URL or str(request.base_url)

def to_expense(record: ExpenseRecord, storage: ObjectStorage, base_url: str) -> Expense:
    file_url = None
    if record.file_key:
        # Re-signed on every read so the link is always fresh
        file_url = storage.presign("GET", record.file_key, base_url, settings.DOWNLOAD_URL_TTL)
    return Expense(id=record.id, title=record.title, amount=record.amount, file_url=file_url)

def get_or_404(repo: ExpenseRepository, expense_id: int) -> ExpenseRecord:
    record = repo.get(expense_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return record

@router.get("", response_model=ExpenseList)
async def list_expenses(
    request: Request,
    repo: ExpenseRepository = Depends(get_expense_repo),
    storage: ObjectStorage = Depends(get_object_storage)
):
    base_url = public_base_url(request)
    return ExpenseList(expenses=[to_expense(r, storage, base_url) for r in repo.list()])

@router.post("", response_model=ExpenseEnvelope, status_code=201)
async def create_expense(
    payload: ExpenseCreate,
    request: Request,
    repo: ExpenseRepository = Depends(get_expense_repo),
    storage: ObjectStorage = Depends(get_object_storage)
):
    record = repo.create(payload.title, payload.amount)
    return ExpenseEnvelope(expense=to_expense(record, storage, public_base_url(request)))

@router.get("/{expense_id}", response_model=ExpenseEnvelope)
async def get_expense(
    expense_id: int,
    request: Request,
    repo: ExpenseRepository = Depends(get_expense_repo),
    storage: ObjectStorage = Depends(get_object_storage)
):
    record = get_or_404(repo, expense_id)
    return ExpenseEnvelope(expense=to_expense(record, storage, public_base_url(request)))

@router.patch("/{expense_id}", status_code=204)
async def attach_receipt(
    expense_id: int,
    payload: ExpensePatch,
    repo: ExpenseRepository = Depends(get_expense_repo),
    storage: ObjectStorage = Depends(get_object_storage)
):
    get_or_404(repo, expense_id)
    # Only keys whose object upload actually completed may be attached
    if not storage.exists(payload.file_key):
        logger.warning(f"Rejected attach of unknown key {payload.file_key} to expense {expense_id}")
        raise HTTPException(status_code=400, detail="Unknown file key")
    repo.attach_file(expense_id, payload.file_key)
    return Response(status_code=204)

@router.delete("/{expense_id}", status_code=204)
async def delete_expense(expense_id: int, repo: ExpenseRepository = Depends(get_expense_repo)):
    if not repo.delete(expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    return Response(status_code=204)
