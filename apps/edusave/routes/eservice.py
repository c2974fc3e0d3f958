from typing import Optional

from fastapi import APIRouter, Depends

from apps.edusave.deps import get_account_service, get_transaction_repository
from apps.edusave.repositories.transactions import TransactionRepository
from apps.edusave.services.accounts.service import AccountService
from apps.edusave.services.ledger.statement import account_statement
from apps.edusave.utils.envelope import ok

router = APIRouter(prefix="/eservice", tags=["eservice"])


@router.get("/accounts/{account_id}/balance")
def account_balance(
    account_id: str,
    q: Optional[str] = None,
    type: Optional[str] = None,
    accounts: AccountService = Depends(get_account_service),
    transactions: TransactionRepository = Depends(get_transaction_repository),
):
    account = accounts.get_account(account_id)
    history = transactions.list_for_account(account.id)
    return ok(account_statement(account, history, search=q, type_=type))
