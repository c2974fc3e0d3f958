from typing import Any, Dict, List, Optional

from apps.edusave.services.accounts.account_types import can_receive_top_up
from apps.edusave.services.ledger.running_balance import (
    balance_summary,
    filter_transactions,
    with_running_balance,
)
from apps.edusave.services.models import AccountHolder, Transaction, money


def account_statement(
    account: AccountHolder,
    transactions: List[Transaction],
    search: Optional[str] = None,
    type_: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Self-service balance page. Running balances come from the full
    history; search/type only narrow what is shown.
    """
    rows = with_running_balance(account.balance, transactions)
    shown = filter_transactions(rows, search=search, type_=type_)
    summary = balance_summary(transactions)
    return {
        "account": {
            "id": account.id,
            "name": account.name,
            "balance": money(account.balance),
            "has_balance": can_receive_top_up(account.account_type, account.residential_status),
        },
        "summary": {
            "total_top_ups": money(summary["total_top_ups"]),
            "total_fees_paid": money(summary["total_fees_paid"]),
            "transaction_count": len(transactions),
        },
        "transactions": [r.to_dict() for r in shown],
    }
