from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from apps.edusave.deps import get_account_service
from apps.edusave.services.accounts.service import AccountFilters, AccountService
from apps.edusave.utils.envelope import ok

router = APIRouter(prefix="/admin/accounts", tags=["accounts"])


class AccountCreate(BaseModel):
    nric: str = Field("", description="National registration identity card number")
    name: str = ""
    date_of_birth: Optional[date] = None
    email: str = ""
    phone: Optional[str] = None
    residential_address: Optional[str] = None
    mailing_address: Optional[str] = None
    education_level: Optional[str] = None
    residential_status: Optional[str] = Field(None, description="sc | pr | non_resident")


class AccountUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    residential_address: Optional[str] = None
    mailing_address: Optional[str] = None
    status: Optional[str] = Field(None, description="active | inactive")
    in_school: Optional[str] = Field(None, description="in_school | not_in_school")
    education_level: Optional[str] = None
    residential_status: Optional[str] = None


@router.get("")
def list_accounts(
    search: Optional[str] = None,
    education_level: List[str] = Query(default=[]),
    schooling_status: List[str] = Query(default=[]),
    residential_status: List[str] = Query(default=[]),
    balance_min: Optional[Decimal] = None,
    balance_max: Optional[Decimal] = None,
    age_min: Optional[int] = None,
    age_max: Optional[int] = None,
    sort: str = "name",
    direction: str = "asc",
    service: AccountService = Depends(get_account_service),
):
    filters = AccountFilters(
        search=search,
        education_levels=education_level,
        schooling_statuses=schooling_status,
        residential_statuses=residential_status,
        balance_min=balance_min,
        balance_max=balance_max,
        age_min=age_min,
        age_max=age_max,
        sort_field=sort,
        sort_direction=direction,
    )
    rows = service.list_accounts(filters)
    return ok(rows, meta={"count": len(rows)})


@router.post("")
def create_account(body: AccountCreate, service: AccountService = Depends(get_account_service)):
    account = service.create_account(body.model_dump())
    return ok(service.describe(account), status=201)


@router.get("/{account_id}")
def get_account(account_id: str, service: AccountService = Depends(get_account_service)):
    return ok(service.get_account_detail(account_id))


@router.patch("/{account_id}")
def update_account(
    account_id: str,
    body: AccountUpdate,
    service: AccountService = Depends(get_account_service),
):
    account = service.update_account(account_id, body.model_dump(exclude_unset=True))
    return ok(service.describe(account))
