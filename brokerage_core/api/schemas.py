"""
Pydantic schemas for API requests and responses
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from ..models import Profile, Contract, Job
from ..payments import PaymentReceipt
from ..deposits import DepositReceipt
from ..reporting import ProfessionEarnings, ClientSpending


class ProfileResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    profession: str
    type: str
    balance: str = Field(..., description="Decimal amount as string")

    @classmethod
    def from_profile(cls, profile: Profile) -> 'ProfileResponse':
        return cls(
            id=profile.id,
            first_name=profile.first_name,
            last_name=profile.last_name,
            profession=profile.profession,
            type=profile.type.value,
            balance=str(profile.balance.amount)
        )


class ContractResponse(BaseModel):
    id: int
    client_id: int
    contractor_id: int
    terms: str
    status: str

    @classmethod
    def from_contract(cls, contract: Contract) -> 'ContractResponse':
        return cls(
            id=contract.id,
            client_id=contract.client_id,
            contractor_id=contract.contractor_id,
            terms=contract.terms,
            status=contract.status.value
        )


class JobResponse(BaseModel):
    id: int
    contract_id: int
    description: str
    price: str = Field(..., description="Decimal amount as string")
    paid: bool
    payment_date: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> 'JobResponse':
        return cls(
            id=job.id,
            contract_id=job.contract_id,
            description=job.description,
            price=str(job.price.amount),
            paid=job.paid,
            payment_date=job.payment_date
        )


class PaymentResponse(BaseModel):
    job: JobResponse
    client_balance: str
    contractor_balance: str

    @classmethod
    def from_receipt(cls, receipt: PaymentReceipt) -> 'PaymentResponse':
        return cls(
            job=JobResponse.from_job(receipt.job),
            client_balance=str(receipt.client_balance.amount),
            contractor_balance=str(receipt.contractor_balance.amount)
        )


class DepositRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class DepositResponse(BaseModel):
    profile_id: int
    amount: str
    balance: str
    deposit_limit: str

    @classmethod
    def from_receipt(cls, receipt: DepositReceipt) -> 'DepositResponse':
        return cls(
            profile_id=receipt.profile_id,
            amount=str(receipt.amount.amount),
            balance=str(receipt.balance.amount),
            deposit_limit=str(receipt.cap.amount)
        )


class ProfessionResponse(BaseModel):
    profession: str
    total_earned: str

    @classmethod
    def from_earnings(cls, earnings: ProfessionEarnings) -> 'ProfessionResponse':
        return cls(profession=earnings.profession, total_earned=str(earnings.total_earned.amount))


class ClientSpendingResponse(BaseModel):
    id: int
    full_name: str
    paid: str

    @classmethod
    def from_spending(cls, spending: ClientSpending) -> 'ClientSpendingResponse':
        return cls(id=spending.client_id, full_name=spending.full_name, paid=str(spending.total_paid.amount))
