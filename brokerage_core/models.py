"""
Domain Records Module

Profiles, contracts and jobs as stored by the ledger, plus the immutable
caller identity handed to every core operation.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, Optional, Any
from enum import Enum

from .money import Money
from .storage import StorageRecord


class ProfileType(Enum):
    """Profile roles"""
    CLIENT = "client"          # Posts and pays for jobs
    CONTRACTOR = "contractor"  # Performs and earns from jobs


class ContractStatus(Enum):
    """Contract lifecycle states"""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    TERMINATED = "terminated"  # Terminal

    @property
    def is_active(self) -> bool:
        return self in (ContractStatus.NEW, ContractStatus.IN_PROGRESS)

    def can_transition_to(self, target: 'ContractStatus') -> bool:
        """Status only moves forward: new -> in_progress -> terminated"""
        return _STATUS_ORDER[target] > _STATUS_ORDER[self]


_STATUS_ORDER = {
    ContractStatus.NEW: 0,
    ContractStatus.IN_PROGRESS: 1,
    ContractStatus.TERMINATED: 2,
}


@dataclass
class Profile(StorageRecord):
    """
    Account of a client or contractor
    """
    first_name: str
    last_name: str
    profession: str
    type: ProfileType
    balance: Money

    def __post_init__(self):
        if self.balance.is_negative():
            raise ValueError("Profile balance cannot be negative")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_client(self) -> bool:
        return self.type == ProfileType.CLIENT

    @property
    def is_contractor(self) -> bool:
        return self.type == ProfileType.CONTRACTOR

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['type'] = self.type.value
        result['balance'] = str(self.balance.amount)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        data = cls.parse_timestamps(data)
        data['type'] = ProfileType(data['type'])
        data['balance'] = Money(Decimal(data['balance']))
        return cls(**data)


@dataclass
class Contract(StorageRecord):
    """
    Engagement between one client and one contractor
    """
    client_id: int
    contractor_id: int
    terms: str
    status: ContractStatus = ContractStatus.NEW

    def __post_init__(self):
        if self.client_id == self.contractor_id:
            raise ValueError("Contract client and contractor must be different profiles")

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['status'] = self.status.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Contract':
        data = cls.parse_timestamps(data)
        data['status'] = ContractStatus(data['status'])
        return cls(**data)


@dataclass
class Job(StorageRecord):
    """
    Billable unit of work under a contract, paid at most once
    """
    contract_id: int
    description: str
    price: Money
    paid: bool = False
    payment_date: Optional[datetime] = None

    def __post_init__(self):
        if not self.price.is_positive():
            raise ValueError("Job price must be positive")
        if self.paid != (self.payment_date is not None):
            raise ValueError("Job payment_date is set exactly when the job is paid")

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['price'] = str(self.price.amount)
        result['payment_date'] = self.payment_date.isoformat() if self.payment_date else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Job':
        data = cls.parse_timestamps(data)
        data['price'] = Money(Decimal(data['price']))
        if data.get('payment_date'):
            data['payment_date'] = datetime.fromisoformat(data['payment_date'])
        return cls(**data)


@dataclass(frozen=True)
class CallerIdentity:
    """
    Resolved, already-authenticated caller.

    Read from the store at the start of each operation and never cached
    across operations; ``balance`` is the balance at read time.
    """
    profile_id: int
    type: ProfileType
    balance: Money

    @classmethod
    def from_profile(cls, profile: Profile) -> 'CallerIdentity':
        return cls(profile_id=profile.id, type=profile.type, balance=profile.balance)
