#!/usr/bin/env python3
"""Demo data for local runs

Provisions a fixed set of profiles, contracts and jobs:
- 4 clients and 4 contractors with opening balances
- 9 contracts across all three statuses
- 14 jobs, half of them already paid in August 2020

Run with: python -m brokerage_core.seed
"""

from datetime import datetime, timezone

from .money import Money
from .models import ProfileType, ContractStatus
from .ledger import LedgerStore
from .logging_config import get_logger

logger = get_logger("brokerage.seed")

PROFILES = [
    # first_name, last_name, profession, type, balance
    ("Harry", "Potter", "Wizard", ProfileType.CLIENT, "1150"),
    ("Mr", "Robot", "Hacker", ProfileType.CLIENT, "231.11"),
    ("John", "Snow", "Knows nothing", ProfileType.CLIENT, "451.3"),
    ("Ash", "Kethcum", "Pokemon master", ProfileType.CLIENT, "1.3"),
    ("John", "Lenon", "Musician", ProfileType.CONTRACTOR, "64"),
    ("Linus", "Torvalds", "Programmer", ProfileType.CONTRACTOR, "1214"),
    ("Alan", "Turing", "Programmer", ProfileType.CONTRACTOR, "22"),
    ("Aragorn", "II Elessar Telcontarion", "Fighter", ProfileType.CONTRACTOR, "314"),
]

# client, contractor, status (1-based positions in PROFILES)
CONTRACTS = [
    (1, 5, ContractStatus.TERMINATED),
    (1, 6, ContractStatus.IN_PROGRESS),
    (2, 6, ContractStatus.IN_PROGRESS),
    (2, 7, ContractStatus.IN_PROGRESS),
    (3, 8, ContractStatus.NEW),
    (3, 7, ContractStatus.IN_PROGRESS),
    (4, 7, ContractStatus.IN_PROGRESS),
    (4, 6, ContractStatus.IN_PROGRESS),
    (4, 8, ContractStatus.IN_PROGRESS),
]

# contract (1-based position), description, price, payment date or None
JOBS = [
    (1, "work", "200", None),
    (2, "work", "201", None),
    (3, "work", "202", None),
    (4, "work", "200", None),
    (7, "work", "200", None),
    (7, "work", "2020", datetime(2020, 8, 15, 19, 11, 26, tzinfo=timezone.utc)),
    (2, "work", "21", datetime(2020, 8, 15, 19, 11, 26, tzinfo=timezone.utc)),
    (3, "work", "21", datetime(2020, 8, 16, 19, 11, 26, tzinfo=timezone.utc)),
    (1, "work", "121", datetime(2020, 8, 17, 19, 11, 26, tzinfo=timezone.utc)),
    (5, "work", "121", datetime(2020, 8, 17, 19, 11, 26, tzinfo=timezone.utc)),
    (3, "work", "121", datetime(2020, 8, 14, 23, 11, 26, tzinfo=timezone.utc)),
    (9, "work", "300", None),
    (6, "work", "75", None),
    (8, "work", "90", None),
]


def seed_demo_data(store: LedgerStore) -> dict:
    """
    Provision the demo data set into ``store``

    Returns:
        Counts of created profiles, contracts and jobs
    """
    profiles = [
        store.create_profile(first, last, profession, profile_type, Money.of(balance))
        for first, last, profession, profile_type, balance in PROFILES
    ]
    contracts = [
        store.create_contract(
            client_id=profiles[client - 1].id,
            contractor_id=profiles[contractor - 1].id,
            terms="bla bla bla",
            status=status
        )
        for client, contractor, status in CONTRACTS
    ]
    jobs = [
        store.create_job(
            contract_id=contracts[contract - 1].id,
            description=description,
            price=Money.of(price),
            payment_date=paid_at
        )
        for contract, description, price, paid_at in JOBS
    ]

    counts = {"profiles": len(profiles), "contracts": len(contracts), "jobs": len(jobs)}
    logger.info(f"Seeded demo data: {counts}")
    return counts


if __name__ == "__main__":
    from .api.auth import get_brokerage_system

    print(seed_demo_data(get_brokerage_system().store))
