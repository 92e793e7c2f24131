"""
Concurrency tests for payments and deposits

Operations run from many threads at once against one store; the end state
must match some serial order of the same operations.
"""

import threading
from datetime import date
from concurrent.futures import ThreadPoolExecutor

import pytest

from brokerage_core.money import Money
from brokerage_core.storage import InMemoryStorage, SQLiteStorage
from brokerage_core.ledger import LedgerStore
from brokerage_core.models import ProfileType, ContractStatus
from brokerage_core.payments import PaymentEngine
from brokerage_core.deposits import DepositEngine
from brokerage_core.reporting import ReportingEngine
from brokerage_core.exceptions import BrokerageError, AlreadyPaid, InsufficientFunds


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        storage = InMemoryStorage()
    else:
        storage = SQLiteStorage(tmp_path / "concurrency.db")
    yield LedgerStore(storage)
    storage.close()


def run_concurrently(func, args_list, workers=8):
    """Start every call behind a barrier, return results and raised errors"""
    barrier = threading.Barrier(len(args_list))

    def call(args):
        barrier.wait(timeout=10)
        try:
            return func(*args), None
        except BrokerageError as e:
            return None, e

    with ThreadPoolExecutor(max_workers=max(workers, len(args_list))) as executor:
        return list(executor.map(call, args_list))


class TestConcurrentPayments:
    """Test that jobs are paid at most once"""

    def test_same_job_paid_once(self, store):
        client = store.create_profile("Harry", "Potter", "Wizard", ProfileType.CLIENT, Money.of("1000"))
        contractor = store.create_profile("Linus", "Torvalds", "Programmer", ProfileType.CONTRACTOR)
        contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
        job = store.create_job(contract.id, "work", Money.of("80"))
        engine = PaymentEngine(store)

        outcomes = run_concurrently(engine.pay_job, [(client.id, job.id)] * 10)

        successes = [result for result, error in outcomes if error is None]
        failures = [error for result, error in outcomes if error is not None]
        assert len(successes) == 1
        assert all(isinstance(error, AlreadyPaid) for error in failures)

        assert store.get_profile(client.id).balance == Money.of("920")
        assert store.get_profile(contractor.id).balance == Money.of("80")

    def test_balance_never_goes_negative(self, store):
        client = store.create_profile("Harry", "Potter", "Wizard", ProfileType.CLIENT, Money.of("100"))
        contractor = store.create_profile("Linus", "Torvalds", "Programmer", ProfileType.CONTRACTOR)
        contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
        jobs = [store.create_job(contract.id, f"job {i}", Money.of("30")) for i in range(6)]
        engine = PaymentEngine(store)

        outcomes = run_concurrently(engine.pay_job, [(client.id, job.id) for job in jobs])

        paid = [result for result, error in outcomes if error is None]
        failures = [error for result, error in outcomes if error is not None]
        assert len(paid) == 3
        assert all(isinstance(error, InsufficientFunds) for error in failures)

        assert store.get_profile(client.id).balance == Money.of("10")
        assert store.get_profile(contractor.id).balance == Money.of("90")
        assert sum(1 for job in jobs if store.get_job(job.id).paid) == 3

    def test_disjoint_payments_conserve_total(self, store):
        clients = [
            store.create_profile("Client", str(i), "Owner", ProfileType.CLIENT, Money.of("100"))
            for i in range(4)
        ]
        contractors = [
            store.create_profile("Contractor", str(i), "dev", ProfileType.CONTRACTOR)
            for i in range(2)
        ]
        calls = []
        for i, client in enumerate(clients):
            contract = store.create_contract(
                client.id, contractors[i % 2].id, "t", ContractStatus.IN_PROGRESS
            )
            for _ in range(2):
                job = store.create_job(contract.id, "work", Money.of("25"))
                calls.append((client.id, job.id))

        outcomes = run_concurrently(PaymentEngine(store).pay_job, calls)

        assert all(error is None for result, error in outcomes)
        snapshot = store.snapshot()
        total = sum(p.balance.amount for p in snapshot.profiles.values())
        assert total == Money.of("400").amount
        assert all(store.get_profile(c.id).balance == Money.of("50") for c in clients)
        assert all(store.get_profile(c.id).balance == Money.of("100") for c in contractors)


class TestDepositsDuringPayments:
    """Test the deposit cap under concurrent payments"""

    def test_deposit_respects_cap_from_a_serial_order(self, store):
        client = store.create_profile("John", "Snow", "Knows nothing", ProfileType.CLIENT, Money.of("100"))
        contractor = store.create_profile("Alan", "Turing", "Programmer", ProfileType.CONTRACTOR)
        contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
        job_40 = store.create_job(contract.id, "a", Money.of("40"))
        store.create_job(contract.id, "b", Money.of("60"))

        payment_engine = PaymentEngine(store)
        deposit_engine = DepositEngine(store)

        # Before the payment the cap is 25, after it 15; a deposit of 20 is
        # valid only if it runs first
        barrier = threading.Barrier(2)
        outcomes = {}

        def pay():
            barrier.wait(timeout=10)
            outcomes["pay"] = payment_engine.pay_job(client.id, job_40.id)

        def deposit():
            barrier.wait(timeout=10)
            try:
                outcomes["deposit"] = deposit_engine.deposit(client.id, client.id, Money.of("20"))
            except BrokerageError as e:
                outcomes["deposit"] = e

        threads = [threading.Thread(target=pay), threading.Thread(target=deposit)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        balance = store.get_profile(client.id).balance
        if isinstance(outcomes["deposit"], BrokerageError):
            assert balance == Money.of("60")
        else:
            assert outcomes["deposit"].cap == Money.of("25")
            assert balance == Money.of("80")
        assert store.get_profile(contractor.id).balance == Money.of("40")

    def test_concurrent_deposits_each_checked(self, store):
        client = store.create_profile("John", "Snow", "Knows nothing", ProfileType.CLIENT)
        contractor = store.create_profile("Alan", "Turing", "Programmer", ProfileType.CONTRACTOR)
        contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
        store.create_job(contract.id, "a", Money.of("100"))
        engine = DepositEngine(store)

        outcomes = run_concurrently(engine.deposit, [(client.id, client.id, Money.of("25"))] * 5)

        # the cap depends on unpaid jobs only, so every deposit at the cap passes
        assert all(error is None for result, error in outcomes)
        assert store.get_profile(client.id).balance == Money.of("125")


class TestReportsDuringPayments:
    """Reports read committed state only"""

    def test_report_totals_match_committed_payments(self, store):
        client = store.create_profile("Harry", "Potter", "Wizard", ProfileType.CLIENT, Money.of("1000"))
        contractor = store.create_profile("Linus", "Torvalds", "Programmer", ProfileType.CONTRACTOR)
        contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
        jobs = [store.create_job(contract.id, f"job {i}", Money.of("10")) for i in range(20)]

        payment_engine = PaymentEngine(store)
        reporting_engine = ReportingEngine(store)
        stop = threading.Event()
        observed = []

        def report():
            while not stop.is_set():
                results = reporting_engine.best_clients(date(2000, 1, 1), date(2100, 1, 1))
                snapshot = store.snapshot()
                observed.append((results, snapshot))

        reader = threading.Thread(target=report)
        reader.start()
        for job in jobs:
            payment_engine.pay_job(client.id, job.id)
        stop.set()
        reader.join()

        for results, snapshot in observed:
            paid = sum(1 for job in snapshot.jobs if job.paid)
            balance = snapshot.profiles[client.id].balance
            # every snapshot pairs each paid job with its debit
            assert balance == Money.of(1000 - 10 * paid)
            if results:
                assert results[0].total_paid.amount % 10 == 0

        final = reporting_engine.best_clients(date(2000, 1, 1), date(2100, 1, 1))
        assert final[0].total_paid == Money.of("200")
