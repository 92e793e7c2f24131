"""
Test suite for the Reporting Engine module
"""

import pytest
from datetime import date, datetime, timezone

from brokerage_core.money import Money
from brokerage_core.storage import InMemoryStorage
from brokerage_core.ledger import LedgerStore
from brokerage_core.models import ProfileType, ContractStatus
from brokerage_core.payments import PaymentEngine
from brokerage_core.reporting import ReportingEngine, normalize_range
from brokerage_core.seed import seed_demo_data
from brokerage_core.exceptions import InvalidDateRange, InvalidArgument


AUGUST_START = date(2020, 8, 1)
AUGUST_END = date(2020, 8, 31)


# Global fixtures
@pytest.fixture
def seeded_store():
    store = LedgerStore(InMemoryStorage())
    seed_demo_data(store)
    return store


@pytest.fixture
def reporting_engine(seeded_store):
    return ReportingEngine(seeded_store)


class TestNormalizeRange:
    """Test date range handling"""

    def test_dates_cover_whole_days(self):
        start, end = normalize_range(date(2020, 8, 15), date(2020, 8, 15))
        assert start == datetime(2020, 8, 15, tzinfo=timezone.utc)
        assert end == datetime(2020, 8, 15, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_naive_datetimes_are_utc(self):
        start, end = normalize_range(datetime(2020, 8, 15, 10), datetime(2020, 8, 15, 11))
        assert start.tzinfo == timezone.utc
        assert end.tzinfo == timezone.utc

    def test_start_after_end(self):
        with pytest.raises(InvalidDateRange):
            normalize_range(date(2020, 9, 1), date(2020, 8, 1))

    def test_single_instant_range(self):
        moment = datetime(2020, 8, 15, 19, 11, 26, tzinfo=timezone.utc)
        assert normalize_range(moment, moment) == (moment, moment)


class TestBestProfession:
    """Test the best-earning profession report"""

    def test_programmer_earns_most_in_august(self, reporting_engine):
        result = reporting_engine.best_profession(AUGUST_START, AUGUST_END)
        assert result.profession == "Programmer"
        assert result.total_earned == Money.of("2183")

    def test_single_day(self, reporting_engine):
        result = reporting_engine.best_profession(date(2020, 8, 15), date(2020, 8, 15))
        assert result.profession == "Programmer"
        assert result.total_earned == Money.of("2041")

    def test_tie_goes_to_alphabetically_first(self, reporting_engine):
        # Musician and Fighter both earned 121 on this day
        result = reporting_engine.best_profession(date(2020, 8, 17), date(2020, 8, 17))
        assert result.profession == "Fighter"
        assert result.total_earned == Money.of("121")

    def test_range_bounds_are_inclusive(self, reporting_engine):
        moment = datetime(2020, 8, 14, 23, 11, 26, tzinfo=timezone.utc)
        result = reporting_engine.best_profession(moment, moment)
        assert result.profession == "Programmer"
        assert result.total_earned == Money.of("121")

    def test_no_paid_jobs_in_range(self, reporting_engine):
        assert reporting_engine.best_profession(date(2021, 1, 1), date(2021, 12, 31)) is None

    def test_invalid_range(self, reporting_engine):
        with pytest.raises(InvalidDateRange):
            reporting_engine.best_profession(AUGUST_END, AUGUST_START)

    def test_sums_across_contractors(self):
        store = LedgerStore(InMemoryStorage())
        client = store.create_profile("Rich", "Client", "Owner", ProfileType.CLIENT, Money.of("1000"))
        dev_a = store.create_profile("Dev", "One", "dev", ProfileType.CONTRACTOR)
        dev_b = store.create_profile("Dev", "Two", "dev", ProfileType.CONTRACTOR)
        designer = store.create_profile("Des", "Igner", "designer", ProfileType.CONTRACTOR)

        payment_engine = PaymentEngine(store)
        for contractor, price in ((dev_a, "200"), (dev_b, "300"), (designer, "300")):
            contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
            job = store.create_job(contract.id, "work", Money.of(price))
            payment_engine.pay_job(client.id, job.id)

        today = datetime.now(timezone.utc).date()
        result = ReportingEngine(store).best_profession(today, today)
        assert result.profession == "dev"
        assert result.total_earned == Money.of("500")

    def test_unpaid_jobs_do_not_count(self):
        store = LedgerStore(InMemoryStorage())
        client = store.create_profile("A", "Client", "Owner", ProfileType.CLIENT, Money.of("1000"))
        contractor = store.create_profile("A", "Dev", "dev", ProfileType.CONTRACTOR)
        contract = store.create_contract(client.id, contractor.id, "t", ContractStatus.IN_PROGRESS)
        store.create_job(contract.id, "work", Money.of("100"))

        today = datetime.now(timezone.utc).date()
        assert ReportingEngine(store).best_profession(today, today) is None


class TestBestClients:
    """Test the best-paying clients report"""

    def test_default_limit_is_two(self, reporting_engine):
        results = reporting_engine.best_clients(AUGUST_START, AUGUST_END)

        assert [r.client_id for r in results] == [4, 1]
        assert results[0].full_name == "Ash Kethcum"
        assert results[0].total_paid == Money.of("2020")
        assert results[1].full_name == "Harry Potter"
        assert results[1].total_paid == Money.of("142")

    def test_ties_ordered_by_client_id(self, reporting_engine):
        results = reporting_engine.best_clients(AUGUST_START, AUGUST_END, limit=4)

        assert [r.client_id for r in results] == [4, 1, 2, 3]
        assert [r.total_paid for r in results] == [
            Money.of("2020"), Money.of("142"), Money.of("142"), Money.of("121")
        ]

    def test_limit_larger_than_result(self, reporting_engine):
        results = reporting_engine.best_clients(date(2020, 8, 15), date(2020, 8, 15), limit=10)
        assert [r.client_id for r in results] == [4, 1]

    def test_empty_range(self, reporting_engine):
        assert reporting_engine.best_clients(date(2021, 1, 1), date(2021, 1, 31)) == []

    @pytest.mark.parametrize("limit", [0, -1, True, "2", 1.5])
    def test_invalid_limit(self, reporting_engine, limit):
        with pytest.raises(InvalidArgument):
            reporting_engine.best_clients(AUGUST_START, AUGUST_END, limit=limit)

    def test_configured_default_limit(self, seeded_store):
        engine = ReportingEngine(seeded_store, default_limit=3)
        assert len(engine.best_clients(AUGUST_START, AUGUST_END)) == 3

    def test_reports_see_new_payments(self, seeded_store):
        engine = ReportingEngine(seeded_store)
        # Harry Potter pays the unpaid job 2 (price 201) under contract 2
        PaymentEngine(seeded_store).pay_job(1, 2)

        today = datetime.now(timezone.utc).date()
        results = engine.best_clients(today, today)
        assert [(r.client_id, r.total_paid) for r in results] == [(1, Money.of("201"))]
