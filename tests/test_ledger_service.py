from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

import database

from models.activity_log import ActivityLog
from models.customer import Customer
from schemas.ledger import Actor, TransactionStatus
from services import activity_recorder
from services.balance import aggregate_outstanding, total_due, total_paid, transaction_balance
from services.errors import NotFoundError, PersistenceError, ValidationError
from services.ledger_service import LedgerService
from services.status_engine import derive_status


def stored_transactions(service, customer_id):
    return service.get_customer(customer_id).transactions


def assert_status_consistent(service, customer_id):
    for t in stored_transactions(service, customer_id):
        assert t.status == derive_status(total_due(t), total_paid(t))


def age_customer(db, customer_id):
    row = db.query(Customer).filter(Customer.id == customer_id).first()
    row.last_edited = datetime(2000, 1, 1)
    db.commit()


class TestPayments:
    def test_payment_lifecycle(self, service, customer):
        t = service.add_transaction(customer.id, "Cement", receivable=100)
        assert t.status == TransactionStatus.UNPAID
        assert transaction_balance(t) == 100

        t = service.add_payment(customer.id, t.id, 40)
        assert t.status == TransactionStatus.PARTIAL
        assert transaction_balance(t) == 60

        t = service.add_payment(customer.id, t.id, 60)
        assert t.status == TransactionStatus.PAID
        assert transaction_balance(t) == 0

        with pytest.raises(ValidationError):
            service.add_payment(customer.id, t.id, 1)
        assert_status_consistent(service, customer.id)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_payment_rejected(self, service, customer, amount):
        t = service.add_transaction(customer.id, "Steel", payable=50)
        with pytest.raises(ValidationError):
            service.add_payment(customer.id, t.id, amount)
        assert stored_transactions(service, customer.id)[0].payments == []

    def test_delete_payment_restores_prior_state(self, service, customer):
        t = service.add_transaction(customer.id, "Bricks", receivable=100)
        t = service.add_payment(customer.id, t.id, 30)
        before_status, before_balance = t.status, transaction_balance(t)

        t = service.add_payment(customer.id, t.id, 70)
        assert t.status == TransactionStatus.PAID

        t = service.delete_payment(customer.id, t.id, t.payments[-1].id)
        assert t.status == before_status
        assert transaction_balance(t) == before_balance

    def test_balance_moves_monotonically(self, service, customer):
        t = service.add_transaction(customer.id, "Sand", receivable=90)
        balances = [transaction_balance(t)]
        for amount in (10, 20, 30):
            t = service.add_payment(customer.id, t.id, amount)
            balances.append(transaction_balance(t))
        assert balances == sorted(balances, reverse=True)

        for payment in list(t.payments):
            previous = transaction_balance(t)
            t = service.delete_payment(customer.id, t.id, payment.id)
            assert transaction_balance(t) >= previous
        assert t.status == TransactionStatus.UNPAID

    def test_payments_with_float_residue_settle_exactly(self, service, customer):
        t = service.add_transaction(customer.id, "Fittings", receivable=60.6)
        for amount in (10.1, 20.2, 30.3):
            t = service.add_payment(customer.id, t.id, amount)

        assert t.status == TransactionStatus.PAID
        assert transaction_balance(t) == 0
        with pytest.raises(ValidationError):
            service.add_payment(customer.id, t.id, 0.01)
        assert aggregate_outstanding(stored_transactions(service, customer.id)).net_balance == 0

    def test_unknown_payment_is_not_found(self, service, customer):
        t = service.add_transaction(customer.id, "Gravel", receivable=10)
        with pytest.raises(NotFoundError):
            service.delete_payment(customer.id, t.id, "missing")


class TestTransactions:
    def test_add_transaction_requires_exactly_one_amount(self, service, customer):
        with pytest.raises(ValidationError):
            service.add_transaction(customer.id, "Nothing", receivable=0, payable=0)
        with pytest.raises(ValidationError):
            service.add_transaction(customer.id, "Both", receivable=10, payable=10)
        with pytest.raises(ValidationError):
            service.add_transaction(customer.id, "  ", receivable=10)
        assert stored_transactions(service, customer.id) == []

    def test_update_amount_rederives_status(self, service, customer):
        t = service.add_transaction(customer.id, "Paint", receivable=100)
        service.add_payment(customer.id, t.id, 50)

        updated = service.update_transaction(customer.id, t.id, receivable=50)
        assert updated.status == TransactionStatus.PAID

        updated = service.update_transaction(customer.id, t.id, receivable=80, product_name="Paint (white)")
        assert updated.status == TransactionStatus.PARTIAL
        assert updated.product_name == "Paint (white)"
        assert len(updated.payments) == 1
        assert_status_consistent(service, customer.id)

    def test_update_below_paid_amount_rejected(self, service, customer):
        t = service.add_transaction(customer.id, "Tiles", receivable=100)
        service.add_payment(customer.id, t.id, 60)
        with pytest.raises(ValidationError):
            service.update_transaction(customer.id, t.id, receivable=40)
        assert stored_transactions(service, customer.id)[0].receivable == 100

    def test_update_accepts_paid_amount_with_float_residue(self, service, customer):
        t = service.add_transaction(customer.id, "Valves", receivable=100)
        for amount in (10.1, 20.2, 30.3):
            service.add_payment(customer.id, t.id, amount)

        updated = service.update_transaction(customer.id, t.id, receivable=60.6)
        assert updated.status == TransactionStatus.PAID

    def test_update_date_is_stored_as_naive_utc(self, service, customer):
        t = service.add_transaction(customer.id, "Lime", receivable=10)
        local = datetime(2025, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=5)))

        updated = service.update_transaction(customer.id, t.id, date=local)
        assert updated.date == datetime(2025, 5, 1, 9, 0)
        assert updated.date.tzinfo is None
        assert stored_transactions(service, customer.id)[0].date == datetime(2025, 5, 1, 9, 0)

    def test_switching_sides_requires_clearing_the_other(self, service, customer):
        t = service.add_transaction(customer.id, "Refund", receivable=25)
        with pytest.raises(ValidationError):
            service.update_transaction(customer.id, t.id, payable=25)
        switched = service.update_transaction(customer.id, t.id, receivable=0, payable=25)
        assert switched.payable == 25

    def test_delete_transaction(self, service, customer):
        keep = service.add_transaction(customer.id, "Keep", receivable=1)
        drop = service.add_transaction(customer.id, "Drop", receivable=2)
        service.delete_transaction(customer.id, drop.id)
        assert [t.id for t in stored_transactions(service, customer.id)] == [keep.id]

        with pytest.raises(NotFoundError):
            service.delete_transaction(customer.id, drop.id)

    def test_toggle_transaction_status(self, service, customer):
        t = service.add_transaction(customer.id, "Pipes", payable=70)
        t = service.toggle_transaction_status(customer.id, t.id)
        assert t.status == TransactionStatus.PAID
        assert [p.amount for p in t.payments] == [70]
        t = service.toggle_transaction_status(customer.id, t.id)
        assert t.status == TransactionStatus.UNPAID
        assert t.payments == []

    def test_every_mutation_bumps_last_edited(self, db, service, customer):
        t = service.add_transaction(customer.id, "Wire", receivable=10)
        mutations = [
            lambda: service.add_payment(customer.id, t.id, 5),
            lambda: service.update_transaction(customer.id, t.id, product_name="Copper wire"),
            lambda: service.toggle_transaction_status(customer.id, t.id),
            lambda: service.bulk_update_transaction_status(customer.id, [t.id], "unpaid"),
            lambda: service.update_customer(customer.id, "Acme Traders Ltd"),
            lambda: service.bulk_delete_transactions(customer.id, [t.id]),
        ]
        for mutate in mutations:
            age_customer(db, customer.id)
            mutate()
            assert service.get_customer(customer.id).last_edited > datetime(2000, 1, 1)


class TestBulk:
    def test_bulk_mark_paid_is_idempotent(self, service, customer):
        a = service.add_transaction(customer.id, "A", receivable=100)
        b = service.add_transaction(customer.id, "B", payable=30)
        service.add_payment(customer.id, a.id, 10)

        first = service.bulk_update_transaction_status(customer.id, [a.id, b.id], "paid")
        second = service.bulk_update_transaction_status(customer.id, [a.id, b.id], "paid")

        assert first.transactions == second.transactions
        for t in second.transactions:
            assert t.status == TransactionStatus.PAID
            assert len(t.payments) == 1
            assert t.payments[0].amount == total_due(t)

    def test_bulk_mark_unpaid_clears_payments_and_skips_unknown_ids(self, service, customer):
        a = service.add_transaction(customer.id, "A", receivable=100)
        service.add_payment(customer.id, a.id, 100)
        record = service.bulk_update_transaction_status(customer.id, [a.id, "ghost"], "unpaid")
        assert record.transactions[0].payments == []
        assert record.transactions[0].status == TransactionStatus.UNPAID

    def test_bulk_partial_status_rejected(self, service, customer):
        with pytest.raises(ValidationError):
            service.bulk_update_transaction_status(customer.id, [], "partial")

    def test_bulk_delete(self, service, customer):
        a = service.add_transaction(customer.id, "A", receivable=1)
        b = service.add_transaction(customer.id, "B", receivable=2)
        c = service.add_transaction(customer.id, "C", receivable=3)

        record = service.bulk_delete_transactions(customer.id, [c.id, a.id])
        assert [t.id for t in record.transactions] == [b.id]

        record = service.bulk_delete_transactions(customer.id, [a.id, c.id])
        assert [t.id for t in record.transactions] == [b.id]

    def test_bulk_on_missing_customer_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.bulk_delete_transactions("nobody", ["a"])


class TestCustomers:
    def test_soft_deleted_customer_hidden_but_kept(self, service, customer):
        other = service.add_customer("Zenith")
        service.soft_delete_customer(customer.id)

        assert [c.id for c in service.list_customers()] == [other.id]
        assert customer.id in [c.id for c in service.team_records(include_removed=True)]
        with pytest.raises(NotFoundError):
            service.add_transaction(customer.id, "Late", receivable=5)

    def test_list_customers_search_and_sort(self, service):
        small = service.add_customer("beta Stores")
        big = service.add_customer("Alpha Mart")
        service.add_transaction(big.id, "Bulk order", receivable=500)
        service.add_transaction(small.id, "Return", payable=20)

        assert [c.name for c in service.list_customers(sort_key="name")] == ["Alpha Mart", "beta Stores"]
        assert [c.id for c in service.list_customers(sort_key="netBalance")] == [big.id, small.id]
        assert [c.id for c in service.list_customers(search="MART")] == [big.id]
        with pytest.raises(ValidationError):
            service.list_customers(sort_key="size")

    def test_customer_outstanding_example(self, service, customer):
        unpaid = service.add_transaction(customer.id, "Goods", receivable=100)
        paid = service.add_transaction(customer.id, "Supplies", payable=50)
        service.toggle_transaction_status(customer.id, paid.id)

        totals = aggregate_outstanding(stored_transactions(service, customer.id))
        assert totals.total_receivable == 100
        assert totals.total_payable == 0
        assert totals.net_balance == 100
        assert unpaid.status == TransactionStatus.UNPAID

    def test_teams_are_isolated(self, db, service, customer):
        outsider = LedgerService(db, Actor(team_id="team-2", user_id="user-9", display_name="Bob"))
        assert outsider.list_customers() == []
        with pytest.raises(NotFoundError):
            outsider.get_customer(customer.id)


class TestConcurrency:
    def test_stale_write_is_rejected_and_document_kept(self, service, customer):
        service.add_transaction(customer.id, "Cement", receivable=100)
        before = service.get_customer(customer.id)
        row = service.store.get_customer("team-1", customer.id)

        # Another writer commits between our read and our write
        with database.engine.begin() as conn:
            conn.execute(
                text("UPDATE customers SET version = version + 1 WHERE team_id = :team AND id = :id"),
                {"team": "team-1", "id": customer.id}
            )

        with pytest.raises(PersistenceError):
            service.store.set_customer(row, [])

        after = service.get_customer(customer.id)
        assert after.transactions == before.transactions
        assert after.last_edited == before.last_edited

    def test_mutation_after_concurrent_change_sees_fresh_row(self, service, customer):
        with database.engine.begin() as conn:
            conn.execute(
                text("UPDATE customers SET version = version + 1 WHERE team_id = :team AND id = :id"),
                {"team": "team-1", "id": customer.id}
            )
        service.db.expire_all()

        t = service.add_transaction(customer.id, "Sand", receivable=5)
        assert [x.id for x in stored_transactions(service, customer.id)] == [t.id]


class TestImport:
    def records(self):
        return [
            {
                "id": "c-1",
                "name": "Imported One",
                "phone_number": "",
                "transactions": [
                    {"id": "t-1", "product_name": "Rice", "receivable": 100, "payable": 0, "status": "paid", "payments": []},
                    {"id": "t-2", "product_name": "Oil", "receivable": 0, "payable": 40, "status": "paid",
                     "payments": [{"id": "p-1", "amount": 15}]},
                ],
            },
            {"id": "c-2", "name": "Imported Two", "transactions": []},
        ]

    def test_import_upserts_and_rederives_status(self, service):
        assert service.import_customers(self.records()) == 2

        one = service.get_customer("c-1")
        rice, oil = one.transactions
        assert rice.status == TransactionStatus.PAID
        assert [p.amount for p in rice.payments] == [100]
        assert oil.status == TransactionStatus.PARTIAL
        assert_status_consistent(service, "c-1")

        renamed = self.records()[:1]
        renamed[0]["name"] = "Renamed"
        service.import_customers(renamed)
        assert service.get_customer("c-1").name == "Renamed"
        assert len(service.list_customers()) == 2

    @pytest.mark.parametrize("breakage", [
        lambda records: records[1].pop("id"),
        lambda records: records[1].update(name=""),
        lambda records: records[1].update(transactions="none"),
        lambda records: records[0]["transactions"][0].update(receivable=-1),
        lambda records: records.append(dict(records[1])),
    ])
    def test_bad_record_rejects_whole_batch(self, service, customer, breakage):
        records = self.records()
        breakage(records)
        with pytest.raises(ValidationError):
            service.import_customers(records)

        assert [c.id for c in service.team_records(include_removed=True)] == [customer.id]

    def test_empty_batch_rejected(self, service):
        with pytest.raises(ValidationError):
            service.import_customers([])
        with pytest.raises(ValidationError):
            service.import_customers({"id": "c-1"})


class TestActivity:
    def test_mutations_are_recorded(self, db, service, customer):
        t = service.add_transaction(customer.id, "Cable", receivable=20)
        service.add_payment(customer.id, t.id, 5)

        actions = [log.action for log in db.query(ActivityLog).order_by(ActivityLog.id).all()]
        assert actions == ["Created Customer", "Added Transaction", "Added Payment"]
        assert all(log.team_id == "team-1" for log in db.query(ActivityLog).all())

    def test_recording_failure_does_not_fail_mutation(self, monkeypatch, service, customer):
        def explode(_details):
            raise RuntimeError("audit store down")

        monkeypatch.setattr(activity_recorder.DataSanitizer, "sanitize_dict", explode)
        t = service.add_transaction(customer.id, "Fuse", receivable=3)
        assert stored_transactions(service, customer.id)[0].id == t.id

    def test_missing_identity_skips_recording(self, db, customer):
        anonymous = LedgerService(db, Actor(team_id="team-1", user_id="user-1", display_name=""))
        anonymous.add_transaction(customer.id, "Quiet", receivable=1)
        assert db.query(ActivityLog).filter(ActivityLog.action == "Added Transaction").count() == 0
