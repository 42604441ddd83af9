from urllib.parse import unquote

import pytest

from rpay.models.withdrawal import Withdrawal
from rpay.services.withdrawals.service import (
    WithdrawalError,
    WithdrawalErrorReason,
    WithdrawalService,
    contact_link,
)


class TestCreate:
    def test_debits_balance_and_records_pending(self, db, make_user):
        user = make_user(saldo=50000)
        withdrawal = WithdrawalService(db).create(user.id, "20000")

        assert withdrawal.nominal == 20000
        assert withdrawal.status == "pending"
        db.refresh(user)
        assert user.saldo == 30000

    def test_whole_balance_can_be_withdrawn(self, db, make_user):
        user = make_user(saldo=9560)
        WithdrawalService(db).create(user.id, 9560)
        db.refresh(user)
        assert user.saldo == 0

    def test_insufficient_balance_changes_nothing(self, db, make_user):
        user = make_user(saldo=10000)
        with pytest.raises(WithdrawalError) as exc:
            WithdrawalService(db).create(user.id, 10001)

        assert exc.value.reason == WithdrawalErrorReason.INSUFFICIENT_BALANCE
        assert exc.value.message == "Insufficient balance"
        db.refresh(user)
        assert user.saldo == 10000
        assert db.query(Withdrawal).count() == 0

    @pytest.mark.parametrize("nominal", ["", "abc", "0", -100, None, "1.5", str(2**63), str(10**30)])
    def test_invalid_amount(self, db, make_user, nominal):
        user = make_user(saldo=10000)
        with pytest.raises(WithdrawalError) as exc:
            WithdrawalService(db).create(user.id, nominal)
        assert exc.value.reason == WithdrawalErrorReason.INVALID_AMOUNT
        db.refresh(user)
        assert user.saldo == 10000

    def test_unknown_user_is_rejected(self, db):
        with pytest.raises(WithdrawalError) as exc:
            WithdrawalService(db).create(999, 1000)
        assert exc.value.reason == WithdrawalErrorReason.INSUFFICIENT_BALANCE

    def test_recent_for_user(self, db, make_user):
        user = make_user(saldo=10000)
        svc = WithdrawalService(db)
        svc.create(user.id, 1000)
        svc.create(user.id, 2000)
        assert [w.nominal for w in svc.recent_for_user(user.id)] == [2000, 1000]


class TestContactLink:
    def test_link_carries_phone_and_amount(self):
        link = contact_link(25000)
        assert link.startswith("https://wa.me/6289525036410?text=")
        assert "Rp 25000" in unquote(link.split("text=", 1)[1])
        assert " " not in link
