from flask import current_app

from ledger.store import LedgerStore
from ledger.primitives import LedgerService
from ledger.plans import PlanService
from ledger.recharges import RechargeService
from ledger.withdrawals import WithdrawalService
from ledger.settlement import DailyIncomeSettlement


class LedgerServices:
    """
    Every ledger workflow, wired to one shared LedgerStore.
    Built once in create_app and kept on app.extensions["ledger"].
    """

    def __init__(self, store, tax_rate, cooldown_hours):
        self.store = store
        self.ledger = LedgerService(store)
        self.plans = PlanService(store, self.ledger)
        self.recharges = RechargeService(store, self.ledger)
        self.withdrawals = WithdrawalService(store, self.ledger, tax_rate=tax_rate,
                                             cooldown_hours=cooldown_hours)
        self.settlement = DailyIncomeSettlement(store, self.ledger)

    @classmethod
    def from_config(cls, config, store=None):
        return cls(
            store or LedgerStore(),
            tax_rate=config["WITHDRAWAL_TAX_RATE"],
            cooldown_hours=config["WITHDRAWAL_COOLDOWN_HOURS"],
        )


def init_ledger(app):
    services = LedgerServices.from_config(app.config)
    app.extensions["ledger"] = services
    return services


def get_services() -> LedgerServices:
    return current_app.extensions["ledger"]
