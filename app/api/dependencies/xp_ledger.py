# app/api/dependencies/xp_ledger.py
from app.services.xp_ledger import XpLedger


def get_xp_ledger() -> XpLedger:
    """
    Ledger used as the completion listener; overridden in tests to pin "today".
    """
    return XpLedger()
