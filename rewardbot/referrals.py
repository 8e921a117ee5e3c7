import logging
from typing import Optional

from .models import Notification, TextKey, UserRecord
from .store import Transaction

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().lower()


def resolve_referral(tx: Transaction, referee: UserRecord, code: Optional[str], bonus: int) -> Optional[Notification]:
    """Attribute ``referee`` to the owner of ``code`` and credit the owner.

    Runs inside the caller's transaction, so the attribution and the bonus
    are committed together. Unknown codes, self referrals and referees that
    are already attributed are ignored and return None.
    """
    code = normalize_code(code)
    if not code or referee.referred_by is not None:
        return None

    referrer_id = tx.find_by_code(code)
    if referrer_id is None or referrer_id == referee.id:
        return None
    referrer = tx.get(referrer_id)
    if referrer is None:
        logger.warning(f"Referral code {code} points at missing record {referrer_id}")
        return None

    referee.referred_by = referrer.id
    referrer.referrals += 1
    referrer.balance += bonus
    tx.put(referee)
    tx.put(referrer)

    logger.info(f"Referral attributed: {referee.id} referred by {referrer.id}, bonus {bonus}")
    return Notification(
        chat_id=referrer.id,
        text_key=TextKey.REFERRAL_JOINED,
        data={"referee": referee.id, "bonus": bonus, "balance": referrer.balance, "referrals": referrer.referrals},
    )
