from typing import Any

from .models import TextKey

MESSAGES: dict[TextKey, str] = {
    TextKey.WELCOME: "👋 Welcome!\n\n💎 Earning Bot\n🆔 ID: {chat_id}\n👥 Your referral code: {ref_code}",
    TextKey.EARNED: "✅ Earned {amount} points!\n💳 Balance: {balance}",
    TextKey.COOLDOWN: "⏳ Come back in {minutes} min {seconds} s to earn again.",
    TextKey.NOT_ACTIVATED: "❌ Account not activated.",
    TextKey.BALANCE: "💳 Balance: {balance}\n⭐ VIP: {vip_label}",
    TextKey.REFERRALS: "👥 Referral Code: {ref_code}\nReferrals: {referrals}\n{bonus} points per referral!",
    TextKey.REFERRAL_JOINED: "🎉 A new user joined with your code! +{bonus} points\n💳 Balance: {balance}",
    TextKey.LEADERBOARD: "🏆 Leaderboard\n\n{lines}",
    TextKey.WITHDRAW_REQUESTED: "✅ Withdraw request received for {amount} points.\n💳 Balance: {balance}",
    TextKey.WITHDRAW_SHORTFALL: "❌ Minimum {threshold} required. You need {shortfall} more points.",
    TextKey.WITHDRAW_PENDING: "🏧 Withdrawal request {id}\nUser: {user_id}\nAmount: {amount}",
    TextKey.VIP_INFO: "⭐ VIP Plan\n✔ {bonus} points per earn\n✔ Priority withdraw\n\nContact Admin.",
    TextKey.UNKNOWN_COMMAND: "Unknown command",
    TextKey.INTERNAL_ERROR: "⚠️ Something went wrong. Please try again later.",
}


def main_keyboard() -> dict:
    return {
        "inline_keyboard": [
            [
                {"text": "💰 Earn", "callback_data": "earn"},
                {"text": "💳 Balance", "callback_data": "balance"},
            ],
            [
                {"text": "👥 Referral", "callback_data": "ref"},
                {"text": "🏧 Withdraw", "callback_data": "withdraw"},
            ],
            [
                {"text": "🏆 Top", "callback_data": "leaderboard"},
                {"text": "⭐ VIP", "callback_data": "vip"},
            ],
        ]
    }


def _extra_fields(text_key: TextKey, data: dict[str, Any]) -> dict[str, Any]:
    if text_key == TextKey.COOLDOWN:
        minutes, seconds = divmod(int(data.get("remaining_seconds", 0)), 60)
        return {"minutes": minutes, "seconds": seconds}
    if text_key == TextKey.BALANCE:
        return {"vip_label": "YES" if data.get("vip") else "NO"}
    if text_key == TextKey.LEADERBOARD:
        entries = data.get("entries") or []
        lines = "\n".join(f"{e['rank']}. {e['user_id']} - {e['balance']}" for e in entries)
        return {"lines": lines or "No players yet."}
    return {}


def render(text_key: TextKey, data: dict[str, Any]) -> str:
    return MESSAGES[text_key].format(**{**data, **_extra_fields(text_key, data)})
