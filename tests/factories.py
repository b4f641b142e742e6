"""Plain builders shared by test modules."""

from typing import Any

from src.models.token import Chain, TokenData

SOL_MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
BOT_TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"


def make_token(**overrides: Any) -> TokenData:
    fields: dict[str, Any] = {
        "id": SOL_MINT,
        "name": "Popcat",
        "symbol": "POPCAT",
        "icon": "\U0001fa99",
        "chain": Chain.SOLANA,
        "source": "pumpportal",
        "created_at": 1_700_000_000_000,
    }
    fields.update(overrides)
    return TokenData(**fields)
