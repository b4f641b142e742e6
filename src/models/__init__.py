from src.models.token import (
    Chain,
    SocialLink,
    TokenActivity,
    TokenData,
    TokenEnrichment,
    WebsiteLink,
)

__all__ = [
    "Chain",
    "SocialLink",
    "TokenActivity",
    "TokenData",
    "TokenEnrichment",
    "WebsiteLink",
]
