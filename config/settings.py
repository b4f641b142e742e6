from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Environment detection (development | preview | production)
    app_env: str = "development"
    vercel_env: str = ""
    vercel_url: str = ""
    base_url: str = ""  # Public base URL, e.g. https://pulse.example.com

    # PumpPortal (pump.fun real-time feed)
    enable_pumpportal: bool = True
    pumpportal_ws_url: str = "wss://pumpportal.fun/api/data"
    pumpportal_api_key: str = ""  # Only needed for PumpSwap data (funded wallet)

    # BSC feed (forr.meme), disabled until endpoints are confirmed
    bsc_ws_url: str = ""
    bsc_api_url: str = ""

    # WebSocket reconnect policy
    ws_reconnect_base_delay_sec: float = 3.0
    ws_reconnect_max_delay_sec: float = 30.0
    ws_max_reconnect_attempts: int = 10
    bsc_reconnect_delay_sec: float = 3.0

    # DexScreener
    dexscreener_max_rps: float = 4.0
    dexscreener_cache_ttl_sec: float = 60.0

    # Pump.fun frontend API
    pumpfun_max_rps: float = 2.0
    pumpfun_cache_ttl_sec: float = 30.0

    # Enrichment
    enable_enrichment: bool = True
    migrated_fetch_limit: int = 100
    store_max_tokens_per_chain: int = 5000

    # Solana JSON-RPC (program signature scan)
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    pump_fun_program_id: str = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"

    # Telegram bot (per-environment overrides fall back to the plain token)
    telegram_bot_token: str = ""
    telegram_bot_token_dev: str = ""
    telegram_bot_token_preview: str = ""
    telegram_bot_username: str = "your_bot_username"
    telegram_webhook_secret: str = ""
    telegram_webhook_secret_dev: str = ""
    telegram_webhook_secret_preview: str = ""
    telegram_auth_token_ttl_sec: int = 600  # 10 min to finish the bot round-trip
    telegram_auth_max_age_sec: int = 86400

    # HTTP API
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_cors_origins: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_dir: str = "logs"  # Empty disables the rotating file sink


settings = Settings()
