from dataclasses import dataclass
import logging
import os

from dotenv import load_dotenv


load_dotenv(override=False)


@dataclass(frozen=True)
class Settings:
    app_name: str = os.getenv("IDSPACE_APP_NAME", "IdSpace DID Client")
    ledger_mode: str = os.getenv("IDSPACE_LEDGER_MODE", "memory")
    did_marker: str = os.getenv("IDSPACE_DID_MARKER", "00")
    did_version: str = os.getenv("IDSPACE_DID_VERSION", "01")
    did_network: str = os.getenv("IDSPACE_NETWORK", "0000")
    default_key_type: int = int(os.getenv("IDSPACE_DEFAULT_KEY_TYPE", "0"))
    log_level: str = os.getenv("IDSPACE_LOG_LEVEL", "INFO")
    api_key: str = os.getenv("API_KEY", "")


settings = Settings()


def configure_logging(config: Settings) -> None:
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level)
