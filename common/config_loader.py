# common/config_loader.py
import os
import yaml
import logging
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from dotenv import load_dotenv

from business_profile import BUSINESS_PROFILE

_log = logging.getLogger("ena-coach-agent")


def load_env_files(candidates: Iterable[str] = (".env.local", "env.local", ".env")) -> None:
    """Load env files from CWD without overriding values set by the platform."""
    for name in candidates:
        if os.path.exists(name):
            load_dotenv(name, override=False)


def load_config() -> Dict[str, Any]:
    """Load YAML from CONFIG_PATH or ./config.yaml, with safe defaults."""
    config_path = Path(os.getenv("CONFIG_PATH", "config.yaml"))
    if not config_path.exists():
        _log.warning("Config file not found at %s. Using built-in defaults.", config_path)
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except Exception as e:  # noqa: BLE001
        _log.error("Failed to parse %s: %s. Using built-in defaults.", config_path, e)
        return {}


def cfg_get(d: Dict[str, Any], path: str, default=None):
    """Safely fetch a nested key via dotted path, e.g. cfg_get(cfg, 'openai.llm_model')."""
    cur = d
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def mask_key(key: Optional[str]) -> str:
    if not key:
        return "<none>"
    digest = hashlib.sha256(key.encode()).hexdigest()
    return f"sha256:{digest[:8]}"


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass
class Settings:
    # Model
    openai_api_key: str = ""
    llm_model: str = "gpt-4o-mini"

    # Conversation loop
    max_tool_rounds: int = 5
    history_max_messages: int = 40
    timezone: str = BUSINESS_PROFILE["timezone"]

    # Payments
    payments_provider: str = "simulated"
    daraja_base_url: str = "https://api.safaricom.co.ke"
    daraja_consumer_key: str = ""
    daraja_consumer_secret: str = ""
    daraja_passkey: str = ""
    daraja_shortcode: str = "5512238"
    daraja_party_b: str = ""
    daraja_callback_url: str = ""
    simulated_auto_complete_after: Optional[int] = None

    # Messaging
    messaging_provider: str = "outbox"
    evolution_url: str = ""
    evolution_token: str = ""
    instance_name: str = "EnaCoach"

    # Ledger
    ticket_secret: str = "change-me-ticket-secret"
    fleet_seed: Optional[int] = None
    contacts_file: Optional[str] = None

    # Network
    http_timeout: float = 15.0

    @property
    def daraja_configured(self) -> bool:
        return bool(self.daraja_consumer_key and self.daraja_consumer_secret and self.daraja_passkey)

    @property
    def evolution_configured(self) -> bool:
        return bool(self.evolution_url and self.evolution_token)


def load_settings(cfg: Optional[Dict[str, Any]] = None) -> Settings:
    """Merge YAML knobs with secrets from the environment."""
    cfg = load_config() if cfg is None else cfg

    auto_after = cfg_get(cfg, "payments.simulated_auto_complete_after", None)
    fleet_seed = cfg_get(cfg, "fleet.seed", None)

    s = Settings(
        openai_api_key=_env("OPENAI_API_KEY"),
        llm_model=cfg_get(cfg, "openai.llm_model", "gpt-4o-mini"),
        max_tool_rounds=int(cfg_get(cfg, "session.max_tool_rounds", 5)),
        history_max_messages=int(cfg_get(cfg, "session.history_max_messages", 40)),
        timezone=cfg_get(cfg, "session.timezone", BUSINESS_PROFILE["timezone"]),
        payments_provider=str(cfg_get(cfg, "payments.provider", "daraja")).lower(),
        daraja_base_url=cfg_get(cfg, "payments.base_url", "https://api.safaricom.co.ke"),
        daraja_consumer_key=_env("DARAJA_CONSUMER_KEY"),
        daraja_consumer_secret=_env("DARAJA_CONSUMER_SECRET"),
        daraja_passkey=_env("DARAJA_PASSKEY"),
        daraja_shortcode=_env("DARAJA_SHORTCODE", "5512238"),
        daraja_party_b=_env("DARAJA_PARTY_B"),
        daraja_callback_url=cfg_get(cfg, "payments.callback_url", ""),
        simulated_auto_complete_after=int(auto_after) if auto_after is not None else None,
        messaging_provider=str(cfg_get(cfg, "messaging.provider", "evolution")).lower(),
        evolution_url=_env("EVOLUTION_API_URL").rstrip("/"),
        evolution_token=_env("EVOLUTION_API_TOKEN"),
        instance_name=_env("INSTANCE_NAME", "EnaCoach"),
        ticket_secret=_env("TICKET_SECRET", "change-me-ticket-secret"),
        fleet_seed=int(fleet_seed) if fleet_seed is not None else None,
        contacts_file=cfg_get(cfg, "crm.contacts_file", None),
        http_timeout=float(cfg_get(cfg, "network.timeout_seconds", 15.0)),
    )

    # Fall back to local simulators when credentials are missing
    if s.payments_provider == "daraja" and not s.daraja_configured:
        _log.warning("Daraja credentials missing; using the simulated payment gateway.")
        s.payments_provider = "simulated"
    if s.messaging_provider == "evolution" and not s.evolution_configured:
        _log.warning("Evolution API config missing; outbound messages go to the in-memory outbox.")
        s.messaging_provider = "outbox"
    return s
