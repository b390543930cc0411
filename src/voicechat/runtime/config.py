# src/voicechat/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from voicechat.ledger.constants import GROWTH_PROFILES, GrowthProfile, growth_profile

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None or (isinstance(v, str) and not v.strip()):
        return int(default)
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class VoiceChatConfig:
    mode: str  # "dev" | "test" | "prod"

    # Authority that owns the storage slots; seeds unit address derivation.
    owner: str

    # "mib" (1,048,576) | "kib" (1,024,000). One profile per deployment.
    growth_profile: str

    broadcast_workers: int

    api_host: str
    api_port: int

    log_level: str

    def profile(self) -> GrowthProfile:
        return growth_profile(self.growth_profile)


_ALLOWED_MODES = {"dev", "test", "prod"}


def validate_config(cfg: VoiceChatConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if not isinstance(cfg.owner, str) or not cfg.owner.strip():
        raise ValueError("owner must be a non-empty string")

    if str(cfg.growth_profile or "").strip().lower() not in GROWTH_PROFILES:
        raise ValueError(f"growth_profile must be one of {sorted(GROWTH_PROFILES)}; got: {cfg.growth_profile!r}")

    if int(cfg.broadcast_workers) <= 0 or int(cfg.broadcast_workers) > 64:
        raise ValueError(f"broadcast_workers must be 1..64; got: {cfg.broadcast_workers}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_config() -> VoiceChatConfig:
    return VoiceChatConfig(
        mode="prod",
        owner="voicechat-authority",
        growth_profile="mib",
        broadcast_workers=10,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _from_mapping(raw: Json, base: VoiceChatConfig) -> VoiceChatConfig:
    return VoiceChatConfig(
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        owner=_as_str(raw.get("owner"), base.owner).strip(),
        growth_profile=_as_str(raw.get("growth_profile"), base.growth_profile).strip().lower(),
        broadcast_workers=_as_int(raw.get("broadcast_workers"), base.broadcast_workers),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
    )


def read_config_file(path: str) -> VoiceChatConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("voicechat config must be a JSON object")
    return _from_mapping(raw, default_config())


def _env_overrides(cfg: VoiceChatConfig) -> VoiceChatConfig:
    env = {
        "mode": os.environ.get("VOICECHAT_MODE"),
        "owner": os.environ.get("VOICECHAT_OWNER"),
        "growth_profile": os.environ.get("VOICECHAT_GROWTH_PROFILE"),
        "broadcast_workers": os.environ.get("VOICECHAT_BROADCAST_WORKERS"),
        "api_host": os.environ.get("VOICECHAT_API_HOST"),
        "api_port": os.environ.get("VOICECHAT_API_PORT"),
        "log_level": os.environ.get("VOICECHAT_LOG_LEVEL"),
    }
    return _from_mapping({k: v for k, v in env.items() if v is not None}, cfg)


def load_config(*, config_path: Optional[str] = None) -> VoiceChatConfig:
    """File (explicit path or VOICECHAT_CONFIG_PATH), then env overrides, then validation."""
    p = config_path or os.environ.get("VOICECHAT_CONFIG_PATH")
    cfg = read_config_file(p) if p else default_config()
    cfg = _env_overrides(cfg)
    validate_config(cfg)
    return cfg


def with_overrides(cfg: VoiceChatConfig, **changes: Any) -> VoiceChatConfig:
    out = replace(cfg, **changes)
    validate_config(out)
    return out
