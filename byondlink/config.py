from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_PORT = 5000
DEFAULT_TIMEOUT = 5.0


@dataclass
class ClientConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    suffix: Optional[str] = None  # appended to every query unless the call opts out
    timeout: float = DEFAULT_TIMEOUT  # seconds without activity before giving up

    @classmethod
    def from_env(cls, prefix: str = "BYONDLINK_", environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if environ is None else environ
        cfg = cls()
        if env.get(prefix + "HOST"):
            cfg.host = env[prefix + "HOST"]
        if env.get(prefix + "PORT"):
            cfg.port = int(env[prefix + "PORT"])
        if env.get(prefix + "SUFFIX"):
            cfg.suffix = env[prefix + "SUFFIX"]
        if env.get(prefix + "TIMEOUT"):
            cfg.timeout = float(env[prefix + "TIMEOUT"])
        return cfg


@dataclass
class ListenerConfig:
    host: str = "0.0.0.0"
    port: int = 0  # 0 lets the OS pick; see TopicListener.port
