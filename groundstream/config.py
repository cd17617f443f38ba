"""Server configuration.

Defaults can be overridden with ``GROUNDSTREAM_*`` environment variables,
and the command-line flags of the entry points override both.
"""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional


ENV_PREFIX = "GROUNDSTREAM_"


@dataclass
class ServerConfig:
    """Settings for the streaming server.

    Attributes:
        host: Interface to bind
        port: WebSocket port
        kb_dir: Directory holding the knowledge corpus documents
        sweep_interval_s: Seconds between expiry sweeps of the action ledger
        action_max_age_s: Age after which pending and executed actions are purged
        cooldown_s: Window in which a repeat confirmation is ignored
        hallucination_rate: Demo generator's chance of a made-up answer
        log_level: Logging level name used when not running verbose
    """
    host: str = "localhost"
    port: int = 8787
    kb_dir: str = "kb"
    sweep_interval_s: float = 60.0
    action_max_age_s: float = 300.0
    cooldown_s: float = 30.0
    hallucination_rate: float = 0.2
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build a config from ``GROUNDSTREAM_<FIELD>`` variables.

        Raises:
            ValueError: If a variable cannot be converted to the field's type
        """
        env = os.environ if environ is None else environ
        config = cls()
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            current = getattr(config, f.name)
            try:
                value = type(current)(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
            setattr(config, f.name, value)
        return config
