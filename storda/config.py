"""Storda Registry Configuration."""

import secrets
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    server_name: str = "Storda Registry"
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    log_level: str = "INFO"

    # Paths
    data_dir: Path = Path.home() / "storda" / "data"

    # Database
    db_path: Path = Path.home() / "storda" / "data" / "storda.db"

    # JWT
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440  # 24 hours
    bcrypt_rounds: int = 12

    # PIN confirmation
    pin_length: int = 6
    pin_max_attempts: int = 5
    pin_window_seconds: int = 60
    pin_lockout_seconds: int = 600  # 10 minutes

    # Points / wallet
    initial_points: int = 500
    registration_fee: int = 100
    transfer_fee: int = 100
    topup_packages: list[int] = [500, 1000, 2500]

    # Transfers
    transfer_expiry_hours: int = 24

    # Blacklist registry
    blacklist_url: str = ""  # empty = local rule only
    blacklist_timeout_seconds: float = 5.0
    blacklisted_imeis: list[str] = []

    # Background sweep (transfer expiry + blacklist re-checks)
    sweep_enabled: bool = True
    sweep_interval_seconds: int = 300

    model_config = {"env_prefix": "STORDA_"}

    def ensure_dirs(self) -> None:
        """Create all required directories."""
        for d in [self.data_dir, self.db_path.parent]:
            d.mkdir(parents=True, exist_ok=True)

    def ensure_secrets(self) -> None:
        """Generate the JWT secret if not set, persist it so tokens survive restarts."""
        secrets_file = self.data_dir / ".secrets"
        saved = {}
        if secrets_file.exists():
            for line in secrets_file.read_text().strip().splitlines():
                if "=" in line:
                    k, v = line.split("=", 1)
                    saved[k.strip()] = v.strip()

        if not self.jwt_secret:
            self.jwt_secret = saved.get("jwt_secret", "") or secrets.token_urlsafe(32)

        secrets_file.write_text(f"jwt_secret={self.jwt_secret}\n")


settings = Settings()
settings.ensure_dirs()
settings.ensure_secrets()
