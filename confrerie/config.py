import hashlib
import os
import socket
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    data_path: str = "data/app_data.json"
    # Empty means "derive one from the data path and host name"
    secret_key: str = ""
    # Member allowed to switch on admin mode for their session
    admin_delegate_id: str = "u5"
    submit_cooldown: int = 4
    notification_batch: int = 15
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def signing_key(self) -> str:
        if self.secret_key:
            return self.secret_key
        seed = f"{os.path.abspath(self.data_path)}|{socket.gethostname()}|confrerie"
        return hashlib.sha256(seed.encode("utf-8")).hexdigest()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "").strip())
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        data_path=os.getenv("CONFRERIE_DATA_PATH", "").strip() or "data/app_data.json",
        secret_key=os.getenv("CONFRERIE_SECRET_KEY", "").strip(),
        admin_delegate_id=os.getenv("CONFRERIE_ADMIN_DELEGATE", "").strip() or "u5",
        submit_cooldown=_int_env("CONFRERIE_SUBMIT_COOLDOWN", 4),
        notification_batch=_int_env("CONFRERIE_NOTIFICATION_BATCH", 15),
        host=os.getenv("CONFRERIE_HOST", "").strip() or "0.0.0.0",
        port=_int_env("CONFRERIE_PORT", 8000),
        log_level=os.getenv("CONFRERIE_LOG_LEVEL", "").strip() or "INFO",
    )
