import base64
import io
import logging
import re
import secrets
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent

APP_KEY_PATTERN = re.compile(r"^APP_KEY=base64:[A-Za-z0-9+/]+={0,2}$", re.MULTILINE)
APP_KEY_LINE = re.compile(r"^APP_KEY=.*$", re.MULTILINE)
APP_NAME_LINE = re.compile(r"^(APP_NAME=.*)$", re.MULTILINE)
APP_KEY_BYTES = 32

DEFAULT_MODEL = "mistral-medium-latest"

MINIMAL_ENV = (
    "APP_NAME=StoreAssistant\n"
    "APP_ENV=production\n"
    "APP_DEBUG=true\n"
    "APP_URL=\n"
    "\n"
    "LOG_LEVEL=INFO\n"
    "\n"
    "MISTRAL_API_KEY=\n"
    f"MISTRAL_MODEL={DEFAULT_MODEL}\n"
)

STORAGE_DIRS = (
    "storage",
    "storage/app",
    "storage/logs",
    "storage/framework/cache",
)

TRUTHY = {"true", "1", "yes", "on"}


class StartupError(RuntimeError):
    """Raised when the process cannot be brought into a servable state."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class Settings(BaseModel):
    """Process-wide configuration. Built once, then passed around explicitly."""
    model_config = ConfigDict(frozen=True)

    app_name: str = "StoreAssistant"
    app_env: str = "production"
    app_debug: bool = True
    app_url: str = ""
    app_key: str
    log_level: str = "INFO"
    mistral_api_key: str = ""
    mistral_model: str = DEFAULT_MODEL
    base_path: Path = BASE_DIR
    env_file: Path = BASE_DIR / ".env"

    @property
    def storage_path(self) -> Path:
        return self.base_path / "storage"

    @classmethod
    def from_values(cls, values: dict[str, str], base_path: Path = BASE_DIR) -> "Settings":
        app_key = values.get("APP_KEY", "")
        if not app_key:
            raise StartupError(
                "APP_KEY is missing. Regenerate it by restarting the service.",
                ["APP_KEY not found in .env file"],
            )

        debug = values.get("APP_DEBUG", "")
        return cls(
            app_name=values.get("APP_NAME") or "StoreAssistant",
            app_env=values.get("APP_ENV") or "production",
            # blank means "not configured", which defaults to debug on
            app_debug=debug == "" or debug.lower() in TRUTHY,
            app_url=values.get("APP_URL", ""),
            app_key=app_key,
            log_level=(values.get("LOG_LEVEL") or "INFO").upper(),
            mistral_api_key=values.get("MISTRAL_API_KEY", ""),
            mistral_model=values.get("MISTRAL_MODEL") or DEFAULT_MODEL,
            base_path=base_path,
            env_file=base_path / ".env",
        )


def load(source: str) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines. Lines without a separator are skipped."""
    parsed = dotenv_values(stream=io.StringIO(source), interpolate=False)
    values = {}
    for key, value in parsed.items():
        key = key.strip()
        # dotenv reports "KEY" with no "=" as a None value
        if not key or value is None:
            continue
        values[key] = value
    return values


def generate_app_key() -> str:
    return "base64:" + base64.b64encode(secrets.token_bytes(APP_KEY_BYTES)).decode("ascii")


def ensure_env_file(env_file: Path) -> None:
    if env_file.exists():
        return
    example = env_file.with_name(".env.example")
    if example.exists():
        logger.info("Creating %s from %s", env_file, example)
        env_file.write_text(example.read_text(encoding="utf-8"), encoding="utf-8")
    else:
        logger.info("Creating minimal %s", env_file)
        env_file.write_text(MINIMAL_ENV, encoding="utf-8")


def ensure_app_key(env_file: Path) -> bool:
    """Write a fresh APP_KEY unless a well-formed one exists. Returns True if written."""
    ensure_env_file(env_file)
    content = env_file.read_text(encoding="utf-8")
    if APP_KEY_PATTERN.search(content):
        return False

    key_line = "APP_KEY=" + generate_app_key()
    if APP_KEY_LINE.search(content):
        lines = content.splitlines(keepends=True)
        rewritten = []
        replaced = False
        for line in lines:
            if APP_KEY_LINE.match(line.rstrip("\r\n")):
                if replaced:
                    continue
                ending = line[len(line.rstrip("\r\n")):]
                rewritten.append(key_line + (ending or "\n"))
                replaced = True
            else:
                rewritten.append(line)
        content = "".join(rewritten)
    elif APP_NAME_LINE.search(content):
        content = APP_NAME_LINE.sub(lambda m: m.group(1) + "\n" + key_line, content, count=1)
    else:
        content = key_line + "\n" + content

    env_file.write_text(content, encoding="utf-8")
    logger.info("Provisioned a new APP_KEY in %s", env_file)
    return True


def ensure_storage(base_path: Path) -> None:
    for relative in STORAGE_DIRS:
        path = base_path / relative
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StartupError(
                "Storage directory could not be created.",
                [f"{relative}: {exc.strerror}"],
            ) from exc


def bootstrap(base_path: Path = BASE_DIR) -> Settings:
    """Provision the env file and storage, then build Settings."""
    env_file = base_path / ".env"
    try:
        ensure_app_key(env_file)
    except OSError as exc:
        raise StartupError(".env file could not be provisioned.", [str(exc)]) from exc
    ensure_storage(base_path)
    values = load(env_file.read_text(encoding="utf-8"))
    return Settings.from_values(values, base_path=base_path)
