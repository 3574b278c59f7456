import importlib.util
import os
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path

from domain.models import DiagnosticCheck, DiagnosticReport, DiagnosticSummary, HealthStatus
from infrastructure.config import APP_KEY_PATTERN, Settings

VERSION = "1.0.0"
MIN_PYTHON = (3, 10)

REQUIRED_MODULES = (
    "fastapi",
    "pydantic",
    "dotenv",
    "httpx",
    "langchain_core",
    "langchain_mistralai",
)


def _writable(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.W_OK)


def check_runtime() -> DiagnosticCheck:
    ok = sys.version_info[:2] >= MIN_PYTHON
    return DiagnosticCheck(
        name="python_version",
        status="ok" if ok else "fail",
        detail=f"{platform.python_version()} (required {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+)",
    )


def check_dependencies() -> DiagnosticCheck:
    missing = [name for name in REQUIRED_MODULES if importlib.util.find_spec(name) is None]
    return DiagnosticCheck(
        name="dependencies",
        status="fail" if missing else "ok",
        detail=f"missing: {', '.join(missing)}" if missing else "all installed",
    )


def check_env_file(env_file: Path) -> DiagnosticCheck:
    exists = env_file.is_file()
    return DiagnosticCheck(
        name="env_file",
        status="ok" if exists else "fail",
        detail="present" if exists else "missing",
    )


def check_app_key(env_file: Path) -> DiagnosticCheck:
    if not env_file.is_file():
        return DiagnosticCheck(name="app_key", status="fail", detail="cannot check, .env file missing")
    ok = bool(APP_KEY_PATTERN.search(env_file.read_text(encoding="utf-8")))
    return DiagnosticCheck(name="app_key", status="ok" if ok else "fail", detail="set" if ok else "missing")


def check_storage(storage_path: Path) -> DiagnosticCheck:
    ok = _writable(storage_path)
    return DiagnosticCheck(
        name="storage",
        status="ok" if ok else "fail",
        detail="writable" if ok else "not writable",
    )


def build_report(base_path: Path) -> DiagnosticReport:
    """Run every check. Works without Settings so it can explain startup failures."""
    env_file = base_path / ".env"
    checks = [
        check_runtime(),
        check_dependencies(),
        check_env_file(env_file),
        check_app_key(env_file),
        check_storage(base_path / "storage"),
    ]
    passed = sum(1 for check in checks if check.status == "ok")
    return DiagnosticReport(
        timestamp=datetime.now(timezone.utc),
        checks=checks,
        summary=DiagnosticSummary(
            all_checks_passed=passed == len(checks),
            total_checks=len(checks),
            passed=passed,
            failed=len(checks) - passed,
        ),
    )


def health(settings: Settings) -> HealthStatus:
    return HealthStatus(
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        python_version=platform.python_version(),
        app_key_set=bool(settings.app_key),
        llm_key_set=bool(settings.mistral_api_key),
        storage_writable=_writable(settings.storage_path),
    )
