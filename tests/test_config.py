import re

import pytest

from infrastructure.config import (
    APP_KEY_PATTERN,
    MINIMAL_ENV,
    Settings,
    StartupError,
    bootstrap,
    ensure_app_key,
    generate_app_key,
    load,
)

KEY_LINE = re.compile(r"^APP_KEY=base64:[A-Za-z0-9+/]+={0,2}$")


def key_lines(text):
    return [line for line in text.splitlines() if line.startswith("APP_KEY=")]


def test_load_reads_trimmed_keys_and_unquoted_values():
    source = (
        "APP_NAME=Shop\n"
        "  SPACED_KEY  =value\n"
        'DOUBLE="quoted value"\n'
        "SINGLE='single'\n"
        "EMPTY=\n"
        'PADDED="  padded  "\n'
    )
    assert load(source) == {
        "APP_NAME": "Shop",
        "SPACED_KEY": "value",
        "DOUBLE": "quoted value",
        "SINGLE": "single",
        "EMPTY": "",
        "PADDED": "  padded  ",
    }


def test_load_skips_blank_comment_and_malformed_lines():
    source = "\n# a comment\nNO_SEPARATOR\nGOOD=1\n\n   \n"
    assert load(source) == {"GOOD": "1"}


def test_load_keeps_everything_after_first_separator():
    assert load("URL=postgres://u:p@host/db?x=1\n") == {"URL": "postgres://u:p@host/db?x=1"}


def test_generated_key_is_well_formed():
    key = generate_app_key()
    assert KEY_LINE.match("APP_KEY=" + key)
    assert generate_app_key() != key


def test_ensure_app_key_creates_minimal_env_file(tmp_path):
    env_file = tmp_path / ".env"

    assert ensure_app_key(env_file) is True

    content = env_file.read_text()
    lines = key_lines(content)
    assert len(lines) == 1
    assert KEY_LINE.match(lines[0])
    # inserted right after APP_NAME
    assert content.splitlines()[1] == lines[0]
    assert "MISTRAL_MODEL=" in content


def test_ensure_app_key_copies_example_file(tmp_path):
    (tmp_path / ".env.example").write_text("APP_NAME=FromExample\nLOG_LEVEL=DEBUG\n")
    env_file = tmp_path / ".env"

    ensure_app_key(env_file)

    content = env_file.read_text()
    assert "APP_NAME=FromExample" in content
    assert "LOG_LEVEL=DEBUG" in content
    assert len(key_lines(content)) == 1


def test_ensure_app_key_is_idempotent(tmp_path):
    env_file = tmp_path / ".env"
    ensure_app_key(env_file)
    first = env_file.read_text()

    assert ensure_app_key(env_file) is False
    assert env_file.read_text() == first


def test_ensure_app_key_replaces_invalid_and_duplicate_lines(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("APP_NAME=Shop\nAPP_KEY=not-a-key\nDEBUG=1\nAPP_KEY=\n")

    ensure_app_key(env_file)

    content = env_file.read_text()
    lines = key_lines(content)
    assert len(lines) == 1
    assert KEY_LINE.match(lines[0])
    assert content.splitlines() == ["APP_NAME=Shop", lines[0], "DEBUG=1"]


def test_ensure_app_key_prepends_without_app_name(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("LOG_LEVEL=INFO\n")

    ensure_app_key(env_file)

    first, second = env_file.read_text().splitlines()
    assert KEY_LINE.match(first)
    assert second == "LOG_LEVEL=INFO"


def test_settings_require_app_key(tmp_path):
    with pytest.raises(StartupError) as excinfo:
        Settings.from_values({"APP_NAME": "Shop"}, base_path=tmp_path)
    assert "APP_KEY" in excinfo.value.message
    assert excinfo.value.details


@pytest.mark.parametrize(
    "raw, expected",
    [("", True), ("true", True), ("1", True), ("ON", True), ("false", False), ("0", False)],
)
def test_settings_debug_flag(tmp_path, raw, expected):
    settings = Settings.from_values({"APP_KEY": "base64:abc=", "APP_DEBUG": raw}, base_path=tmp_path)
    assert settings.app_debug is expected


def test_settings_are_immutable(tmp_path):
    settings = Settings.from_values({"APP_KEY": "base64:abc="}, base_path=tmp_path)
    with pytest.raises(ValueError):
        settings.app_key = "other"


def test_bootstrap_provisions_everything(tmp_path):
    settings = bootstrap(tmp_path)

    assert APP_KEY_PATTERN.search((tmp_path / ".env").read_text())
    assert settings.app_key.startswith("base64:")
    assert settings.env_file == tmp_path / ".env"
    assert settings.storage_path.is_dir()
    assert (tmp_path / "storage" / "logs").is_dir()
    assert settings.app_name == "StoreAssistant"
    assert "APP_NAME=StoreAssistant" in MINIMAL_ENV
