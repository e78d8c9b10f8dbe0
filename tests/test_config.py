"""Settings defaults tests."""

from shortener.config import Settings


def test_defaults_do_not_echo_sql() -> None:
    # SQL echo is tied to the development environment, so it must be opt-in.
    assert Settings.model_fields["APP_ENV"].default == "production"


def test_short_url_prefix_strips_trailing_slash() -> None:
    settings = Settings(BASE_URL="https://sho.rt/")
    assert settings.short_url_prefix == "https://sho.rt"
