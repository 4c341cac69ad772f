import pytest

from tubely.config import ApiConfig, MissingEnvironmentError, load_config, must_getenv

ENV = {
    "DB_PATH": "db.sqlite",
    "JWT_SECRET": "secret",
    "PLATFORM": "dev",
    "FILEPATH_ROOT": "./app",
    "ASSETS_ROOT": "./assets",
    "S3_BUCKET": "bucket",
    "S3_REGION": "us-east-2",
    "S3_CF_DISTRO": "cdn",
    "PORT": "8091",
}


def test_must_getenv_set(monkeypatch):
    monkeypatch.setenv("TUBELY_X", "value")
    assert must_getenv("TUBELY_X") == "value"


@pytest.mark.parametrize("value", [None, ""])
def test_must_getenv_missing(monkeypatch, value):
    if value is None:
        monkeypatch.delenv("TUBELY_X", raising=False)
    else:
        monkeypatch.setenv("TUBELY_X", value)
    with pytest.raises(MissingEnvironmentError):
        must_getenv("TUBELY_X")


def test_load_config(monkeypatch):
    for k, v in ENV.items():
        monkeypatch.setenv(k, v)
    cfg = load_config()
    assert cfg.port == "8091"
    assert cfg.s3_cf_distribution == "cdn"
    assert cfg.db_path == "db.sqlite"


def test_load_config_missing(monkeypatch):
    for k, v in ENV.items():
        monkeypatch.setenv(k, v)
    monkeypatch.delenv("PORT")
    with pytest.raises(MissingEnvironmentError):
        load_config()


def test_ensure_assets_dir(tmp_path):
    target = tmp_path / "assets"
    cfg = ApiConfig("db", "secret", "dev", str(tmp_path), str(target), "b", "r", "c", "1")
    cfg.ensure_assets_dir()
    assert target.is_dir()
    (target / "f").write_text("x")
    cfg.ensure_assets_dir()
    assert (target / "f").read_text() == "x"