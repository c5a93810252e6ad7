import os
import tempfile

from app import config


def test_load_env_from_file_keeps_process_values(monkeypatch):
    monkeypatch.setenv("POKELAB_TEST_FROM_FILE", "")
    monkeypatch.setenv("POKELAB_TEST_PRESET", "process")
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, ".env")
        with open(path, "w", encoding="utf-8") as f:
            f.write('# NOTE=ignored\nPOKELAB_TEST_FROM_FILE="file value"\nPOKELAB_TEST_PRESET=file\nnot a pair\n')
        config._load_env_from_file(path)
    assert os.environ["POKELAB_TEST_FROM_FILE"] == "file value"
    assert os.environ["POKELAB_TEST_PRESET"] == "process"


def test_numeric_settings_fall_back_on_bad_values(monkeypatch):
    monkeypatch.setattr(config, "_env_loaded", True)
    monkeypatch.setenv("POKEAPI_BATCH_SIZE", "abc")
    assert config.get_batch_size() == config.DEFAULT_BATCH_SIZE
    monkeypatch.setenv("POKEAPI_BATCH_SIZE", "-3")
    assert config.get_batch_size() == config.DEFAULT_BATCH_SIZE
    monkeypatch.setenv("POKEAPI_BATCH_SIZE", "20")
    assert config.get_batch_size() == 20
    monkeypatch.setenv("POKEAPI_TIMEOUT", "2.5")
    assert config.get_timeout() == 2.5
    monkeypatch.setenv("POKEAPI_BASE_URL", "https://pokeapi.test/api/")
    assert config.get_pokeapi_base_url() == "https://pokeapi.test/api"
