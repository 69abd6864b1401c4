from pathlib import Path

import pytest
from pydantic import ValidationError

from cadence.schemas.cascade import ChainProfile
from cadence.witness.settings import Settings


def test_defaults():
    s = Settings()
    assert s.layer_orders == [1, 3, 9, 27]
    assert s.max_batch_size == 10
    assert s.beat_interval_sec == 1.0
    assert s.stimulus_retry_sec == 5.0
    assert s.journal_path == Path("output.txt")
    assert s.llm_options() == {"num_predict": 255, "temperature": 0.75, "num_ctx": 2048}


def test_orders_from_comma_list_env(monkeypatch):
    monkeypatch.setenv("CADENCE_LAYER_ORDERS", "1, 2,4")
    assert Settings().layer_orders == [1, 2, 4]


def test_orders_from_json_env(monkeypatch):
    monkeypatch.setenv("CADENCE_LAYER_ORDERS", "[2, 6]")
    assert Settings().layer_orders == [2, 6]


def test_chain_profile_without_file_uses_env_values():
    profile = Settings(layer_orders="1,5", max_batch_size=3).chain_profile()
    assert profile == ChainProfile(orders=[1, 5], max_batch_size=3)


def test_chain_profile_from_yaml(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text("orders: [1, 2, 4, 8]\nmax_batch_size: 5\n", encoding="utf-8")

    profile = Settings(chain_profile_path=path).chain_profile()

    assert profile.orders == [1, 2, 4, 8]
    assert profile.max_batch_size == 5


def test_chain_profile_yaml_partial_keeps_env_batch(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text("orders: [3]\n", encoding="utf-8")
    profile = Settings(chain_profile_path=path, max_batch_size=7).chain_profile()
    assert profile.orders == [3]
    assert profile.max_batch_size == 7


def test_missing_chain_profile_falls_back(tmp_path):
    profile = Settings(chain_profile_path=tmp_path / "nope.yaml").chain_profile()
    assert profile.orders == [1, 3, 9, 27]


def test_invalid_chain_profile_rejected(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text("orders: [1, 0]\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        Settings(chain_profile_path=path).chain_profile()


@pytest.mark.parametrize("kwargs", [{"orders": []}, {"max_batch_size": 0}])
def test_chain_profile_validation(kwargs):
    with pytest.raises(ValidationError):
        ChainProfile(**kwargs)
