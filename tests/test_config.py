import json

import pytest

from secret_handoff.config import DEFAULT_CHAIN_ID, DEFAULT_RESULT_GATEWAY_URL, FlowConfig
from secret_handoff.errors import ConfigurationError
from secret_handoff.generation import SecretType
from secret_handoff.plugins import load_object


def test_defaults_from_empty_environment() -> None:
    config = FlowConfig.from_env({})
    assert config.chain_id == DEFAULT_CHAIN_ID
    assert config.result_gateway_url == DEFAULT_RESULT_GATEWAY_URL
    assert config.tags == frozenset({"tee", "scone"})
    assert config.secret_type is SecretType.API_KEY
    assert config.poll.settle_delay == 5.0
    assert config.lock_file == ".secret-lock.json"


def test_environment_overrides() -> None:
    config = FlowConfig.from_env(
        {
            "TARGET_APP_ADDRESS": "0xproducer",
            "CONSUME_APP_ADDRESS": "0xconsumer",
            "WALLET_PRIVATE_KEY": "0xkey",
            "CHAIN_ID": "134",
            "TASK_TAGS": "TEE, scone ,gramine",
            "SECRET_TYPE": "uuid",
            "MAX_WAIT": "90",
        }
    )
    assert config.chain_id == 134
    assert config.tags == frozenset({"tee", "scone", "gramine"})
    assert config.secret_type is SecretType.UUID
    assert config.poll.max_wait == 90.0
    assert config.validate() is config
    assert "0xkey" not in repr(config)


def test_validate_names_every_missing_field() -> None:
    with pytest.raises(ConfigurationError) as info:
        FlowConfig.from_env({"CONSUME_APP_ADDRESS": "0xconsumer"}).validate()
    assert info.value.missing == ["WALLET_PRIVATE_KEY", "TARGET_APP_ADDRESS"]


def test_tags_must_include_tee() -> None:
    config = FlowConfig.from_env(
        {
            "TARGET_APP_ADDRESS": "0xp",
            "CONSUME_APP_ADDRESS": "0xc",
            "WALLET_PRIVATE_KEY": "0xk",
            "TASK_TAGS": "scone",
        }
    )
    with pytest.raises(ConfigurationError):
        config.validate()


def test_bad_number_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError) as info:
        FlowConfig.from_env({"CHAIN_ID": "arbitrum"})
    assert info.value.missing == ["CHAIN_ID"]


def test_producer_credentials_bundle() -> None:
    config = FlowConfig(private_key="0xkey", sms_url="https://sms.test", rpc_url="https://rpc.test")
    bundle = json.loads(config.producer_credentials().to_secret_value())
    assert bundle == {"DEDICATED_PRIVATE_KEY": "0xkey", "SMS_URL": "https://sms.test", "RPC_URL": "https://rpc.test"}
    with pytest.raises(ConfigurationError):
        FlowConfig().producer_credentials()


def test_load_object() -> None:
    assert load_object("json:dumps", setting="X") is json.dumps
    for bad in (None, "json", "no_such_module_xyz:f", "json:no_such_attr"):
        with pytest.raises(ConfigurationError):
            load_object(bad, setting="X")
