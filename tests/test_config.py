import logging

import pytest

from receipt_recon.config import generate_default_config, load_config
from receipt_recon.utils.exceptions import ConfigurationError
from receipt_recon.utils.logging_config import parse_level, setup_logging


def test_defaults():
    config = load_config()
    assert config.matching.date_window_days == 5
    assert config.matching.amount_tolerance == 0.05
    assert config.currency.exchange_rates["EUR"] == 1.08
    assert config.suggestions.endpoint is None
    assert config.config_file_path is None


def test_user_values_merge_into_defaults(tmp_path):
    path = tmp_path / "recon.yaml"
    path.write_text("matching:\n  date_window_days: 3\ncurrency:\n  exchange_rates:\n    NOK: 0.093\n")

    config = load_config(path)

    assert config.matching.date_window_days == 3
    assert config.matching.amount_tolerance == 0.05
    assert config.currency.exchange_rates["NOK"] == 0.093
    assert config.currency.exchange_rates["USD"] == 1.0
    assert config.config_file_path == str(path)


def test_generated_file_loads_back(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    generate_default_config(path)

    assert load_config(path).input.receipts.id_prefix == "RC"


@pytest.mark.parametrize(
    "content",
    [
        "matching: [unclosed",
        "- just\n- a list\n",
        "matching:\n  date_window_days: -1\n",
    ],
)
def test_invalid_files_raise(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "recon.log"
    logger = setup_logging(logging.WARNING, log_file=log_file)
    try:
        logging.getLogger("receipt_recon.matching").debug("captured in file only")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 2
        assert "captured in file only" in log_file.read_text()
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level("nonsense") == logging.INFO
