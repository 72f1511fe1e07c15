import json
import os

import pytest
from dotenv import load_dotenv

import mcp_solana_launchpad.launch_manager as launch_manager
from mcp_solana_launchpad import rate_limiter

VAULT_ADDRESS = "11111111111111111111111111111111"
GOAL_LAMPORTS = 5_000_000_000

MAIN_LAUNCH = {
    "token": {"name": "Main Launch Token", "symbol": "MLT"},
    "launch": {
        "launch_id": "main_launch",
        "start_time": 1704067200,
        "end_time": 4102444800,
        "category": "token",
        "graduation_goal_lamports": GOAL_LAMPORTS,
        "sell_fee_percentage": 0.01,
        "vault_address": VAULT_ADDRESS,
    },
    "curve": {
        "total_supply": "1000000",
        "decimals": 6,
        "curve_kind": "linear",
        "base_price": "0.000001",
        "terminal_price": "0.00001",
    },
    "resources": [],
}

RAFFLE_LAUNCH = {
    "token": {"name": "Raffle Ticket", "symbol": "RFL"},
    "launch": {
        "launch_id": "raffle_launch",
        "start_time": 1704067200,
        "end_time": 4102444800,
        "category": "raffle",
        "sell_fee_percentage": 0.03,
    },
    "curve": {
        "total_supply": "500000",
        "decimals": 6,
        "curve_kind": "fixed",
        "base_price": "0.000005",
    },
    "resources": [],
}


@pytest.fixture(scope="session", autouse=True)
def load_test_env():
    load_dotenv()


@pytest.fixture(autouse=True)
def launches_loaded():
    """Writes the test launch configs and reloads all engine state before each test."""
    config_dir_path = launch_manager.MODULE_DIR / launch_manager.LAUNCH_CONFIG_DIR
    os.makedirs(config_dir_path, exist_ok=True)
    for launch in (MAIN_LAUNCH, RAFFLE_LAUNCH):
        with open(config_dir_path / f"{launch['launch']['launch_id']}.json", "w") as f:
            json.dump(launch, f, indent=2)

    launch_manager.clear_launch_cache()
    launch_manager.launch_data = launch_manager.load_launches_from_config_files()
    launch_manager.reset_state()
    rate_limiter.limiter.reset()

    assert "main_launch" in launch_manager.launch_data, "main_launch config not loaded"
    assert "raffle_launch" in launch_manager.launch_data, "raffle_launch config not loaded"
    yield
