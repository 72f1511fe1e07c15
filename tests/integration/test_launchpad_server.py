import json
import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from solders.signature import Signature

import mcp_solana_launchpad.launch_manager as launch_manager
from mcp_solana_launchpad import rate_limiter
from mcp_solana_launchpad import server
from mcp_solana_launchpad.errors import ConcurrentUpdateError
from mcp_solana_launchpad.rate_limiter import RateLimiter

from conftest import GOAL_LAMPORTS, MAIN_LAUNCH, VAULT_ADDRESS

TOKENS = 10**6  # main_launch and raffle_launch use 6 decimals
SIGNATURE = str(Signature.default())


async def buy(launch_id, user_id, tokens, client_id="test-client", transaction_ref=None):
    return await server.record_trade(
        context=MagicMock(), launch_id=launch_id, user_id=user_id, amount=tokens * TOKENS,
        sell=False, transaction_ref=transaction_ref, client_id=client_id,
    )


@pytest.mark.asyncio
async def test_get_launch_info():
    result_json = await server.get_launch_info(context=MagicMock(), launch_id="main_launch")
    expected = launch_manager.launch_data["main_launch"].model_dump(mode='json')
    assert json.loads(result_json) == expected


@pytest.mark.asyncio
async def test_get_launch_info_unknown():
    result = await server.get_launch_info(context=MagicMock(), launch_id="missing")
    assert result == "Launch with id missing not found."


@pytest.mark.asyncio
async def test_create_launch():
    config = json.loads(json.dumps(MAIN_LAUNCH))
    config["launch"]["launch_id"] = "created_launch"
    try:
        result = await server.create_launch(context=MagicMock(), config_json=json.dumps(config))
        assert result == "Launch 'created_launch' created/updated successfully."
        assert launch_manager.get_launch("created_launch") is not None
        assert launch_manager.get_sale_state("created_launch").tokens_sold == 0
    finally:
        path = launch_manager.MODULE_DIR / launch_manager.LAUNCH_CONFIG_DIR / "created_launch.json"
        if path.exists():
            os.remove(path)
        launch_manager.launch_data.pop("created_launch", None)


@pytest.mark.asyncio
async def test_create_launch_rejects_bad_config():
    bad_json = await server.create_launch(context=MagicMock(), config_json="{not json")
    assert "Invalid JSON format" in bad_json

    config = json.loads(json.dumps(MAIN_LAUNCH))
    config["launch"]["launch_id"] = "backwards"
    config["launch"]["end_time"] = config["launch"]["start_time"] - 1
    bad_window = await server.create_launch(context=MagicMock(), config_json=json.dumps(config))
    assert "Invalid launch configuration" in bad_window
    assert launch_manager.get_launch("backwards") is None


@pytest.mark.asyncio
async def test_get_token_price_starts_at_base_price():
    result = json.loads(await server.get_token_price(context=MagicMock(), launch_id="main_launch"))
    assert Decimal(result["price"]) == Decimal("0.000001")
    assert Decimal(result["next_step"]["tokens_until_next_step"]) == Decimal(10_000)


@pytest.mark.asyncio
async def test_get_price_curve():
    result = json.loads(await server.get_price_curve(context=MagicMock(), launch_id="main_launch", points=5))
    prices = [Decimal(p["price"]) for p in result["points"]]
    assert len(prices) == 5
    assert prices[0] == Decimal("0.000001")
    assert prices[-1] == Decimal("0.00001")

    too_few = await server.get_price_curve(context=MagicMock(), launch_id="main_launch", points=1)
    assert too_few.startswith("Error:")


@pytest.mark.asyncio
async def test_quote_trade():
    buy_quote = await server.quote_trade(context=MagicMock(), launch_id="raffle_launch", amount=1000 * TOKENS,
                                         sell=False)
    assert buy_quote == "Buying 1000 RFL costs 0.005000000 SOL."

    invalid = await server.quote_trade(context=MagicMock(), launch_id="raffle_launch", amount=0, sell=False)
    assert invalid == "Error: Amount must be a positive integer"


@pytest.mark.asyncio
async def test_record_trade_moves_curve_and_logs_event():
    result = json.loads(await buy("main_launch", "alice", 100_000, transaction_ref=SIGNATURE))

    # 0.000001 * 100000 + (9e-12 / 2) * 100000^2
    assert Decimal(result["trade"]["sol_amount"]) == Decimal("0.145")
    assert Decimal(result["tokens_sold"]) == Decimal(100_000)
    assert Decimal(result["price_after"]) > Decimal("0.000001")

    sale = launch_manager.get_sale_state("main_launch")
    assert sale.sol_collected_lamports == 145_000_000

    events = json.loads(await server.get_launch_events(
        context=MagicMock(), launch_id="main_launch", kind="trade_recorded", limit=10,
    ))
    assert len(events) == 1
    assert events[0]["transaction_ref"] == SIGNATURE


@pytest.mark.asyncio
async def test_sell_returns_tokens_to_curve():
    await buy("raffle_launch", "alice", 1000)
    result = json.loads(await server.record_trade(
        context=MagicMock(), launch_id="raffle_launch", user_id="alice", amount=500 * TOKENS,
        sell=True, transaction_ref=None, client_id="test-client",
    ))
    # 500 * 0.000005 minus the 3% sell fee
    assert Decimal(result["trade"]["sol_amount"]) == Decimal("0.002425")
    assert Decimal(result["tokens_sold"]) == Decimal(500)

    oversell = await server.record_trade(
        context=MagicMock(), launch_id="raffle_launch", user_id="alice", amount=10_000 * TOKENS,
        sell=True, transaction_ref=None, client_id="test-client",
    )
    assert oversell.startswith("Error: Cannot sell")


@pytest.mark.asyncio
async def test_record_trade_rejects_bad_reference():
    result = await buy("main_launch", "alice", 10, transaction_ref="definitely-not-a-signature")
    assert "Invalid transaction signature format" in result
    assert launch_manager.get_sale_state("main_launch").tokens_sold == 0


@pytest.mark.asyncio
async def test_record_trade_unknown_launch():
    result = await buy("missing", "alice", 10)
    assert result == "Launch with id missing not found."


@pytest.mark.asyncio
async def test_record_trade_rate_limited():
    with patch.object(rate_limiter, "limiter", RateLimiter(limit=2)):
        await buy("main_launch", "alice", 10, client_id="10.0.0.1")
        await buy("main_launch", "alice", 10, client_id="10.0.0.1")
        result = await buy("main_launch", "alice", 10, client_id="10.0.0.1")
    assert result == "Rate limit exceeded for client: 10.0.0.1"
    assert launch_manager.get_sale_state("main_launch").tokens_sold == 20


@pytest.mark.asyncio
async def test_graduation_through_trades():
    # Buying the whole supply collects 5.5 SOL against a 5 SOL goal
    result = json.loads(await buy("main_launch", "whale", 1_000_000))
    assert result["graduation"]["is_graduated"] is True
    assert result["graduation"]["just_graduated"] is True
    assert result["graduation"]["newly_crossed"] == [25, 50, 75, 100]

    status = json.loads(await server.get_graduation_status(context=MagicMock(), launch_id="main_launch"))
    assert status["is_graduated"] is True
    assert Decimal(status["progress_percent"]) == 100

    graduated = json.loads(await server.get_launch_events(
        context=MagicMock(), launch_id="main_launch", kind="graduated", limit=10,
    ))
    assert len(graduated) == 1


@pytest.mark.asyncio
async def test_graduation_stays_latched_after_sells():
    await buy("main_launch", "whale", 1_000_000)
    await server.record_trade(
        context=MagicMock(), launch_id="main_launch", user_id="whale", amount=900_000 * TOKENS,
        sell=True, transaction_ref=None, client_id="test-client",
    )
    status = json.loads(await server.get_graduation_status(context=MagicMock(), launch_id="main_launch"))
    assert status["is_graduated"] is True
    assert Decimal(status["progress_percent"]) < 100


@pytest.mark.asyncio
async def test_sync_graduation_from_chain():
    with patch("mcp_solana_launchpad.solana_utils.fetch_sol_collected",
               new=AsyncMock(return_value=GOAL_LAMPORTS)) as fetch:
        result = json.loads(await server.sync_graduation_from_chain(
            context=MagicMock(), launch_id="main_launch", transaction_ref=None,
        ))
    assert fetch.await_args.args[1] == VAULT_ADDRESS
    assert result["is_graduated"] is True

    no_vault = await server.sync_graduation_from_chain(
        context=MagicMock(), launch_id="raffle_launch", transaction_ref=None,
    )
    assert no_vault == "Launch 'raffle_launch' has no vault address configured."


@pytest.mark.asyncio
async def test_reward_pool_lifecycle():
    created = json.loads(await server.create_reward_pool(
        context=MagicMock(), launch_id="main_launch", reward_percent=5, total_reward_pool=100_000,
        other_allocations_json=None,
    ))
    assert Decimal(created["remaining_rewards"]) == Decimal(100_000)

    invalid = await server.create_reward_pool(
        context=MagicMock(), launch_id="raffle_launch", reward_percent=25, total_reward_pool=100,
        other_allocations_json=None,
    )
    assert invalid == "Error: Reward percentage must be between 0% and 20%"

    trade = json.loads(await buy("main_launch", "alice", 100_000))
    # 100000 * (0.145 / 100 * 5) * 1.0 / 100
    assert Decimal(trade["reward"]) == Decimal("7.25")

    pool = json.loads(await server.get_reward_pool(context=MagicMock(), launch_id="main_launch"))
    assert Decimal(pool["distributed_rewards"]) == Decimal("7.25")
    assert Decimal(pool["remaining_rewards"]) == Decimal("99992.75")

    paused = json.loads(await server.update_reward_pool(
        context=MagicMock(), launch_id="main_launch", reward_percent=None, is_active=False, top_up_amount=500,
    ))
    assert paused["is_active"] is False
    assert Decimal(paused["total_reward_pool"]) == Decimal(100_500)

    no_reward = json.loads(await buy("main_launch", "alice", 10))
    assert Decimal(no_reward["reward"]) == 0


@pytest.mark.asyncio
async def test_reward_pool_sized_from_token_supply():
    created = json.loads(await server.create_reward_pool(
        context=MagicMock(), launch_id="main_launch", reward_percent=5, total_reward_pool=None,
        other_allocations_json='{"team": 15, "liquidity": 60}',
    ))
    # 5% of the 1,000,000 token supply
    assert Decimal(created["total_reward_pool"]) == Decimal(50_000)

    overallocated = await server.create_reward_pool(
        context=MagicMock(), launch_id="raffle_launch", reward_percent=10, total_reward_pool=None,
        other_allocations_json='{"team": 40, "liquidity": 55}',
    )
    assert overallocated == "Error: Total allocations cannot exceed 100%"
    assert not launch_manager.reward_pools.has_pool("raffle_launch")

    bad_json = await server.create_reward_pool(
        context=MagicMock(), launch_id="raffle_launch", reward_percent=10, total_reward_pool=None,
        other_allocations_json="[1, 2]",
    )
    assert bad_json == "Error: Other allocations must be a JSON object of percents"


@pytest.mark.asyncio
async def test_trade_recorded_when_reward_commit_loses_race():
    await server.create_reward_pool(
        context=MagicMock(), launch_id="main_launch", reward_percent=5, total_reward_pool=100_000,
        other_allocations_json=None,
    )
    contended = ConcurrentUpdateError("Pool 'main_launch' is too contended, retry later")
    with patch.object(launch_manager.reward_pools, "allocate_trade_reward", side_effect=contended):
        result = json.loads(await buy("main_launch", "alice", 100_000))

    assert Decimal(result["reward"]) == 0
    assert Decimal(result["tokens_sold"]) == Decimal(100_000)
    assert launch_manager.get_sale_state("main_launch").tokens_sold == Decimal(100_000)
    assert launch_manager.reward_pools.get_pool("main_launch").distributed_rewards == 0


@pytest.mark.asyncio
async def test_distribute_rewards_and_user_rewards():
    await server.create_reward_pool(
        context=MagicMock(), launch_id="raffle_launch", reward_percent=5, total_reward_pool=10_000,
        other_allocations_json=None,
    )
    await server.update_reward_pool(
        context=MagicMock(), launch_id="raffle_launch", reward_percent=None, is_active=None, top_up_amount=None,
    )
    await buy("raffle_launch", "alice", 300_000)
    await buy("raffle_launch", "bob", 100_000)

    result = json.loads(await server.distribute_rewards(
        context=MagicMock(), launch_id="raffle_launch", transaction_ref=SIGNATURE, client_id="test-client",
    ))
    assert [r["user_id"] for r in result["distributed"]] == ["alice", "bob"]
    assert all(Decimal(r["reward_amount"]) <= 1000 for r in result["distributed"])

    pool = launch_manager.reward_pools.get_pool("raffle_launch")
    assert pool.remaining_rewards == pool.total_reward_pool - pool.distributed_rewards
    assert Decimal(result["remaining_rewards"]) == pool.remaining_rewards

    alice = json.loads(await server.get_user_rewards(context=MagicMock(), launch_id="raffle_launch", user_id="alice"))
    assert Decimal(alice["total_rewards"]) == launch_manager.reward_pools.ledger.user_total("raffle_launch", "alice")
    assert Decimal(alice["volume"]["total_volume"]) == Decimal("1.5")

    top = json.loads(await server.get_top_market_makers(context=MagicMock(), launch_id="raffle_launch", limit=1))
    assert [r["user_id"] for r in top] == ["alice"]


@pytest.mark.asyncio
async def test_distribute_rewards_without_pool():
    result = await server.distribute_rewards(
        context=MagicMock(), launch_id="main_launch", transaction_ref=None, client_id="test-client",
    )
    assert result == "No reward pool for 'main_launch'"


@pytest.mark.asyncio
async def test_trending_score_and_rankings():
    for user in ("a", "b", "c"):
        await buy("raffle_launch", user, 100_000)
    await buy("raffle_launch", "a", 10_000)
    await buy("raffle_launch", "b", 10_000)

    engagement = json.loads(await server.update_engagement(
        context=MagicMock(), launch_id="raffle_launch", social_mentions=80, social_engagement=60,
    ))
    assert engagement["social_engagement"] == 60

    score = json.loads(await server.get_trending_score(context=MagicMock(), launch_id="raffle_launch"))
    assert score["trades_24h"] == 5
    assert score["participants_24h"] == 3
    assert 0 < score["score"] <= 100
    assert score["is_trending"] is True

    rankings = json.loads(await server.get_trending_rankings(
        context=MagicMock(), category=None, sort_by="score", limit=10, min_volume=None, min_participants=None,
    ))
    assert [r["launch_id"] for r in rankings["rankings"]][0] == "raffle_launch"
    assert rankings["rankings"][0]["rank"] == 1
    assert {c["id"] for c in rankings["categories"]} >= {"raffles", "tokens"}

    raffles_only = json.loads(await server.get_trending_rankings(
        context=MagicMock(), category="raffle", sort_by="volume", limit=10, min_volume=None, min_participants=None,
    ))
    assert [r["launch_id"] for r in raffles_only["rankings"]] == ["raffle_launch"]


@pytest.mark.asyncio
async def test_trending_rankings_rejects_bad_sort_key():
    result = await server.get_trending_rankings(
        context=MagicMock(), category=None, sort_by="popularity", limit=10, min_volume=None, min_participants=None,
    )
    assert result.startswith("Error:")
