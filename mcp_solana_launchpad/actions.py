"""
Read-only HTTP API for launch dashboards.

Serves the current price, graduation progress, reward pool and trending rankings as
JSON so web front ends can poll them without speaking MCP. Every response carries CORS
headers validated against CORS_ALLOWED_ORIGINS.
"""
from typing import Any, Dict, Tuple

from flask import Flask, jsonify, request

from mcp_solana_launchpad import config
from mcp_solana_launchpad import errors
from mcp_solana_launchpad import launch_manager
from mcp_solana_launchpad import pricing
from mcp_solana_launchpad import rewards
from mcp_solana_launchpad import trending
from mcp_solana_launchpad.schemas import TrendingCategory, TrendingFilters, TrendingSortKey
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

app = Flask(__name__)

MAX_RANKINGS = 100


def get_cors_headers(origin: str) -> Dict[str, str]:
    """Get CORS headers with origin validation."""
    allowed_origin = "*"
    if "*" not in config.CORS_ALLOWED_ORIGINS:
        if origin in config.CORS_ALLOWED_ORIGINS:
            allowed_origin = origin
        else:
            allowed_origin = config.CORS_ALLOWED_ORIGINS[0] if config.CORS_ALLOWED_ORIGINS else "null"

    return {
        'Access-Control-Allow-Origin': allowed_origin,
        'Access-Control-Allow-Methods': 'GET, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type, Authorization',
        'Access-Control-Max-Age': '3600',
        'Access-Control-Allow-Credentials': 'false'
    }


def _cors() -> Dict[str, str]:
    return get_cors_headers(request.headers.get('Origin', '*'))


# --- Flask Routes ---

@app.route('/launches/<launch_id>/<resource>', methods=['OPTIONS'])
@app.route('/trending', methods=['OPTIONS'])
def handle_options(launch_id: str = "", resource: str = "") -> Tuple[str, int, Dict[str, str]]:
    """Handles CORS preflight requests."""
    return '', 204, _cors()


@app.route('/launches/<launch_id>/price', methods=['GET'], provide_automatic_options=False)
def get_price(launch_id: str) -> Tuple[Any, int, Dict[str, str]]:
    cors_headers = _cors()
    try:
        launch = launch_manager.require_launch(launch_id)
        sale = launch_manager.get_sale_state(launch_id)
        step = pricing.price_step_info(sale.tokens_sold, launch.curve)
        return jsonify({
            "launch_id": launch_id,
            "symbol": launch.token.symbol,
            "price": str(pricing.price_for_state(sale, launch.curve)),
            "tokens_sold": str(sale.tokens_sold),
            "total_supply": str(launch.curve.total_supply),
            "next_step": step.model_dump(mode='json'),
        }), 200, cors_headers
    except errors.LaunchNotFoundError as e:
        return jsonify({"message": str(e)}), 404, cors_headers
    except Exception as e:
        logger.exception(f"Error serving price for {launch_id}: {e}")
        return jsonify({"message": "Internal server error"}), 500, cors_headers


@app.route('/launches/<launch_id>/graduation', methods=['GET'], provide_automatic_options=False)
def get_graduation(launch_id: str) -> Tuple[Any, int, Dict[str, str]]:
    cors_headers = _cors()
    try:
        state = launch_manager.get_monitor(launch_id).state()
        data = state.model_dump(mode='json')
        data["launch_id"] = launch_id
        return jsonify(data), 200, cors_headers
    except errors.LaunchNotFoundError as e:
        return jsonify({"message": str(e)}), 404, cors_headers
    except Exception as e:
        logger.exception(f"Error serving graduation status for {launch_id}: {e}")
        return jsonify({"message": "Internal server error"}), 500, cors_headers


@app.route('/launches/<launch_id>/rewards', methods=['GET'], provide_automatic_options=False)
def get_rewards(launch_id: str) -> Tuple[Any, int, Dict[str, str]]:
    """Reward pool snapshot plus the top market makers of a launch."""
    cors_headers = _cors()
    try:
        records = launch_manager.get_volume_records(launch_id)
        pool = launch_manager.reward_pools.get_pool(launch_id)
        return jsonify({
            "pool": pool.model_dump(mode='json'),
            "top_market_makers": [r.model_dump(mode='json') for r in rewards.top_market_makers(records, 10)],
        }), 200, cors_headers
    except (errors.LaunchNotFoundError, errors.PoolNotFoundError) as e:
        return jsonify({"message": str(e)}), 404, cors_headers
    except Exception as e:
        logger.exception(f"Error serving rewards for {launch_id}: {e}")
        return jsonify({"message": "Internal server error"}), 500, cors_headers


@app.route('/trending', methods=['GET'], provide_automatic_options=False)
def get_trending() -> Tuple[Any, int, Dict[str, str]]:
    cors_headers = _cors()
    try:
        category = request.args.get("category")
        sort_by = request.args.get("sort_by", "score")
        limit = int(request.args.get("limit", 10))
        if limit <= 0 or limit > MAX_RANKINGS:
            return jsonify({"message": f"limit must be between 1 and {MAX_RANKINGS}"}), 400, cors_headers
        filters = TrendingFilters(
            category=TrendingCategory(category) if category else None,
            sort_by=TrendingSortKey(sort_by),
        )
    except ValueError as e:
        logger.warning(f"Invalid trending query: {e}")
        return jsonify({"message": f"Invalid query parameters: {e}"}), 400, cors_headers

    try:
        board = launch_manager.trending_board
        rankings = board.publish(launch_manager.all_trending_metrics(), filters, limit)
        return jsonify({
            "rankings": [r.model_dump(mode='json') for r in rankings],
            "categories": trending.trending_categories(),
        }), 200, cors_headers
    except Exception as e:
        logger.exception(f"Error serving trending rankings: {e}")
        return jsonify({"message": "Internal server error"}), 500, cors_headers


if __name__ == '__main__':
    logger.info(f"Starting launchpad HTTP API on port {config.ACTIONS_PORT}")
    app.run(debug=False, host='0.0.0.0', port=config.ACTIONS_PORT)
