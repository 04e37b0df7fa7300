"""
Fetch market metrics through the market_sources layer.

Demonstrates:
- Context wiring from environment configuration
- Markets and dominance with automatic fallback
- Backend-only volatility metrics
- Global CoinGecko blocking
- Endpoint statistics

Requires MARKET_BACKEND_BASE_URL (a .env file is honored).
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from market_sources import (
    DataSource,
    MarketDataContext,
    MarketsOptions,
    MarketSourcesConfig,
    fetch_current_volatility,
    fetch_vwatr,
    setup_context,
)
from market_sources.orchestrator import describe_result


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def print_banner(text: str) -> None:
    """Print a banner."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


async def show_markets(ctx: MarketDataContext) -> None:
    print_banner("Markets (top 10)")

    result = await ctx.markets.fetch(MarketsOptions(per_page=10))
    print(f"\nResult: {describe_result(result)}")
    if result.success:
        for coin in result.data.data:
            print(
                f"  {str(coin.get('symbol', '')).upper():<8} "
                f"price: {coin.get('current_price')!s:>12} | "
                f"mcap: {coin.get('market_cap')!s:>16}"
            )


async def show_dominance(ctx: MarketDataContext) -> None:
    print_banner("Current Dominance")

    result = await ctx.dominance.fetch()
    print(f"\nResult: {describe_result(result)}")
    if result.success:
        analysis = result.data
        print(f"  Total Market Cap: ${analysis.total_market_cap:,.0f}")
        print(f"  BTC:         {analysis.btc.dominance:>6}%")
        print(f"  ETH:         {analysis.eth.dominance:>6}%")
        print(f"  Stablecoins: {analysis.stablecoins.dominance:>6}%")
        print(f"  Others:      {analysis.others.dominance:>6}%")


async def show_computed_dominance(ctx: MarketDataContext) -> None:
    print_banner("Dominance computed from CoinGecko")

    result = await ctx.dominance.fetch_from_source(DataSource.SECONDARY)
    print(f"\nResult: {describe_result(result)}")
    if result.success:
        print(f"  BTC: {result.data.btc.dominance}% | ETH: {result.data.eth.dominance}%")


async def show_volatility(ctx: MarketDataContext) -> None:
    print_banner("Volatility")

    current = await fetch_current_volatility(ctx.dispatcher, per_page=50)
    if current:
        print(f"\n  1h:  {current.volatility_1h}% ({current.level_1h})")
        print(f"  24h: {current.volatility_24h}% ({current.level_24h})")
        print(f"  Top mover: {current.top_mover_coin} ({current.top_mover_percentage}%)")
    else:
        print("\n  Current volatility unavailable")

    vwatr = await fetch_vwatr(ctx.gateway)
    if vwatr:
        print(f"\n  VWATR bag={vwatr.bag} periods={vwatr.periods} coins={len(vwatr.data)}")
        if vwatr.data:
            first = vwatr.data[0]
            for r in first.results:
                print(f"    {first.symbol.upper()} {r.period}d: VWATR={r.vwatr}, ATRP={r.atrp}%")
    else:
        print("\n  VWATR unavailable")


async def show_blocking(ctx: MarketDataContext) -> None:
    print_banner("Global CoinGecko block")

    await ctx.policy_store.set_global_blocking(block_coingecko=True)
    try:
        result = await ctx.dominance.fetch_from_source(DataSource.SECONDARY)
        print(f"\nSecondary dominance while blocked: {describe_result(result)}")
    finally:
        await ctx.policy_store.set_global_blocking(block_coingecko=False)


def show_stats(ctx: MarketDataContext) -> None:
    print_banner("Endpoint Statistics")

    for key in ctx.registry:
        stats = ctx.registry.get_endpoint_stats(key)
        if stats and stats.call_count:
            print(f"  {key}: calls={stats.call_count} errors={stats.error_count}")
            if stats.last_error:
                print(f"    last error: {stats.last_error[:80]}")


async def main():
    print("\n" + "=" * 60)
    print("  MARKET SOURCES - METRICS")
    print("=" * 60)

    config = MarketSourcesConfig.from_env()
    print(f"\nConfig: {config.to_dict()}")

    try:
        async with await setup_context(config) as ctx:
            await show_markets(ctx)
            await show_dominance(ctx)
            await show_computed_dominance(ctx)
            await show_volatility(ctx)
            await show_blocking(ctx)
            show_stats(ctx)

        print_banner("DONE")

    except Exception as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    asyncio.run(main())
