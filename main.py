# ============================
# CHART SIGNAL ANALYZER MAIN ENTRY POINT
# ============================

# Load environment variables FIRST (before any other imports)
from dotenv import load_dotenv
load_dotenv()

import sys
import asyncio
import argparse
from typing import List

from config import AUTO_ANALYSIS_INTERVAL
from utils.logger import get_logger

from src.api_pool import KeyPool, PoolError
from src.chart_analyzer import ChartAnalyzer
from src.models.signal_types import AnalysisResult
from src.processors.chart_image import ImageValidationError, load_chart_image
from src.signal_history import SignalHistory

logger = get_logger("MAIN")


def print_result(name: str, result: AnalysisResult):
    print(f"\n[{name}] {result.signal.value}  confidence={result.confidence}%")
    print(result.analysis)


def print_pool_status(analyzer: ChartAnalyzer):
    views = analyzer.pool_status()
    available = sum(1 for v in views if v.available)
    print(f"\nAPI key pool: {available}/{len(views)} keys available")
    for v in views:
        state = "available" if v.available else f"cooldown until {v.cooldown_until}"
        print(f"  {v.masked_key:<20} {state:<28} requests={v.request_count}")


def print_history(history: SignalHistory, n: int = 10):
    stats = history.stats()
    by_signal = stats["by_signal"]
    print(
        f"\nSignals: {stats['total']} | BUY {by_signal['BUY']} | SELL {by_signal['SELL']} | "
        f"NEUTRAL {by_signal['NEUTRAL']} | avg confidence {stats['avg_confidence']}%"
    )
    for result in history.recent(n):
        print(f"  {result.timestamp:%Y-%m-%d %H:%M:%S}  {result.signal.value:<7} {result.confidence}%")


async def run(args) -> int:
    history = SignalHistory()
    pool = KeyPool.from_config()
    exit_code = 0

    try:
        async with ChartAnalyzer(pool, history=history) as analyzer:
            if args.watch and args.images:
                path = args.images[0]
                await analyzer.run_auto(
                    lambda: load_chart_image(path),
                    interval=args.interval,
                    max_runs=args.runs,
                    on_result=lambda r: print_result(path, r),
                )
            else:
                exit_code = await analyze_files(analyzer, args.images)

            if args.status:
                print_pool_status(analyzer)

        if args.history:
            print_history(history)
    finally:
        history.close()

    return exit_code


async def analyze_files(analyzer: ChartAnalyzer, paths: List[str]) -> int:
    exit_code = 0
    for path in paths:
        try:
            image = load_chart_image(path)
        except ImageValidationError as e:
            logger.error(f"Invalid image: {e}")
            exit_code = 1
            continue

        try:
            result = await analyzer.analyze(image)
        except PoolError as e:
            logger.error(f"Analysis error on {path}: {e}")
            return 1

        print_result(path, result)
    return exit_code


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Chart signal analyzer (Gemini vision + API key pool)")
    parser.add_argument("images", nargs="*", help="Chart image files (PNG, JPEG, WebP)")
    parser.add_argument("--watch", action="store_true", help="Re-analyze the first image periodically")
    parser.add_argument("--interval", type=float, default=AUTO_ANALYSIS_INTERVAL,
                        help=f"Seconds between --watch analyses (default {AUTO_ANALYSIS_INTERVAL})")
    parser.add_argument("--runs", type=int, default=None, help="Stop --watch after N ticks")
    parser.add_argument("--status", action="store_true", help="Print API key pool status")
    parser.add_argument("--history", action="store_true", help="Print recent signals and stats")
    args = parser.parse_args(argv)

    if not args.images and not (args.status or args.history):
        parser.print_help()
        return 2

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
