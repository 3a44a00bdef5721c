"""
DEX Sniper - Main Entry Point

Watches a discovery source for newly tradable tokens, gates each through the
risk checks, buys the accepted ones and sells them on stop-loss/take-profit.

Usage:
    python -m dex_sniper.main [--simulate] [--source rpc|pumpfun|listing]
    dex-sniper --log-level DEBUG

Configuration:
    The bot reads configuration from:
    1. Environment variables (optionally from a .env file)
    2. Command line arguments

Environment Variables:
    DATABASE_URL              PostgreSQL connection string (required)
    PRIV_KEY_WALLET           base58 wallet secret key (required for live trading)
    WALLET_PUBLIC_KEY         Wallet address used in simulation without a secret key
    HELIUS_WSS_URI            RPC websocket endpoint (rpc / pumpfun sources)
    HELIUS_HTTPS_URI          RPC HTTP endpoint (live submission)
    HELIUS_HTTPS_URI_TX       Enhanced-transaction API endpoint
    JUP_HTTPS_QUOTE_URI       Aggregator quote endpoint
    JUP_HTTPS_SWAP_URI        Aggregator swap endpoint
    BRDY_HTTPS_URI            Price oracle base URL
    BRDY_API_KEY              Price oracle API key
    RUGCHECK_URI              Risk report base URL (default: https://api.rugcheck.xyz)
    DISCOVERY_SOURCE          rpc, pumpfun or listing (default: rpc)
    SIMULATION_MODE           "true" for paper trading (default: true)
    MAX_CONCURRENT            Concurrent snipes (default: 5)
    SWAP_AMOUNT_LAMPORTS      SOL spent per buy in lamports (default: 200000000)
    SWAP_SLIPPAGE_BPS         Buy slippage (default: 1000)
    SELL_SLIPPAGE_BPS         Sell slippage (default: 1000)
    STOP_LOSS_PERCENT         Stop-loss percent, -1 disables (default: 20)
    TAKE_PROFIT_PERCENT       Take-profit percent, -1 disables (default: 20)
    AUTO_SELL                 "false" to never sell automatically (default: true)
    MAX_TOKEN_HOLDINGS        Listing source holdings cap (default: 5)
    LISTING_MIN_AGE_SECONDS   Only take listings at least this old (default: 0)
    IGNORE_PUMP_FUN           "true" to skip mints ending in "pump" (default: false)
    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)
    TRADE_LOG_PATH            Append buys and sells to this file

Live Mode Requirements:
    When SIMULATION_MODE=false, the bot requires PRIV_KEY_WALLET and
    HELIUS_HTTPS_URI. The bot will fail fast if either is missing.
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Generator, Optional

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_PID_FILE = "/tmp/dex-sniper.pid"
SOURCES = ("rpc", "pumpfun", "listing")


class SingletonBotError(Exception):
    """Raised when another bot instance is already running."""
    pass


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Context manager that ensures only one bot instance runs at a time.

    Args:
        pid_file: Path to the PID file (default: /tmp/dex-sniper.pid)

    Raises:
        SingletonBotError: If another instance is already running
    """
    pid_path = Path(pid_file)

    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    # "a+" so the file isn't truncated before we hold the lock
    fp = open(pid_path, "a+")

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fp.close()
        if existing_pid:
            raise SingletonBotError(
                f"Another bot instance is already running (PID: {existing_pid}). "
                f"Kill it with: kill {existing_pid}"
            )
        raise SingletonBotError(
            "Another bot instance is already running. "
            "Check for existing processes: ps aux | grep dex-sniper"
        )

    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def cleanup():
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
            pid_path.unlink(missing_ok=True)
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)

    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        cleanup()
        atexit.unregister(cleanup)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


def _env_int(name: str, default: str) -> int:
    value = os.environ.get(name, default)
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _env_decimal(name: str, default: str) -> Decimal:
    value = os.environ.get(name, default)
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


@dataclass
class BotConfig:
    """Complete bot configuration."""

    # Database
    database_url: str = ""

    # Wallet
    private_key: Optional[str] = None
    wallet_public_key: Optional[str] = None

    # Endpoints
    rpc_wss_url: str = ""
    rpc_https_url: str = ""
    tx_details_url: str = ""
    quote_url: str = "https://quote-api.jup.ag/v6/quote"
    swap_url: str = "https://quote-api.jup.ag/v6/swap"
    oracle_url: str = "https://public-api.birdeye.so"
    oracle_api_key: str = ""
    rugcheck_url: str = "https://api.rugcheck.xyz"

    # Discovery
    source: str = "rpc"
    ignore_pump_fun: bool = False
    max_token_holdings: int = 5
    listing_min_age_seconds: int = 0

    # Trading
    simulation: bool = True
    max_concurrent: int = 5
    swap_amount_lamports: int = 200_000_000
    swap_slippage_bps: int = 1000
    sell_slippage_bps: int = 1000

    # Exits
    stop_loss_percent: Decimal = Decimal("20")
    take_profit_percent: Decimal = Decimal("20")
    auto_sell: bool = True

    # Logging
    trade_log_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load configuration from environment variables."""
        return cls(
            database_url=os.environ.get("DATABASE_URL", ""),
            private_key=os.environ.get("PRIV_KEY_WALLET") or None,
            wallet_public_key=os.environ.get("WALLET_PUBLIC_KEY") or None,
            rpc_wss_url=os.environ.get("HELIUS_WSS_URI", ""),
            rpc_https_url=os.environ.get("HELIUS_HTTPS_URI", ""),
            tx_details_url=os.environ.get("HELIUS_HTTPS_URI_TX", ""),
            quote_url=os.environ.get("JUP_HTTPS_QUOTE_URI", "https://quote-api.jup.ag/v6/quote"),
            swap_url=os.environ.get("JUP_HTTPS_SWAP_URI", "https://quote-api.jup.ag/v6/swap"),
            oracle_url=os.environ.get("BRDY_HTTPS_URI", "https://public-api.birdeye.so"),
            oracle_api_key=os.environ.get("BRDY_API_KEY", ""),
            rugcheck_url=os.environ.get("RUGCHECK_URI", "https://api.rugcheck.xyz"),
            source=os.environ.get("DISCOVERY_SOURCE", "rpc").lower(),
            ignore_pump_fun=_env_bool("IGNORE_PUMP_FUN", "false"),
            max_token_holdings=_env_int("MAX_TOKEN_HOLDINGS", "5"),
            listing_min_age_seconds=_env_int("LISTING_MIN_AGE_SECONDS", "0"),
            simulation=_env_bool("SIMULATION_MODE", "true"),
            max_concurrent=_env_int("MAX_CONCURRENT", "5"),
            swap_amount_lamports=_env_int("SWAP_AMOUNT_LAMPORTS", "200000000"),
            swap_slippage_bps=_env_int("SWAP_SLIPPAGE_BPS", "1000"),
            sell_slippage_bps=_env_int("SELL_SLIPPAGE_BPS", "1000"),
            stop_loss_percent=_env_decimal("STOP_LOSS_PERCENT", "20"),
            take_profit_percent=_env_decimal("TAKE_PROFIT_PERCENT", "20"),
            auto_sell=_env_bool("AUTO_SELL", "true"),
            trade_log_path=os.environ.get("TRADE_LOG_PATH") or None,
        )

    def validate(self) -> list[str]:
        """Return configuration problems that prevent startup."""
        errors = []
        if not self.database_url:
            errors.append("DATABASE_URL environment variable is required")
        if self.source not in SOURCES:
            errors.append(f"DISCOVERY_SOURCE must be one of {', '.join(SOURCES)}")
        if self.source in ("rpc", "pumpfun"):
            if not self.rpc_wss_url:
                errors.append(f"HELIUS_WSS_URI is required for the {self.source} source")
            if not self.tx_details_url:
                errors.append(f"HELIUS_HTTPS_URI_TX is required for the {self.source} source")
        if self.max_concurrent < 1:
            errors.append("MAX_CONCURRENT must be at least 1")
        if self.simulation:
            if not self.private_key and not self.wallet_public_key:
                errors.append("Simulation requires PRIV_KEY_WALLET or WALLET_PUBLIC_KEY")
        else:
            if not self.private_key:
                errors.append("Live trading requires PRIV_KEY_WALLET")
            if not self.rpc_https_url:
                errors.append("Live trading requires HELIUS_HTTPS_URI")
            if not self.tx_details_url:
                errors.append("Live trading requires HELIUS_HTTPS_URI_TX to record buys")
        return errors


class SniperBot:
    """
    Main sniper orchestrator.

    Manages the lifecycle of all components:
    - Database connection and schema
    - Discovery (websocket listener or listing poller)
    - Dispatcher -> pipeline (resolve, risk gate, buy)
    - Exit manager (stop-loss / take-profit)
    """

    def __init__(self, config: BotConfig):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized on start)
        self._db = None
        self._session = None
        self._clients: list = []
        self._submitter = None
        self._oracle = None
        self._tx_details = None
        self._token_repo = None
        self._ledger = None
        self._executor = None
        self._queue: Optional[asyncio.Queue] = None
        self._discovery = None
        self._pipeline = None
        self._dispatcher = None
        self._exit_manager = None
        self._trade_log_handler: Optional[logging.Handler] = None
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the sniper and run until shutdown."""
        logger.info("=" * 60)
        logger.info("DEX SNIPER")
        logger.info("=" * 60)
        logger.info(f"Source: {self.config.source.upper()}")
        logger.info(f"Trading: {'SIMULATION' if self.config.simulation else 'LIVE'}")
        logger.info("=" * 60)

        self._running = True
        self._shutdown_event.clear()

        self._setup_signal_handlers()

        try:
            self._init_trade_log()
            await self._init_database()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            self._init_execution()
            self._init_pipeline()
            self._init_discovery()

            self._tasks = [
                asyncio.create_task(self._dispatcher.run(self._queue), name="dispatcher"),
                asyncio.create_task(self._discovery.run(), name="discovery"),
                asyncio.create_task(self._exit_manager.run(), name="exit_manager"),
            ]

            logger.info("=" * 60)
            logger.info("Sniper started successfully")
            logger.info("Press Ctrl+C to stop")
            logger.info("=" * 60)

            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the sniper gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        # Stop discovery first so nothing new is admitted
        for component in (self._discovery, self._exit_manager, self._dispatcher):
            if component is None:
                continue
            try:
                await component.stop()
            except Exception as e:
                logger.warning(f"Error stopping {type(component).__name__}: {e}")

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        for client in self._clients:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing {type(client).__name__}: {e}")

        if self._submitter:
            try:
                await self._submitter.close()
            except Exception as e:
                logger.warning(f"Error closing submitter: {e}")

        if self._session and not self._session.closed:
            await self._session.close()

        if self._db:
            try:
                await self._db.close()
            except Exception as e:
                logger.warning(f"Error closing database: {e}")

        if self._exit_manager:
            logger.info(f"Realized PnL this session: {self._exit_manager.realized_pnl:.2f}$")

        if self._trade_log_handler:
            logging.getLogger("dex_sniper.execution").removeHandler(self._trade_log_handler)
            self._trade_log_handler.close()

        logger.info("Shutdown complete")

    def _init_trade_log(self) -> None:
        """Append execution-layer records (buys, sells, exits) to a file."""
        if not self.config.trade_log_path:
            return
        handler = logging.FileHandler(self.config.trade_log_path)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(logging.INFO)
        logging.getLogger("dex_sniper.execution").addHandler(handler)
        self._trade_log_handler = handler
        logger.info(f"Trade log: {self.config.trade_log_path}")

    async def _init_database(self) -> None:
        """Initialize database connection and schema."""
        from dex_sniper.storage import Database, DatabaseConfig

        if not self.config.database_url:
            raise ValueError("DATABASE_URL environment variable is required")

        self._db = Database(DatabaseConfig(url=self.config.database_url))
        await self._db.initialize()

        if not await self._db.health_check():
            raise RuntimeError("Database health check failed")

        await self._db.apply_schema()
        logger.info("Database: Connected")

    def _init_execution(self) -> None:
        """Create clients, submitter, ledger, executor and exit manager."""
        import aiohttp

        from dex_sniper.execution import (
            ChainTransactionSubmitter,
            ExitConfig,
            ExitManager,
            JupiterClient,
            JupiterConfig,
            PositionLedger,
            SimulatedTransactionSubmitter,
            SwapConfig,
            SwapExecutor,
            SwapRecorder,
        )
        from dex_sniper.ingestion import (
            PriceOracleClient,
            PriceOracleConfig,
            TransactionDetailsClient,
            TransactionDetailsConfig,
        )
        from dex_sniper.storage import PositionRepository, TokenRepository

        self._session = aiohttp.ClientSession()

        self._oracle = PriceOracleClient(
            PriceOracleConfig(base_url=self.config.oracle_url, api_key=self.config.oracle_api_key),
            session=self._session,
        )
        self._tx_details = TransactionDetailsClient(
            TransactionDetailsConfig(url=self.config.tx_details_url),
            session=self._session,
        )
        jupiter = JupiterClient(
            JupiterConfig(quote_url=self.config.quote_url, swap_url=self.config.swap_url),
            session=self._session,
        )
        self._clients.extend([self._oracle, self._tx_details, jupiter])

        if self.config.simulation:
            if self.config.private_key:
                self._submitter = SimulatedTransactionSubmitter.from_private_key(
                    self.config.private_key
                )
            else:
                self._submitter = SimulatedTransactionSubmitter(self.config.wallet_public_key)
        else:
            self._submitter = ChainTransactionSubmitter.from_private_key(
                self.config.rpc_https_url, self.config.private_key
            )
        logger.info(f"Wallet: {self._submitter.public_key}")

        self._token_repo = TokenRepository(self._db)
        self._ledger = PositionLedger(PositionRepository(self._db))

        recorder = SwapRecorder(
            self._oracle,
            self._ledger,
            tx_details=self._tx_details,
            token_repo=self._token_repo,
        )
        self._executor = SwapExecutor(
            jupiter,
            self._submitter,
            self._ledger,
            recorder,
            SwapConfig(
                buy_amount_lamports=self.config.swap_amount_lamports,
                buy_slippage_bps=self.config.swap_slippage_bps,
                sell_slippage_bps=self.config.sell_slippage_bps,
            ),
        )
        self._exit_manager = ExitManager(
            self._ledger,
            self._oracle,
            self._executor,
            ExitConfig(
                stop_loss_percent=self.config.stop_loss_percent,
                take_profit_percent=self.config.take_profit_percent,
                auto_sell=self.config.auto_sell,
            ),
        )
        logger.info("Execution: Ready")

    def _init_pipeline(self) -> None:
        """Create the risk engine, pipeline and dispatcher."""
        from dex_sniper.core import Dispatcher, DispatcherConfig
        from dex_sniper.core.pipeline import PipelineConfig, SnipePipeline
        from dex_sniper.risk import RiskConfig, RiskReportClient, RiskScoringEngine

        risk_config = RiskConfig(base_url=self.config.rugcheck_url)
        risk_client = RiskReportClient(risk_config, session=self._session)
        self._clients.append(risk_client)

        risk_engine = RiskScoringEngine(
            risk_client,
            token_repo=self._token_repo,
            oracle=self._oracle,
            config=risk_config,
        )
        self._pipeline = SnipePipeline(
            self._tx_details,
            risk_engine,
            self._executor,
            PipelineConfig(ignore_pump_fun=self.config.ignore_pump_fun),
        )
        self._dispatcher = Dispatcher(
            self._pipeline.process,
            DispatcherConfig(max_concurrent=self.config.max_concurrent),
        )
        logger.info(f"Pipeline: Ready (max_concurrent={self.config.max_concurrent})")

    def _init_discovery(self) -> None:
        """Create the discovery source selected by configuration."""
        from dex_sniper.ingestion import (
            DiscoverySource,
            EventListener,
            ListenerConfig,
            ListingFeedConfig,
            ListingFeedPoller,
        )

        self._queue = asyncio.Queue()
        source = DiscoverySource(self.config.source)

        if source == DiscoverySource.LISTING:
            self._discovery = ListingFeedPoller(
                self._oracle,
                self._ledger,
                self._token_repo,
                self._queue,
                ListingFeedConfig(
                    max_token_holdings=self.config.max_token_holdings,
                    min_age_seconds=self.config.listing_min_age_seconds,
                ),
            )
        else:
            self._discovery = EventListener(
                ListenerConfig(url=self.config.rpc_wss_url, source=source),
                self._queue,
            )
        logger.info(f"Discovery: {type(self._discovery).__name__} ({source.value})")

    async def _run_loop(self) -> None:
        """Main run loop."""
        stats_interval = 60  # seconds

        while self._running:
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=stats_interval,
                )
                break
            except asyncio.TimeoutError:
                pass

            for task in self._tasks:
                if task.done() and not task.cancelled() and task.exception():
                    logger.error(f"Task {task.get_name()} died: {task.exception()}")
                    self._shutdown_event.set()

            if self._pipeline and self._dispatcher:
                stats = self._pipeline.stats
                logger.info(
                    f"Stats: admitted={self._dispatcher.admitted}, "
                    f"dropped={self._dispatcher.dropped}, "
                    f"rejected={stats.rejected}, bought={stats.bought}, "
                    f"buy_failed={stats.buy_failed}"
                )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._running = False
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="DEX Sniper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Run in simulation mode (no transactions submitted)",
    )
    parser.add_argument(
        "--source",
        choices=SOURCES,
        help="Override DISCOVERY_SOURCE",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = BotConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.simulate:
        config.simulation = True
    if args.source:
        config.source = args.source

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        logger.error("See dex-sniper --help for configuration")
        return 1

    bot = SniperBot(config)

    try:
        await bot.start()
        return 0
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    load_env_file()

    args = parse_args()

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        with singleton_lock():
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonBotError as e:
        logger.error(str(e))
        print(f"\n{e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
