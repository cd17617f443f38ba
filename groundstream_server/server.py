"""groundstream WebSocket server — streams grounded answers to clients.

Usage:
    groundstream-server --kb kb --port 8787
    groundstream-server --verbose

    # Or via Python:
    python -m groundstream_server.server --kb kb
"""

import argparse
import asyncio
import logging
import signal
from typing import Any, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from groundstream import (
    ActionLedger,
    CannedAnswerGenerator,
    GroundingVerifier,
    KnowledgeCorpus,
    ServerConfig,
    StreamingSession,
    TokenGenerator,
)
from groundstream import events

logger = logging.getLogger("groundstream-server")


class GroundstreamServer:
    """Owns the shared state and serves one streaming session per connection.

    The corpus, verifier and action ledger are built once and shared by all
    connections; each connection gets its own :class:`StreamingSession`
    that lives exactly as long as the connection.
    """

    def __init__(
        self,
        config: ServerConfig,
        corpus: KnowledgeCorpus,
        generator: TokenGenerator,
        ledger: Optional[ActionLedger] = None,
        verifier: Optional[GroundingVerifier] = None,
    ):
        self.config = config
        self.corpus = corpus
        self.generator = generator
        self.ledger = ledger or ActionLedger(
            cooldown_s=config.cooldown_s,
            max_age_s=config.action_max_age_s,
        )
        self.verifier = verifier or GroundingVerifier(corpus)
        self.connections = 0

    async def handle_connection(self, websocket) -> None:
        self.connections += 1
        logger.info(f"Client connected ({self.connections} active)")

        async def send(event: Dict[str, Any]) -> None:
            try:
                await websocket.send(events.encode(event))
            except ConnectionClosed:
                logger.debug(f"Dropped {event.get('type')} event for closed connection")

        session = StreamingSession(
            send=send,
            generator=self.generator,
            verifier=self.verifier,
            ledger=self.ledger,
        )
        try:
            async for raw in websocket:
                await session.handle_raw(raw)
        except ConnectionClosed as e:
            logger.debug(f"Connection closed: {e}")
        finally:
            await session.close()
            self.connections -= 1
            logger.info(f"Client disconnected ({self.connections} active)")

    async def sweep_forever(self) -> None:
        """Purge stale action records on a fixed interval until cancelled."""
        while True:
            await asyncio.sleep(self.config.sweep_interval_s)
            self.ledger.sweep_expired(self.config.action_max_age_s)

    async def serve(self, stop: asyncio.Event) -> None:
        """Serve WebSocket clients until *stop* is set."""
        sweeper = asyncio.create_task(self.sweep_forever())
        try:
            async with websockets.serve(
                self.handle_connection,
                self.config.host,
                self.config.port,
            ):
                logger.info(
                    f"WebSocket server running on ws://{self.config.host}:{self.config.port}"
                )
                await stop.wait()
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass


def build_server(config: ServerConfig) -> GroundstreamServer:
    """Load the knowledge base and wire up a server for *config*."""
    corpus = KnowledgeCorpus()
    corpus.load(config.kb_dir)
    generator = CannedAnswerGenerator(hallucination_rate=config.hallucination_rate)
    return GroundstreamServer(config, corpus, generator)


async def _run(config: ServerConfig) -> None:
    server = build_server(config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows event loops
    await server.serve(stop)


def main() -> None:
    """Entry point for the groundstream-server command."""
    defaults = ServerConfig.from_env()
    parser = argparse.ArgumentParser(description="groundstream WebSocket server")
    parser.add_argument("--host", default=defaults.host, help=f"Interface to bind (default: {defaults.host})")
    parser.add_argument("--port", type=int, default=defaults.port, help=f"Port (default: {defaults.port})")
    parser.add_argument("--kb", default=defaults.kb_dir, help=f"Knowledge base directory (default: {defaults.kb_dir})")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=getattr(logging, defaults.log_level.upper(), logging.WARNING))

    defaults.host = args.host
    defaults.port = args.port
    defaults.kb_dir = args.kb

    try:
        asyncio.run(_run(defaults))
    except KeyboardInterrupt:
        pass
    except FileNotFoundError as e:
        logger.error(str(e))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
