"""
Parmi WebSocket host bridge.

Runs the rep engine next to the exercise page:
1. The page forwards its deviceorientation / devicemotion readings
2. Readings land in the engine's single-slot sample cache
3. A fixed-rate tick loop runs the engine pipeline
4. Engine events and 10 Hz status snapshots go back to every client

Everything runs on one asyncio loop. Handlers only write into the sample
cache or apply commands between ticks, so no locking is needed.

Messages (JSON text frames):
    client -> server  {"type": "orientation", "beta": 12.5}
                      {"type": "motion", "x": 0.1, "y": 4.9, "z": 8.5}
                      {"type": "cmd", "action": "start" | "stop" | "reset" |
                       "calibrate" | "cancel_calibration" | "set_goal" |
                       "select_exercise" | "leave_exercise" | "status"}
    server -> client  engine events, {"type": "status", ...}, {"type": "ack", ...}

Usage:
    parmi-server --port 8765
"""

import argparse
import asyncio
import json
import logging
import math
import time
from typing import Any, Callable, Dict, Optional

import websockets

from . import __version__
from .config import (
    CALIBRATION_POLICY,
    HOST,
    LOG_FORMAT,
    LOG_LEVEL,
    PORT,
    STATUS_INTERVAL_SEC,
    TICK_RATE_HZ,
    CalibrationPolicy,
    EngineConfig,
)
from .engine import RepEngine
from .errors import ParmiError
from .events import FilteredAngleUpdated

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def is_command_message(msg: dict) -> bool:
    return msg.get("type") in ("cmd", "command")


def as_float(x) -> float:
    """Coerce a JSON value to float; null and junk become NaN."""
    if x is None:
        return math.nan
    try:
        return float(x)
    except (TypeError, ValueError):
        return math.nan


def ack(action: str, ok: bool = True, **extra) -> Dict[str, Any]:
    msg = {"type": "ack", "action": action, "ok": ok}
    msg.update(extra)
    return msg


# =============================================================================
# Bridge
# =============================================================================

class HostBridge:
    """
    Owns the engine, the connected clients and the tick loop.

    Usage:
        bridge = HostBridge(RepEngine(EngineConfig()))
        server = await websockets.serve(bridge.handle_client, host, port)
        await bridge.tick_loop()
    """

    def __init__(
        self,
        engine: RepEngine,
        tick_rate_hz: float = TICK_RATE_HZ,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.engine = engine
        self.tick_period = 1.0 / tick_rate_hz
        self.clients = set()
        self._clock = clock or time.monotonic
        self._t0 = self._clock()

    def now_ms(self) -> int:
        return int((self._clock() - self._t0) * 1000.0)

    # Broadcast ------------------------------------------------------------

    async def broadcast(self, msg: dict):
        if not self.clients:
            return
        data = json.dumps(msg)
        dead = []
        for ws in list(self.clients):
            try:
                await ws.send(data)
            except (websockets.ConnectionClosed, OSError):
                dead.append(ws)
        for ws in dead:
            self.clients.discard(ws)

    # Inbound --------------------------------------------------------------

    def handle_message(self, msg: dict) -> Optional[Dict[str, Any]]:
        """
        Apply one decoded client message.

        Returns:
            The reply to send back to that client, or None for sensor samples
        """
        kind = msg.get("type")
        now_ms = self.now_ms()

        if kind == "orientation":
            self.engine.push_orientation(as_float(msg.get("beta")), now_ms)
            return None
        if kind == "motion":
            self.engine.push_acceleration(
                as_float(msg.get("x")), as_float(msg.get("y")), as_float(msg.get("z")), now_ms
            )
            return None
        if not is_command_message(msg):
            return None

        action = msg.get("action")
        try:
            return self._handle_command(action, msg, now_ms)
        except ParmiError as e:
            logger.info("Command %s rejected: %s", action, e)
            return ack(action, ok=False, error=type(e).__name__, detail=str(e))
        except KeyError as e:
            return ack(action, ok=False, error="not_found", detail=str(e.args[0]) if e.args else "")

    def _handle_command(self, action, msg: dict, now_ms: int) -> Dict[str, Any]:
        engine = self.engine

        if action == "start":
            engine.start()
            return ack(action)

        elif action == "stop":
            engine.stop()
            return ack(action, reps=engine.reps)

        elif action == "reset":
            engine.reset()
            return ack(action)

        elif action == "calibrate":
            events = engine.calibrate(now_ms)
            extra = {"pending": not events}
            if events:
                extra["neutral_angle_deg"] = round(events[0].neutral_angle_deg, 2)
            return ack(action, **extra)

        elif action == "cancel_calibration":
            # The failed "calibration" event goes out with the next tick
            return ack(action, cancelled=engine.cancel_calibration())

        elif action == "set_goal":
            goal = engine.set_goal(msg.get("goal"))
            return ack(action, goal=goal, reps=engine.reps)

        elif action == "select_exercise":
            subtitle = engine.select_exercise(msg.get("exercise"), msg.get("intensity"))
            return ack(action, subtitle=subtitle, goal=engine.goal)

        elif action == "leave_exercise":
            engine.leave_exercise()
            return ack(action)

        elif action == "status":
            return engine.status()

        return ack(str(action), ok=False, error="unknown_action")

    async def handle_client(self, ws):
        self.clients.add(ws)
        logger.info("Client connected (%d total)", len(self.clients))

        try:
            await ws.send(json.dumps(self.engine.status()))

            async for raw in ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    continue
                if not isinstance(msg, dict):
                    continue

                reply = self.handle_message(msg)
                if reply is not None:
                    await ws.send(json.dumps(reply))
        except websockets.ConnectionClosed:
            pass
        finally:
            self.clients.discard(ws)
            logger.info("Client disconnected")

    # Tick loop ------------------------------------------------------------

    async def run_tick(self) -> int:
        """Run one engine tick and push its events. Returns the event count."""
        events = self.engine.update(self.now_ms())
        sent = 0
        for event in events:
            # The angle goes out with the status snapshot instead of every frame
            if isinstance(event, FilteredAngleUpdated):
                continue
            await self.broadcast(event.to_message())
            sent += 1
        return sent

    async def tick_loop(self):
        last_status = 0.0
        while True:
            try:
                await self.run_tick()
            except ParmiError as e:
                logger.exception("Tick failed")
                await self.broadcast({"type": "error", "where": "tick", "error": str(e)})

            t = self._clock()
            if t - last_status >= STATUS_INTERVAL_SEC:
                await self.broadcast(self.engine.status())
                last_status = t

            await asyncio.sleep(self.tick_period)


# =============================================================================
# Main
# =============================================================================

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Parmi rep engine WebSocket bridge")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--tick-hz", type=float, default=TICK_RATE_HZ)
    parser.add_argument(
        "--calibration",
        choices=[p.value for p in CalibrationPolicy],
        default=CALIBRATION_POLICY.value,
    )
    parser.add_argument("--goal", type=int, default=EngineConfig.goal)
    parser.add_argument("--threshold", type=float, default=EngineConfig.threshold_deg)
    return parser


async def serve(args):
    config = EngineConfig(
        goal=args.goal,
        threshold_deg=args.threshold,
        calibration_policy=CalibrationPolicy(args.calibration),
    )
    bridge = HostBridge(RepEngine(config), tick_rate_hz=args.tick_hz)

    print(f"Parmi rep engine v{__version__}")
    print(f"WebSocket: ws://{args.host}:{args.port}")
    print(f"Tick rate: {args.tick_hz} Hz")
    print(f"Calibration: {config.calibration_policy.value}")

    server = await websockets.serve(
        bridge.handle_client, args.host, args.port,
        ping_interval=20,
        ping_timeout=20
    )
    try:
        await bridge.tick_loop()
    finally:
        server.close()
        await server.wait_closed()


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    try:
        asyncio.run(serve(args))
    except KeyboardInterrupt:
        print("\n--- STOP ---")


if __name__ == "__main__":
    main()
