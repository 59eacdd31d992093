"""Chess Vision - Screen Chess Analyzer.

Captures the screen, recognizes the board (template matching or a vision
model), runs Stockfish for the best move and prints it.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import replace

from dotenv import load_dotenv

from capture import capture_screen
from config import CONFIG_FILE, SITES, Config, DebugOptions, load_config
from engine import ChessEngine
from errors import (
    BoardNotFound,
    EngineError,
    InvalidPosition,
    MalformedCrop,
    TemplateLoadError,
    VisionRecognitionFailed,
)
from llm_recognizer import LlmRecognizer
from ocr import OcrMode, RecognitionContext, board_to_fen, llm_available

log = logging.getLogger("chess_vision")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Screen chess assistant")
    parser.add_argument("--config", default=CONFIG_FILE, help="Path to board_config.json")
    parser.add_argument("--site", choices=SITES, help="Template set to use")
    parser.add_argument("--mode", choices=[m.value for m in OcrMode], help="Recognition mode")
    parser.add_argument("--side", choices=["white", "black"], help="Color you are playing")
    parser.add_argument("--interval", type=float, help="Seconds between scans")
    parser.add_argument("--once", action="store_true", help="Run a single scan and exit")
    parser.add_argument("--debug", action="store_true", help="Save intermediate images")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    config = load_config(args.config)
    overrides = {
        "site": args.site,
        "mode": args.mode,
        "side": args.side,
        "scan_interval": args.interval,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    debug = DebugOptions.from_env()
    if args.debug or debug.enabled or config.debug.enabled:
        config = replace(config, debug=replace(config.debug, enabled=True))
    return config


def resolve_mode(config: Config) -> OcrMode:
    mode = OcrMode(config.mode)
    if mode is OcrMode.LLM and not llm_available():
        log.warning("OPENAI_API_KEY not set, falling back to template matching")
        return OcrMode.NATIVE
    return mode


def scan(engine: ChessEngine, mode: OcrMode, context: RecognitionContext, recognizer=None) -> str | None:
    """One cycle: capture -> recognize -> analyze. Returns the FEN or None."""
    screenshot = capture_screen()
    try:
        fen = board_to_fen(screenshot, mode, context, recognizer)
    except (BoardNotFound, MalformedCrop) as e:
        print(f"Scanning... no board found ({e})")
        return None
    except (InvalidPosition, VisionRecognitionFailed) as e:
        print(f"Recognition failed: {e}")
        return None

    print(f"Detected FEN: {fen}")
    try:
        best_move, evaluation = engine.analyze(fen)
    except EngineError as e:
        print(f"Engine error: {e}")
        return fen
    print(f"Best move: {best_move}")
    print(f"Evaluation: {evaluation}")
    return fen


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    config = build_config(args)
    mode = resolve_mode(config)
    context = RecognitionContext(
        side=config.player_side,
        site=config.site,
        template_dir=config.template_dir,
        workers=config.workers,
        debug=config.debug,
    )
    recognizer = None
    if mode is OcrMode.LLM:
        recognizer = LlmRecognizer(model=config.llm_model, timeout=config.llm_timeout)

    try:
        engine = ChessEngine()
    except EngineError as e:
        print(f"ERROR: {e}")
        return 1

    print("Chess Vision starting...")
    print(f"Targeting site: {config.site}  |  OCR: {mode}  |  Playing as {context.side.label}")
    print("Press Ctrl+C to stop.")

    try:
        while True:
            scan(engine, mode, context, recognizer)
            if args.once:
                break
            time.sleep(config.scan_interval)
    except TemplateLoadError as e:
        print(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
