"""Board recognition through an OpenAI vision model.

The screenshot goes to the model as-is; it finds the board itself and
answers with a FEN string. The answer is not trusted: impossible material
triggers a fresh request, and the castling field is recomputed from the
position because the model tends to claim KQkq regardless.
"""

from __future__ import annotations

import base64
import logging
import os
import re
import time

import cv2
import numpy as np
from openai import OpenAI, OpenAIError

from errors import (
    InvalidPosition,
    LlmUnavailable,
    ReplyValidationError,
    TransportError,
    VisionRecognitionFailed,
)
from fen_utils import (
    PlayerSide,
    check_fen_syntax,
    fix_castling_rights,
    piece_count_violations,
)
from retry import RetryPolicy, call_with_retry

log = logging.getLogger(__name__)

MODEL = "gpt-4o"
MAX_TOKENS = 100
TIMEOUT_SECS = 30.0
JPEG_QUALITY = 85

TRANSPORT_RETRY = RetryPolicy(max_attempts=3, backoff=0.5)   # network/API errors
VALIDATION_RETRY = RetryPolicy(max_attempts=3, backoff=0.3)  # impossible positions

_RANK = r"[pnbrqkPNBRQK1-8]+"
_FEN_RE = re.compile(
    rf"(?<![\w/]){_RANK}(?:/{_RANK}){{7}}(?![\w/])(?:[ \t]+[wb](?:[ \t]+\S+){{0,4}})?"
)


def has_api_key() -> bool:
    """Checks if the OpenAI API key is available."""
    return bool(os.environ.get("OPENAI_API_KEY"))


def build_prompt(side: PlayerSide) -> str:
    """Instruction text for the given player side.

    The player's color is at the bottom of the image and is also the side
    to move in the requested FEN.
    """
    side = PlayerSide.parse(side)
    piece_position = f"{side.label} pieces are at the bottom of the image"
    turn_char = side.turn

    return f"""Analyze this chessboard image. Output ONLY the FEN string.

Rules:
- Output ONLY the FEN, nothing else (no explanation, no markdown, no quotes)
- {piece_position}
- Use standard FEN: uppercase = White (KQRBNP), lowercase = Black (kqrbnp)
- Numbers represent consecutive empty squares
- Rows separated by / (starting from rank 8 at the top of the board)
- Append: {turn_char} KQkq - 0 1

Example output for starting position:
rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR {turn_char} KQkq - 0 1"""


def encode_image(image: np.ndarray) -> str:
    """JPEG-encode the image and return it as base64 text."""
    ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
    if not ok:
        raise VisionRecognitionFailed("Failed to encode screenshot as JPEG")
    return base64.b64encode(buf.tobytes()).decode("ascii")


def build_messages(base64_image: str, prompt: str) -> list[dict]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:image/jpeg;base64,{base64_image}",
                        "detail": "high",
                    },
                },
            ],
        }
    ]


def extract_fen(reply: str) -> str:
    """Pull the FEN out of a reply that may carry fences, quotes or labels."""
    text = reply.strip().strip("`'\"").strip()
    match = _FEN_RE.search(text)
    return match.group(0) if match else text


def validate_reply(reply: str, side: PlayerSide) -> str:
    """Check a model reply and return the corrected FEN.

    Raises:
        ReplyValidationError: wrong king count, more than 8 pawns for a
            color, or a FEN python-chess rejects.
    """
    side = PlayerSide.parse(side)
    fen = extract_fen(reply)
    parts = fen.split()
    placement = parts[0] if parts else ""

    violations = piece_count_violations(placement)
    if violations:
        raise ReplyValidationError(
            f"Invalid FEN from LLM: {'; '.join(violations)} (received: '{reply}')"
        )

    try:
        corrected = fix_castling_rights(fen, turn=side.turn)
        return check_fen_syntax(corrected)
    except InvalidPosition as e:
        raise ReplyValidationError(f"Invalid FEN syntax from LLM: {e} (received: '{reply}')") from e


class LlmRecognizer:
    """Screenshot -> FEN through the chat completions API.

    Parameters
    ----------
    api_key : str, optional
        Falls back to ``OPENAI_API_KEY``.
    client : optional
        Anything with ``chat.completions.create``; built from the key when
        omitted.
    sleep : callable
        Used for retry backoff.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = MODEL,
        timeout: float = TIMEOUT_SECS,
        client=None,
        transport_policy: RetryPolicy = TRANSPORT_RETRY,
        validation_policy: RetryPolicy = VALIDATION_RETRY,
        sleep=time.sleep,
    ):
        if client is None:
            api_key = api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise LlmUnavailable("OPENAI_API_KEY environment variable not set")
            # Retries are handled by our own policies
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.model = model
        self.transport_policy = transport_policy
        self.validation_policy = validation_policy
        self._sleep = sleep

    def _call_api(self, messages: list[dict]) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=MAX_TOKENS,
                temperature=0,
            )
        except OpenAIError as e:
            raise TransportError(f"OpenAI API error: {e}") from e

        if not resp.choices or not resp.choices[0].message.content:
            raise TransportError("No response from OpenAI")
        return resp.choices[0].message.content.strip()

    def _request_fen(self, messages: list[dict]) -> str:
        return call_with_retry(
            lambda: self._call_api(messages),
            self.transport_policy,
            retry_on=(TransportError,),
            description="LLM API",
            sleep=self._sleep,
        )

    def recognize(self, image: np.ndarray, side: PlayerSide | str) -> str:
        """Analyze a screenshot and return a validated FEN.

        Every validation retry sends a fresh request. When the attempts
        run out the last TransportError or ReplyValidationError is raised.
        """
        side = PlayerSide.parse(side)
        messages = build_messages(encode_image(image), build_prompt(side))

        def attempt() -> str:
            reply = self._request_fen(messages)
            log.info("LLM returned: %s", reply)
            return validate_reply(reply, side)

        return call_with_retry(
            attempt,
            self.validation_policy,
            retry_on=(ReplyValidationError,),
            description="LLM validation",
            sleep=self._sleep,
        )
