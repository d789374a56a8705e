"""External service adapters."""

from .ably import AblyNotifier
from .http_json import post_json
from .murf import MurfSynthesizer
from .openrouter import call_openrouter

__all__ = ["AblyNotifier", "MurfSynthesizer", "call_openrouter", "post_json"]
