"""
Common utilities shared across ToonStudio modules.
"""

from .errors import StoryServiceError
from .llm import ChatResult, CompletionCallable, call_chat_completion
from .retry import is_throttling_error, retry_on_throttle
from .structured import build_response_format, parse_json_response, request_structured_json

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "StoryServiceError",
    "build_response_format",
    "call_chat_completion",
    "is_throttling_error",
    "parse_json_response",
    "request_structured_json",
    "retry_on_throttle",
]
