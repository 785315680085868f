"""LLM provider access and response parsing."""
from aitoolkit.services.llm.client import LLMClient, LLMResponseError
from aitoolkit.services.llm.parser import ResponseParser, is_parse_failure, parse_response

__all__ = ["LLMClient", "LLMResponseError", "ResponseParser", "is_parse_failure", "parse_response"]
