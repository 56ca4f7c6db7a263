"""LLM provider factory.

Centralizes chat model instantiation for case comparison. Supports OpenAI
and AWS Bedrock, switchable via the LLM_PROVIDER setting. Both providers
must be vision-capable since image comparison sends two images per request.

Entry points:
- ``get_langchain_llm()`` -- LangChain chat model used by the score provider
- ``get_circuit_breaker_exception_class()`` -- provider-appropriate error class
"""

from __future__ import annotations

from typing import Any, Dict

from casematch.config import get_config
from casematch.utils.logger import log_info


def get_langchain_llm():
    """Return a LangChain chat model based on LLM_PROVIDER.

    For openai:  ChatOpenAI in JSON-object response mode.
    For bedrock: ChatBedrockConverse (JSON is requested through the prompt).
    """
    config = get_config()

    if config.llm_provider == "bedrock":
        from langchain_aws import ChatBedrockConverse

        log_info("Using Bedrock LLM", model_id=config.bedrock_model_id, region=config.aws_region)
        return ChatBedrockConverse(
            model=config.bedrock_model_id,
            region_name=config.aws_region,
            temperature=config.bedrock_temperature,
            max_tokens=config.bedrock_max_tokens,
        )

    # Default: OpenAI
    from langchain_openai import ChatOpenAI

    model_kwargs: Dict[str, Any] = {"response_format": {"type": "json_object"}}

    log_info("Using OpenAI LLM", model=config.openai_model)
    kwargs: Dict[str, Any] = {
        "model": config.openai_model,
        "temperature": config.openai_temperature,
        "model_kwargs": model_kwargs,
    }
    if config.openai_api_key:
        kwargs["api_key"] = config.openai_api_key
    return ChatOpenAI(**kwargs)


def get_circuit_breaker_exception_class() -> type:
    """Return the appropriate exception class for the current provider."""
    if get_config().llm_provider == "bedrock":
        from botocore.exceptions import ClientError
        return ClientError
    from openai import OpenAIError
    return OpenAIError
