"""
LangChain chat model strategies

OpenAI, Groq (OpenAI-compatible endpoint) and Anthropic backends, streamed
through ``astream`` of the corresponding langchain chat model.
"""

import logging
from typing import Any, AsyncIterator, Tuple, Type

import anthropic
import openai
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..config import Settings
from ..exceptions import UpstreamError, UpstreamRateLimited
from .base import AnalysisStrategy, RATE_LIMIT_STATUS, status_code_of

logger = logging.getLogger(__name__)


def log_llm_request(llm, context: str = ""):
    """Log the endpoint and model an LLM request goes to"""
    base_url = None
    model_name = (getattr(llm, 'model_name', None)
                  or getattr(llm, 'model', None) or 'unknown')

    if hasattr(llm, 'openai_api_base') and llm.openai_api_base:
        base_url = str(llm.openai_api_base)
    elif hasattr(llm, 'anthropic_api_url'):
        base_url = str(llm.anthropic_api_url)
    elif 'openai' in str(type(llm)).lower():
        base_url = "https://api.openai.com/v1"

    if base_url:
        logger.info(f"Making LLM request {context} to: {base_url}")
    else:
        logger.info(f"Making LLM request {context}")
    logger.info(f"Model: {model_name}")


def content_text(content: Any) -> str:
    """Text of a message chunk; Anthropic chunks carry a list of blocks"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class LangChainStrategy(AnalysisStrategy):
    """Strategy backed by a langchain chat model"""

    def __init__(self,
                 name: str,
                 llm,
                 model_name: str = "",
                 rate_limit_errors: Tuple[Type[BaseException], ...] = ()):
        self.name = name
        self.llm = llm
        self.model_name = model_name
        self.rate_limit_errors = rate_limit_errors

    async def stream(self, system_prompt: str, user_prompt: str,
                     language: str) -> AsyncIterator[str]:
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt)
        ]
        log_llm_request(self.llm, f"({self.name}, lang={language})")

        try:
            async for chunk in self.llm.astream(messages):
                text = content_text(chunk.content)
                if text:
                    yield text
        except self.rate_limit_errors as e:
            raise UpstreamRateLimited(self.name, str(e)) from e
        except UpstreamError:
            raise
        except Exception as e:
            if status_code_of(e) == RATE_LIMIT_STATUS:
                raise UpstreamRateLimited(self.name, str(e)) from e
            raise UpstreamError(self.name, str(e)) from e


def create_openai_strategy(config: Settings) -> LangChainStrategy:
    llm = ChatOpenAI(model=config.openai_model,
                     temperature=config.llm_temperature,
                     max_tokens=config.llm_max_tokens,
                     api_key=config.openai_api_key,
                     base_url=config.openai_base_url,
                     max_retries=0)
    return LangChainStrategy("openai", llm, config.openai_model,
                             (openai.RateLimitError, ))


def create_groq_strategy(config: Settings) -> LangChainStrategy:
    llm = ChatOpenAI(model=config.groq_model,
                     temperature=config.llm_temperature,
                     max_tokens=config.llm_max_tokens,
                     api_key=config.groq_api_key,
                     base_url=config.groq_base_url,
                     max_retries=0)
    return LangChainStrategy("groq", llm, config.groq_model,
                             (openai.RateLimitError, ))


def create_anthropic_strategy(config: Settings) -> LangChainStrategy:
    llm = ChatAnthropic(model=config.anthropic_model,
                        temperature=config.llm_temperature,
                        max_tokens=config.llm_max_tokens,
                        api_key=config.anthropic_api_key,
                        max_retries=0)
    return LangChainStrategy("anthropic", llm, config.anthropic_model,
                             (anthropic.RateLimitError, ))
