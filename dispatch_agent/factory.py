"""Wire the gateway, model client and agent together from `Settings`."""

from __future__ import annotations

from typing import Optional

from dispatch_agent.agent.graph import DispatchAgent
from dispatch_agent.agent.llm import MessagesClient, OfflineClient, RetryingModelClient
from dispatch_agent.config import Settings
from dispatch_agent.tools.backend import BackendGateway
from dispatch_agent.tools.executor import ToolExecutor


def build_gateway(settings: Settings) -> BackendGateway:
    return BackendGateway(settings.backend_url, timeout=settings.backend_timeout)


def build_model_client(settings: Settings) -> RetryingModelClient:
    if settings.offline:
        client = OfflineClient()
    else:
        client = MessagesClient(settings.api_key, base_url=settings.api_base, timeout=settings.llm_timeout)
    return RetryingModelClient(client, max_retries=settings.max_retries, base_delay=settings.retry_base_delay)


def build_agent(settings: Optional[Settings] = None) -> DispatchAgent:
    settings = settings or Settings.from_env()
    return DispatchAgent(
        build_model_client(settings),
        ToolExecutor(build_gateway(settings)),
        max_iterations=settings.max_iterations,
        model_name=settings.model,
        max_tokens=settings.max_tokens,
    )


__all__ = ["build_gateway", "build_model_client", "build_agent"]
