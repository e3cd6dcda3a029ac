"""Route Dependencies: access to the process-wide BotRuntime.

Invariants:
    - The runtime is built once in the lifespan and stored on app.state
"""

from fastapi import Request

from backlog_bot.services.runtime import BotRuntime


def get_runtime(request: Request) -> BotRuntime:
    return request.app.state.runtime
