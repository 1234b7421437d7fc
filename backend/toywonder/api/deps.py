"""
Request-scoped dependencies.
The broker is built once in the application lifespan and stored on app.state.
"""
from fastapi import Request

from toywonder.services.broker import ResponseBroker


def get_broker(request: Request) -> ResponseBroker:
    """Return the broker owned by the running application."""
    return request.app.state.broker
