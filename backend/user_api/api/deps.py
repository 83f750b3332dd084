from typing import Annotated

from fastapi import Depends, Request

from user_api.core.pool import Datastore


def get_datastore(request: Request) -> Datastore:
    """The process-wide Datastore opened at startup (overridden in tests)."""
    return request.app.state.datastore


DatastoreDep = Annotated[Datastore, Depends(get_datastore)]
