"""
The ``/user`` resource: lookup by name (GET) and creation (POST).

Every internal failure is logged here and turned into a bare 500; only
client input errors carry a message back to the caller.
POST reads its body on the event loop, then runs the blocking write in a
worker thread so concurrent requests are served in parallel.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from user_api.api.deps import DatastoreDep
from user_api.core.errors import DatastoreError, IdGenerationError
from user_api.core.ids import new_user_id
from user_api.core.pool import Datastore
from user_api.models import AGE_MAX, AGE_MIN, NAME_MAX_LENGTH, UserCreate, UserPublic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

USER_PATH = "/user"

SELECT_USERS_BY_NAME = "SELECT id, name, age FROM user WHERE name = %s"
INSERT_USER = "INSERT INTO user (id, name, age) VALUES (%s, %s, %s)"


def _internal_error() -> HTTPException:
    return HTTPException(status_code=500, detail="Internal server error")


def unsupported_method_error(method: str) -> HTTPException:
    logger.info("fail: HTTP method is %s", method)
    return HTTPException(status_code=400, detail=f"method {method} not supported")


# registered before GET so HEAD never reaches the read handler
@router.api_route(
    USER_PATH,
    methods=["HEAD", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"],
    response_model=None,
    include_in_schema=False,
)
def unsupported_method(request: Request) -> JSONResponse:
    raise unsupported_method_error(request.method)


@router.get(USER_PATH, response_model=None)
def read_users(request: Request, datastore: DatastoreDep) -> JSONResponse:
    """
    Users whose name equals ``?name=``, in the order the datastore returns them.
    No match is an empty list, not an error.
    """
    name = request.query_params.get("name", "")
    if not name:
        logger.info("fail: name is empty")
        raise HTTPException(status_code=400, detail="name is required")

    try:
        rows = datastore.query(SELECT_USERS_BY_NAME, (name,))
    except DatastoreError:
        logger.exception("fail: query users by name")
        raise _internal_error()

    # one bad row discards the whole result
    try:
        users = [UserPublic.model_validate(row) for row in rows]
    except ValidationError:
        logger.exception("fail: decode user row")
        raise _internal_error()

    try:
        return JSONResponse(content=[u.model_dump() for u in users])
    except (TypeError, ValueError):
        logger.exception("fail: serialize users")
        raise _internal_error()


@router.post(USER_PATH, response_model=None)
async def create_user_route(request: Request, datastore: DatastoreDep) -> JSONResponse:
    """Create a user; the response body is the new id as a JSON string."""
    raw = await request.body()
    try:
        user_in = UserCreate.model_validate_json(raw)
    except ValidationError as e:
        # undecodable bodies are reported as 500, not 400
        logger.warning("fail: decode request body: %s", e.errors(include_url=False))
        raise _internal_error()

    if not user_in.name_is_valid():
        logger.info("fail: name length -> %d", len(user_in.name))
        raise HTTPException(
            status_code=400,
            detail=f"name must be 1 to {NAME_MAX_LENGTH} characters",
        )
    if not user_in.age_is_valid():
        logger.info("fail: age range -> %d", user_in.age)
        raise HTTPException(
            status_code=400,
            detail=f"age must be between {AGE_MIN} and {AGE_MAX}",
        )

    user_id = await asyncio.to_thread(create_user, datastore, user_in)
    return JSONResponse(content=user_id)


def create_user(datastore: Datastore, user_in: UserCreate) -> str:
    """
    Assign an id and insert the user in a single-statement transaction.

    Returns the string-encoded id. A commit failure leaves the row's fate
    unknown to the caller; it is still reported as 500.
    """
    try:
        user_id = str(new_user_id())
    except IdGenerationError:
        logger.exception("fail: generate user id")
        raise _internal_error()

    try:
        tx = datastore.begin()
    except DatastoreError:
        logger.exception("fail: begin transaction")
        raise _internal_error()

    try:
        tx.exec(INSERT_USER, (user_id, user_in.name, user_in.age))
    except DatastoreError:
        logger.exception("fail: insert user")
        try:
            tx.rollback()
        except DatastoreError:
            logger.exception("fail: rollback")
        raise _internal_error()

    try:
        tx.commit()
    except DatastoreError:
        logger.exception("fail: commit")
        raise _internal_error()

    logger.info("created user %s", user_id)
    return user_id

