import asyncio
from types import SimpleNamespace

import pytest
from fastapi import Depends, FastAPI, Request, status
from fastapi.testclient import TestClient

from roleacl import Acl, ArgumentError
from roleacl.errors import AuthError, InternalError, PermissionError
from roleacl.middleware import (
    _resolve_user_id,
    acl_dependency,
    register_exception_handlers,
    resource_from_path,
)
from tests.acl_helpers import FailingBackend, RecordingBackend


def make_request(path: str = "/blogs/1", method: str = "GET", **scope) -> Request:
    return Request(
        {
            "type": "http",
            "method": method,
            "path": path,
            "headers": [],
            **scope,
        }
    )


def header_user(request: Request) -> str | None:
    return request.headers.get("x-user")


async def seed(acl: Acl) -> None:
    await acl.add_user_roles("alice", "blogger")
    await acl.allow("blogger", "/blogs", ["get", "post"])
    await acl.allow("blogger", "/blogs/1/comments", "get")


def make_client(
    acl: Acl,
    content_type: str | None = None,
    **guard,
) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app, content_type)
    guard.setdefault("user_id", header_user)

    @app.get("/blogs/{blog_id}", dependencies=[Depends(acl.middleware(1, **guard))])
    async def read_blog(blog_id: int) -> dict:
        return {"id": blog_id}

    @app.post("/blogs/{blog_id}", dependencies=[Depends(acl.middleware(1, **guard))])
    async def update_blog(blog_id: int) -> dict:
        return {"id": blog_id}

    @app.delete("/blogs/{blog_id}", dependencies=[Depends(acl.middleware(1, **guard))])
    async def delete_blog(blog_id: int) -> None:
        return None

    @app.get(
        "/blogs/{blog_id}/comments",
        dependencies=[Depends(acl.middleware(**guard))],
    )
    async def list_comments(blog_id: int) -> list:
        return []

    return TestClient(app)


@pytest.fixture
def seeded_acl(acl: Acl) -> Acl:
    asyncio.run(seed(acl))
    return acl


def test_resource_from_path_truncates_to_leading_segments() -> None:
    assert resource_from_path("/blogs/12/comments", 1) == "/blogs"
    assert resource_from_path("/blogs/12/comments", 2) == "/blogs/12"
    assert resource_from_path("/blogs/12/comments", None) == "/blogs/12/comments"
    assert resource_from_path("/blogs/12/comments", 0) == "/blogs/12/comments"
    assert resource_from_path("/blogs", 5) == "/blogs"


def test_request_method_is_the_default_action(seeded_acl: Acl) -> None:
    client = make_client(seeded_acl)

    assert client.get("/blogs/1", headers={"x-user": "alice"}).status_code == status.HTTP_200_OK
    assert client.post("/blogs/1", headers={"x-user": "alice"}).status_code == status.HTTP_200_OK
    response = client.delete("/blogs/1", headers={"x-user": "alice"})
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.text == PermissionError.message


def test_whole_path_is_the_resource_without_components(seeded_acl: Acl) -> None:
    client = make_client(seeded_acl)

    response = client.get("/blogs/1/comments", headers={"x-user": "alice"})
    assert response.status_code == status.HTTP_200_OK

    response = client.get("/blogs/2/comments", headers={"x-user": "alice"})
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_missing_user_is_unauthorized(seeded_acl: Acl, backend: RecordingBackend) -> None:
    backend.reset_counts()
    client = make_client(seeded_acl)

    response = client.get("/blogs/1")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.text == AuthError.message
    assert sum(backend.calls.values()) == 0


def test_fixed_actions_override_method(seeded_acl: Acl) -> None:
    client = make_client(seeded_acl, actions="post")

    assert client.get("/blogs/1", headers={"x-user": "alice"}).status_code == status.HTTP_200_OK
    assert client.delete("/blogs/1", headers={"x-user": "alice"}).status_code == status.HTTP_200_OK


def test_fixed_user_id(seeded_acl: Acl) -> None:
    client = make_client(seeded_acl, user_id="alice")

    assert client.get("/blogs/1").status_code == status.HTTP_200_OK


def test_async_user_id_callable(seeded_acl: Acl) -> None:
    async def lookup(request: Request) -> str:
        return request.query_params.get("as", "")

    client = make_client(seeded_acl, user_id=lookup)

    assert client.get("/blogs/1", params={"as": "alice"}).status_code == status.HTTP_200_OK
    assert client.get("/blogs/1").status_code == status.HTTP_401_UNAUTHORIZED


def test_backend_failure_is_internal_error(caplog: pytest.LogCaptureFixture) -> None:
    acl = Acl(FailingBackend(ConnectionError("down")))
    client = make_client(acl, content_type="json")

    with caplog.at_level("ERROR", logger="roleacl.middleware"):
        response = client.get("/blogs/1", headers={"x-user": "alice"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"]["code"] == InternalError.code
    assert any("Permission check failed" in record.getMessage() for record in caplog.records)


def test_json_error_payload(seeded_acl: Acl) -> None:
    client = make_client(seeded_acl, content_type="json")

    response = client.delete("/blogs/1", headers={"x-user": "alice"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {
        "error": {
            "code": PermissionError.code,
            "message": PermissionError.message,
            "details": {"resource": "/blogs", "actions": ["delete"]},
        }
    }


def test_html_error_body(seeded_acl: Acl) -> None:
    client = make_client(seeded_acl, content_type="html")

    response = client.delete("/blogs/1", headers={"x-user": "alice"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.headers["content-type"].startswith("text/html")
    assert response.text == PermissionError.message


def test_denial_logs_allowed_permissions_at_debug(
    seeded_acl: Acl, caplog: pytest.LogCaptureFixture
) -> None:
    client = make_client(seeded_acl)

    with caplog.at_level("DEBUG", logger="roleacl"):
        client.delete("/blogs/1", headers={"x-user": "alice"})

    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("Not allowed ['delete'] on /blogs") for message in messages)
    assert any("Allowed permissions" in message and "'get'" in message for message in messages)


def test_user_id_falls_back_to_session_then_user() -> None:
    from_session = make_request(session={"user_id": "alice"})
    from_user = make_request(user=SimpleNamespace(id=7))
    anonymous = make_request()

    assert asyncio.run(_resolve_user_id(from_session, None)) == "alice"
    assert asyncio.run(_resolve_user_id(from_user, None)) == 7
    assert asyncio.run(_resolve_user_id(anonymous, None)) is None


@pytest.mark.parametrize(
    "options",
    [
        {"num_path_components": -1},
        {"user_id": 1.5},
        {"actions": 3},
    ],
)
def test_guard_options_are_validated(acl: Acl, options: dict) -> None:
    with pytest.raises(ArgumentError):
        acl_dependency(acl, **options)
