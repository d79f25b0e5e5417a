r"""Unit tests for request construction and response classification."""

from __future__ import annotations

import base64
import json
from unittest.mock import Mock

import httpx
import pytest

from bcnet import ClientError, Connection, NetworkError, ServerError

TEST_URL = "https://api.example.com/v2/products"


def create_connection(*responses: httpx.Response | Exception, **kwargs) -> tuple[Connection, Mock]:
    handler = Mock(side_effect=list(responses))
    return Connection(transport=httpx.MockTransport(handler), **kwargs), handler


def sent_request(handler: Mock, index: int = -1) -> httpx.Request:
    return handler.call_args_list[index].args[0]


##############################################
#     Tests for Connection configuration     #
##############################################


def test_connection_defaults() -> None:
    """Test the default connection state."""
    connection = Connection()
    assert connection.content_type == "application/json"
    assert connection.auto_retry
    assert connection.status is None
    assert connection.last_error is None
    assert connection.retry_attempts == 0
    assert connection.redirects_followed == 0


def test_connection_rejects_invalid_timeout() -> None:
    """Test that a non-positive timeout is rejected."""
    with pytest.raises(ValueError, match=r"timeout must be > 0"):
        Connection(timeout=0)


def test_connection_rejects_invalid_max_redirects() -> None:
    """Test that negative max_redirects is rejected."""
    with pytest.raises(ValueError, match=r"max_redirects must be >= 0"):
        Connection(max_redirects=-1)


def test_connection_rejects_invalid_cipher() -> None:
    """Test that an invalid cipher list is rejected at configuration
    time."""
    with pytest.raises(ValueError, match=r"cipher must be a valid OpenSSL cipher list"):
        Connection(cipher="NOT-A-CIPHER")
    connection = Connection()
    with pytest.raises(ValueError, match=r"cipher must be a valid OpenSSL cipher list"):
        connection.set_cipher("NOT-A-CIPHER")


def test_connection_context_manager_closes_client() -> None:
    """Test that leaving the context manager releases the transport."""
    with create_connection(httpx.Response(200, json={}))[0] as connection:
        connection.get(TEST_URL)
        client = connection._client
        assert client is not None
    assert client.is_closed
    assert connection._client is None


def test_connection_configuration_change_rebuilds_client() -> None:
    """Test that changing transport options clears the cached client."""
    connection, _ = create_connection(httpx.Response(200, json={}), httpx.Response(200, json={}))
    connection.get(TEST_URL)
    first = connection._client
    connection.set_timeout(5)
    assert first.is_closed
    connection.get(TEST_URL)
    assert connection._client is not first


def test_connection_set_timeout_rejects_invalid_value() -> None:
    """Test that set_timeout validates its argument."""
    with pytest.raises(ValueError, match=r"timeout must be > 0, got -3"):
        Connection().set_timeout(-3)


def test_connection_use_proxy_builds_url() -> None:
    """Test that the proxy host and port are combined."""
    connection = Connection()
    connection.use_proxy("proxy.local", 3128)
    assert connection._proxy == "http://proxy.local:3128"
    connection.use_proxy("https://secure-proxy.local")
    assert connection._proxy == "https://secure-proxy.local"


##############################################
#     Tests for authentication               #
##############################################


def test_connection_basic_authentication() -> None:
    """Test that basic authentication sends an Authorization header."""
    connection, handler = create_connection(httpx.Response(200, json={}))
    connection.authenticate("admin", "secret")
    connection.get(TEST_URL)

    request = sent_request(handler)
    expected = base64.b64encode(b"admin:secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert "X-Auth-Token" not in request.headers


def test_connection_oauth_authentication() -> None:
    """Test that OAuth sends the token headers."""
    connection, handler = create_connection(httpx.Response(200, json={}))
    connection.authenticate_oauth("client-id", "token")
    connection.get(TEST_URL)

    request = sent_request(handler)
    assert request.headers["X-Auth-Client"] == "client-id"
    assert request.headers["X-Auth-Token"] == "token"
    assert "Authorization" not in request.headers


def test_connection_authentication_modes_are_exclusive() -> None:
    """Test that switching mode removes the other credentials."""
    connection, handler = create_connection(
        httpx.Response(200, json={}), httpx.Response(200, json={})
    )
    connection.authenticate_oauth("client-id", "token")
    connection.authenticate("admin", "secret")
    connection.get(TEST_URL)
    assert "X-Auth-Token" not in sent_request(handler).headers
    assert "Authorization" in sent_request(handler).headers

    connection.authenticate_oauth("client-id", "token")
    connection.get(TEST_URL)
    assert "Authorization" not in sent_request(handler).headers
    assert sent_request(handler).headers["X-Auth-Token"] == "token"


def test_connection_custom_headers() -> None:
    """Test adding and removing custom headers."""
    connection, handler = create_connection(
        httpx.Response(200, json={}), httpx.Response(200, json={})
    )
    connection.add_header("X-Custom", "value")
    connection.get(TEST_URL)
    assert sent_request(handler).headers["X-Custom"] == "value"

    connection.remove_header("X-Custom")
    connection.remove_header("X-Missing")
    connection.get(TEST_URL)
    assert "X-Custom" not in sent_request(handler).headers


##############################################
#     Tests for request construction         #
##############################################


@pytest.mark.parametrize("method", ["get", "head", "delete"])
def test_connection_requests_without_body(method: str) -> None:
    """Test the method, URL and Accept header of body-less requests."""
    connection, handler = create_connection(httpx.Response(200))
    getattr(connection, method)(TEST_URL)

    request = sent_request(handler)
    assert request.method == method.upper()
    assert str(request.url) == TEST_URL
    assert request.headers["Accept"] == "application/json"
    assert request.content == b""


def test_connection_get_with_query() -> None:
    """Test that the query is appended to the URL in order."""
    connection, handler = create_connection(httpx.Response(200, json=[]))
    connection.get(TEST_URL, [("page", 2), ("limit", 10), ("name", "Blue shirt")])
    assert str(sent_request(handler).url) == f"{TEST_URL}?page=2&limit=10&name=Blue+shirt"


def test_connection_get_with_empty_query() -> None:
    """Test that an empty query leaves the URL unchanged."""
    connection, handler = create_connection(httpx.Response(200, json=[]))
    connection.get(TEST_URL, {})
    assert str(sent_request(handler).url) == TEST_URL


@pytest.mark.parametrize("method", ["post", "put"])
def test_connection_json_body(method: str) -> None:
    """Test that mapping bodies are JSON-encoded."""
    body = {"name": "Shoes", "price": "10.00", "categories": [1, 2], "is_visible": True}
    connection, handler = create_connection(httpx.Response(201, json={"id": 7, **body}))
    result = getattr(connection, method)(TEST_URL, body)

    request = sent_request(handler)
    assert request.method == method.upper()
    assert request.headers["Content-Type"] == "application/json"
    assert int(request.headers["Content-Length"]) == len(request.content)
    assert json.loads(request.content) == body
    assert result == {"id": 7, **body}


@pytest.mark.parametrize("method", ["post", "put"])
def test_connection_string_body_is_sent_untouched(method: str) -> None:
    """Test that string bodies are not re-encoded."""
    connection, handler = create_connection(httpx.Response(200, json={}))
    getattr(connection, method)(TEST_URL, '{"name":"Shoes"}')
    assert sent_request(handler).content == b'{"name":"Shoes"}'


def test_connection_urlencoded_body() -> None:
    """Test that bodies are URL-encoded in form mode."""
    connection, handler = create_connection(httpx.Response(200, json={"access_token": "abc"}))
    connection.use_urlencoded()
    result = connection.post(TEST_URL, {"grant_type": "authorization_code", "code": "x y"})

    request = sent_request(handler)
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.headers["Accept"] == "application/x-www-form-urlencoded"
    assert request.content == b"grant_type=authorization_code&code=x+y"
    assert result == {"access_token": "abc"}


def test_connection_use_urlencoded_false_restores_json() -> None:
    """Test that form mode can be switched off."""
    connection = Connection()
    connection.use_urlencoded()
    connection.use_urlencoded(False)
    assert connection.content_type == "application/json"


def test_connection_xml_mode_returns_raw_body() -> None:
    """Test that XML mode returns the raw body."""
    xml = "<?xml version='1.0'?><products><product><id>5</id></product></products>"
    connection, handler = create_connection(httpx.Response(200, text=xml))
    connection.use_xml()
    assert connection.get(TEST_URL) == xml
    assert sent_request(handler).headers["Accept"] == "application/xml"

    connection.use_xml(False)
    assert connection.content_type == "application/json"


def test_connection_json_round_trip() -> None:
    """Test that an echoed JSON body decodes to the submitted value."""

    def echo(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=request.content)

    body = {"id": 1, "price": 9.5, "tags": ["a", None], "nested": {"ok": False}}
    with Connection(transport=httpx.MockTransport(echo)) as connection:
        assert connection.post(TEST_URL, body) == body
        assert connection.put(TEST_URL, [1, "two", 3.0]) == [1, "two", 3.0]
        assert connection.post(TEST_URL, "42") == 42


##############################################
#     Tests for response state               #
##############################################


def test_connection_response_introspection() -> None:
    """Test status, headers and body of the last response."""
    connection, _ = create_connection(
        httpx.Response(
            200, content=b'{"id": 5}', headers={"X-BC-ApiLimit-Remaining": "9999"}
        )
    )
    assert connection.get(TEST_URL) == {"id": 5}
    assert connection.status == 200
    assert connection.status_message == "HTTP/1.1 200 OK"
    assert connection.body == '{"id": 5}'
    assert connection.get_header("x-bc-apilimit-remaining") == "9999"
    assert connection.get_header("X-BC-APILIMIT-REMAINING") == "9999"
    assert connection.headers["X-BC-ApiLimit-Remaining"] == "9999"
    assert connection.get_header("X-Missing") is None
    assert connection.effective_url == TEST_URL


def test_connection_empty_body_decodes_to_none() -> None:
    """Test that an empty successful response returns None."""
    connection, _ = create_connection(httpx.Response(204))
    assert connection.delete(f"{TEST_URL}/5") is None
    assert connection.status == 204


def test_connection_state_is_reset_between_requests() -> None:
    """Test that the response state is reset before each request."""
    connection, _ = create_connection(
        httpx.Response(404, json={"error": "missing"}, headers={"X-Trace": "1"}),
        httpx.Response(200, json={"id": 1}),
    )
    assert connection.get(TEST_URL) is False
    assert connection.last_error == {"error": "missing"}

    assert connection.get(TEST_URL) == {"id": 1}
    assert connection.last_error is None
    assert connection.get_header("X-Trace") is None
    assert connection.status == 200


##############################################
#     Tests for response classification      #
##############################################


@pytest.mark.parametrize("status", [400, 401, 403, 404, 405, 408, 409, 413, 422, 429, 499])
def test_connection_client_error_is_absorbed(status: int, mock_sleep: Mock) -> None:
    """Test that 4xx responses return False and record the body when
    fail_on_error is not set."""
    body = [{"status": status, "message": "Something is wrong"}]
    connection, handler = create_connection(httpx.Response(status, json=body))

    assert connection.get(TEST_URL) is False
    assert connection.last_error == body
    assert connection.status == status
    handler.assert_called_once()
    mock_sleep.assert_not_called()


@pytest.mark.parametrize("status", [400, 404, 422])
def test_connection_client_error_message_is_whole_body(status: int) -> None:
    """Test that without an error field the message is the whole body."""
    body = {"status": status, "detail": "Product is not valid"}
    connection, _ = create_connection(httpx.Response(status, json=body), fail_on_error=True)

    with pytest.raises(ClientError) as exc_info:
        connection.get(TEST_URL)

    assert exc_info.value.message == body
    assert exc_info.value.code == status
    assert exc_info.value.body == body


def test_connection_client_error_uses_error_field() -> None:
    """Test that the error field is used as message when present."""
    connection, _ = create_connection(
        httpx.Response(403, json={"error": "You don't have access"}), fail_on_error=True
    )
    with pytest.raises(ClientError, match=r"You don't have access") as exc_info:
        connection.get(TEST_URL)
    assert exc_info.value.code == 403
    assert exc_info.value.method == "GET"
    assert exc_info.value.url == TEST_URL


def test_connection_client_error_extracts_structured_message() -> None:
    """Test that list error bodies are reduced to their message."""
    connection, _ = create_connection(
        httpx.Response(404, json=[{"status": 404, "message": "The requested resource was not found."}]),
        fail_on_error=True,
    )
    with pytest.raises(ClientError, match=r"The requested resource was not found."):
        connection.get(TEST_URL)


@pytest.mark.parametrize("status", [501, 503, 504, 599])
def test_connection_server_error(status: int, mock_sleep: Mock) -> None:
    """Test that non-retryable 5xx responses raise a ServerError when
    fail_on_error is set."""
    connection, handler = create_connection(
        httpx.Response(status, json={"title": "Service down"}), fail_on_error=True
    )
    with pytest.raises(ServerError, match=r"Service down") as exc_info:
        connection.get(TEST_URL)
    assert exc_info.value.code == status
    handler.assert_called_once()
    mock_sleep.assert_not_called()


def test_connection_server_error_is_absorbed() -> None:
    """Test that 5xx responses return False when fail_on_error is not
    set."""
    connection, _ = create_connection(httpx.Response(503, text="<html>Unavailable</html>"))
    assert connection.get(TEST_URL) is False
    assert connection.last_error == "<html>Unavailable</html>"


def test_connection_fail_on_error_can_be_toggled() -> None:
    """Test switching fail_on_error after construction."""
    connection, _ = create_connection(
        httpx.Response(404, json={}), httpx.Response(404, json={})
    )
    connection.fail_on_error()
    with pytest.raises(ClientError):
        connection.get(TEST_URL)
    connection.fail_on_error(False)
    assert connection.get(TEST_URL) is False


@pytest.mark.parametrize("fail_on_error", [True, False])
def test_connection_network_error_always_raises(fail_on_error: bool) -> None:
    """Test that network faults raise regardless of fail_on_error."""
    connection, _ = create_connection(
        httpx.ConnectError("Connection refused"), fail_on_error=fail_on_error
    )
    with pytest.raises(NetworkError, match=r"Connection refused") as exc_info:
        connection.get(TEST_URL)
    assert exc_info.value.code == 7
    assert isinstance(exc_info.value.cause, httpx.ConnectError)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert connection.status is None
