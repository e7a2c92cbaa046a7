from starlette.requests import Request

from smartkit.logging_config import add_chain_id, redact_secrets
from smartkit.middleware.logging_middleware import request_context


def test_credential_fields_are_masked():
    event = redact_secrets(
        None,
        "info",
        {"event": "startup", "operator_private_key": "0x" + "11" * 32, "Authorization": "Convex k"},
    )

    assert event["operator_private_key"] == "***"
    assert event["Authorization"] == "***"
    assert event["event"] == "startup"


def test_api_key_in_url_is_masked():
    event = redact_secrets(
        None,
        "warning",
        {"event": "bundler failed: https://api.pimlico.io/v2/84532/rpc?apikey=pim_secret&x=1"},
    )

    assert "pim_secret" not in event["event"]
    assert event["event"].endswith("apikey=***&x=1")


def test_chain_id_is_added_once():
    assert add_chain_id(None, "info", {"event": "x", "chain_id": 1})["chain_id"] == 1
    assert "chain_id" in add_chain_id(None, "info", {"event": "x"})


def test_request_context_binds_project_and_wallet():
    request = Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/projects/p1/wallets/0x" + "AB" * 20,
            "headers": [(b"x-request-id", b"abc")],
            "query_string": b"",
        }
    )

    assert request_context(request) == {
        "request_id": "abc",
        "project_id": "p1",
        "wallet": "0x" + "ab" * 20,
    }
