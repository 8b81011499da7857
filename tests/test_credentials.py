from unittest.mock import MagicMock, patch

import pytest
import requests

from pgmon_agent.credentials import SecretError, SecretStore, SecretStoreError, parse_db_credentials

SECRET = {
    "Host": "db.internal",
    "Port": "5432",
    "Username": "monitor",
    "Password": "s3cret",
    "Database": "app",
    "SSLMode": "require",
}


def vault_response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


def test_parse_db_credentials():
    creds = parse_db_credentials(SECRET)

    assert creds.connect_kwargs() == {
        "host": "db.internal",
        "port": "5432",
        "user": "monitor",
        "password": "s3cret",
        "dbname": "app",
        "sslmode": "require",
    }
    assert "s3cret" not in repr(creds)


def test_missing_field_is_named():
    data = dict(SECRET)
    del data["SSLMode"]

    with pytest.raises(SecretError, match="key 'SSLMode' not found"):
        parse_db_credentials(data)


def test_non_string_field_is_rejected():
    with pytest.raises(SecretError, match="key 'Port' found but not a string"):
        parse_db_credentials({**SECRET, "Port": 5432})


@patch("pgmon_agent.credentials.requests.get")
def test_read_secret_uses_kv2_path_and_token(mock_get):
    mock_get.return_value = vault_response(payload={"data": {"data": SECRET, "metadata": {"version": 3}}})
    store = SecretStore("http://vault:8200/", "tok", mount="secret")

    creds = store.get_db_credentials("db/app1")

    assert creds.host == "db.internal"
    args, kwargs = mock_get.call_args
    assert args[0] == "http://vault:8200/v1/secret/data/db/app1"
    assert kwargs["headers"] == {"X-Vault-Token": "tok"}


@patch("pgmon_agent.credentials.requests.get")
def test_missing_secret_data(mock_get):
    mock_get.return_value = vault_response(payload={"data": None})

    with pytest.raises(SecretError, match="has no data"):
        SecretStore("http://vault:8200", "tok").read_secret("db/app1")


@patch("pgmon_agent.credentials.requests.get")
def test_vault_error_status(mock_get):
    mock_get.return_value = vault_response(status_code=403, text='{"errors":["permission denied"]}')

    with pytest.raises(SecretStoreError) as excinfo:
        SecretStore("http://vault:8200", "tok").read_secret("db/app1")

    assert excinfo.value.status_code == 403
    assert "permission denied" in excinfo.value.body


@patch("pgmon_agent.credentials.requests.get")
def test_vault_unreachable(mock_get):
    mock_get.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(SecretStoreError, match="refused"):
        SecretStore("http://vault:8200", "tok").read_secret("db/app1")


def test_empty_token_is_rejected():
    with pytest.raises(SecretError, match="token"):
        SecretStore("http://vault:8200", "").read_secret("db/app1")
