#
# Copyright 2025 EDT&Partners
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

from lti.toolbox import Toolbox
from main import app
from utility.exceptions import ApiError

LAUNCH_URL = "http://testserver/lti/launch"


@pytest.fixture
def client(write_config, monkeypatch):
    monkeypatch.setenv("LTI_CONFIG_FILE", write_config(
        tool={"id": "example", "name": "Example Tool", "authenticate": "launch.php"},
        handlers={"base": "app.php", "launch": "launch.php?view=home"},
    ))
    return TestClient(app)


@pytest.fixture
def consumer(client):
    response = client.post("/lti/reset")
    assert response.status_code == 200
    return response.json()["consumer"]


def _launch(client, sign, params, key, secret):
    signed_params, headers = sign(LAUNCH_URL, params, key, secret)
    return client.post("/lti/launch", data=signed_params, follow_redirects=False)


def test_reset_creates_example_consumer_once(client):
    first = client.post("/lti/reset").json()
    second = client.post("/lti/reset").json()

    assert first["tool_id"] == "example"
    assert first["created"] is True
    assert second["created"] is False
    assert second["consumer"]["consumer_key"] == first["consumer"]["consumer_key"]


def test_list_consumers(client, consumer):
    response = client.get("/lti/consumers")

    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["Example Consumer"]


def test_create_consumer(client):
    response = client.post("/lti/consumers", json={"name": "Canvas Production", "key": "prod-key"})

    assert response.status_code == 201
    assert response.json()["consumer_key"] == "prod-key"
    assert response.json()["name"] == "Canvas Production"
    assert response.json()["secret"]

    duplicate = client.post("/lti/consumers", json={"name": "Canvas Production"})
    assert duplicate.status_code == 409
    assert [c["name"] for c in client.get("/lti/consumers").json()] == ["Canvas Production"]


def test_configuration_xml(client):
    response = client.get("/lti/config.xml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<blti:title>Example Tool</blti:title>" in response.text


def test_launch_redirects_to_handler(client, consumer, sign, launch_params):
    response = _launch(client, sign, launch_params, consumer["consumer_key"], consumer["secret"])

    assert response.status_code == 302
    assert response.headers["location"] == "https://tool.example.com/tool/launch.php?view=home"


def test_rejected_launch_redirects_to_error_handler(client, consumer, sign, launch_params):
    response = _launch(client, sign, launch_params, consumer["consumer_key"], "wrong-secret")

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    query = parse_qs(location.query)
    assert location.path == "/tool/app.php"
    assert query["lti-request"] == ["error"]
    assert "invalid_signature" in query["lti_errormsg"][0]


def test_non_launch_post_is_bad_request(client):
    response = client.post("/lti/launch", data={"foo": "bar"}, follow_redirects=False)

    assert response.status_code == 400


def test_profile_requires_authentication(client):
    response = client.get("/lti/profile")

    assert response.status_code == 401


def test_profile_after_launch(client, consumer, sign, launch_params):
    _launch(client, sign, launch_params, consumer["consumer_key"], consumer["secret"])

    with patch.object(Toolbox, "api_get", return_value={"id": 101, "name": "Ada Lovelace"}) as mock_get:
        response = client.get("/lti/profile")

    assert response.status_code == 200
    assert response.json() == {"id": 101, "name": "Ada Lovelace"}
    mock_get.assert_called_once_with("users/101/profile")


def test_profile_reopens_the_launched_tool(client, consumer, sign, launch_params, monkeypatch):
    _launch(client, sign, launch_params, consumer["consumer_key"], consumer["secret"])
    monkeypatch.setenv("LTI_CONFIG_FILE", "/nonexistent/config.xml")

    with patch.object(Toolbox, "api_get", return_value={"id": 101}):
        response = client.get("/lti/profile")

    assert response.status_code == 200
    assert response.json() == {"id": 101}


def test_profile_surfaces_api_errors(client, consumer, sign, launch_params):
    _launch(client, sign, launch_params, consumer["consumer_key"], consumer["secret"])

    error = ApiError("forbidden", status_code=403, body={"errors": [{"message": "unauthorized"}]})
    with patch.object(Toolbox, "api_get", side_effect=error):
        response = client.get("/lti/profile")

    assert response.status_code == 403
    assert response.json() == {"errors": [{"message": "unauthorized"}]}


def test_configuration_errors_are_reported(client, write_config, monkeypatch):
    monkeypatch.setenv("LTI_CONFIG_FILE", write_config(filename="broken.xml", handlers={}))

    response = client.get("/lti/consumers")

    assert response.status_code == 500
    assert response.json()["reason"] == "missing_handlers"
