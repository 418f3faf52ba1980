from __future__ import annotations

import os

import pytest
import requests_mock as requests_mock_lib


os.environ.setdefault("WEATHERAPP_LOG_LEVEL", "DEBUG")
os.environ.setdefault("WEATHERAPP_HTTP_TIMEOUT", "2")


@pytest.fixture()
def requests_mock():
    with requests_mock_lib.Mocker() as mocker:
        yield mocker
