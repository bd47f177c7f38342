from __future__ import annotations

import pytest
import respx

from matter_opening.api.schemas import MatterOpeningPayload
from matter_opening.core.config import Settings
from matter_opening.core.models import MatterOpeningRequest, Operator
from tests.helpers import ASANA_PROFILE, BASE_URL, install_routes, sample_payload


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=BASE_URL,
        http_timeout=5.0,
        step_timeout=5.0,
        run_deadline=30.0,
        report_delay=0.01,
        report_recipient="dev-reports@example.com",
        report_sender="automations@example.com",
    )


@pytest.fixture
def matter_request() -> MatterOpeningRequest:
    return MatterOpeningPayload(**sample_payload()).to_request()


@pytest.fixture
def operator() -> Operator:
    return Operator(initials="AB", profile=dict(ASANA_PROFILE))


@pytest.fixture
def provider_api():
    with respx.mock(assert_all_called=False) as router:
        yield install_routes(router)
