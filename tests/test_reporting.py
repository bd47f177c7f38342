import asyncio
import json

import httpx

from matter_opening.adapters.http.client import ProvisioningClient
from matter_opening.pipeline.reporting import DispatchResult, FailureReporter, build_report
from tests.helpers import BASE_URL, failed_outcome


def _with_reporter(settings, scenario):
    async def _run():
        async with ProvisioningClient(BASE_URL) as client:
            reporter = FailureReporter(client, settings)
            result = await scenario(reporter)
            await reporter.wait()
            return reporter, result

    return asyncio.run(_run())


def test_auto_report_waits_for_delay(provider_api, settings, matter_request, operator):
    async def scenario(reporter):
        result = reporter.report_failure(failed_outcome(), matter_request, operator)
        assert not provider_api.routes["notify"].called
        assert reporter.status == "scheduled"
        return result

    reporter, result = _with_reporter(settings, scenario)
    assert result is DispatchResult.SCHEDULED
    assert reporter.status == "sent"
    assert provider_api.routes["notify"].call_count == 1
    body = json.loads(provider_api.routes["notify"].calls.last.request.content)
    assert body["to"] == "dev-reports@example.com"
    assert body["from_email"] == "automations@example.com"
    assert body["subject"] == "Matter Opening Issue (Auto) - AB"


def test_same_failure_is_reported_once(provider_api, settings, matter_request, operator):
    async def scenario(reporter):
        first = reporter.report_failure(failed_outcome(), matter_request, operator)
        await reporter.wait()
        second = reporter.report_failure(failed_outcome(), matter_request, operator)
        return first, second

    _, (first, second) = _with_reporter(settings, scenario)
    assert first is DispatchResult.SCHEDULED
    assert second is DispatchResult.SKIPPED
    assert provider_api.routes["notify"].call_count == 1


def test_new_failure_is_reported_again(provider_api, settings, matter_request, operator):
    async def scenario(reporter):
        reporter.report_failure(failed_outcome(message="first problem"), matter_request, operator)
        await reporter.wait()
        return reporter.report_failure(failed_outcome(message="second problem"), matter_request, operator)

    reporter, result = _with_reporter(settings, scenario)
    assert result is DispatchResult.SCHEDULED
    assert provider_api.routes["notify"].call_count == 2
    assert [report.issue for report in reporter.sent] == [
        "Failed at: Clio Contact Created/Updated - first problem",
        "Failed at: Clio Contact Created/Updated - second problem",
    ]


def test_manual_resend_after_delivery_is_noop(provider_api, settings, matter_request, operator):
    async def scenario(reporter):
        reporter.report_failure(failed_outcome(), matter_request, operator)
        await reporter.wait()
        return await reporter.send_manual()

    _, result = _with_reporter(settings, scenario)
    assert result is DispatchResult.ALREADY_SENT
    assert provider_api.routes["notify"].call_count == 1


def test_concurrent_manual_sends_deliver_once(provider_api, settings, matter_request, operator):
    outcome = failed_outcome()

    async def scenario(reporter):
        return await asyncio.gather(
            reporter.send_manual(outcome, matter_request, operator),
            reporter.send_manual(outcome, matter_request, operator),
        )

    _, results = _with_reporter(settings, scenario)
    assert results[0] is DispatchResult.SENT
    assert results[1] in {DispatchResult.SENDING, DispatchResult.ALREADY_SENT}
    assert provider_api.routes["notify"].call_count == 1


def test_manual_send_replaces_pending_auto_report(provider_api, settings, matter_request, operator):
    async def scenario(reporter):
        reporter.report_failure(failed_outcome(), matter_request, operator)
        return await reporter.send_manual()

    reporter, result = _with_reporter(settings, scenario)
    assert result is DispatchResult.SENT
    assert provider_api.routes["notify"].call_count == 1
    assert reporter.sent[0].auto_sent is False


def test_failed_delivery_can_be_retried(provider_api, settings, matter_request, operator):
    provider_api.routes["notify"].mock(return_value=httpx.Response(503, json={"error": "mail relay down"}))

    async def scenario(reporter):
        reporter.report_failure(failed_outcome(), matter_request, operator)
        await reporter.wait()
        assert reporter.status == "idle"
        provider_api.routes["notify"].mock(return_value=httpx.Response(202, json={}))
        return await reporter.send_manual()

    reporter, result = _with_reporter(settings, scenario)
    assert result is DispatchResult.SENT
    assert reporter.delivered
    assert provider_api.routes["notify"].call_count == 2


class _GatedMailer:
    def __init__(self):
        self.gate = asyncio.Event()
        self.subjects = []

    async def send_email(self, to, subject, html_body, *, from_email=None):
        await self.gate.wait()
        self.subjects.append(subject)


def test_new_failure_during_manual_send_is_still_reported(settings, matter_request, operator):
    async def _run():
        mailer = _GatedMailer()
        reporter = FailureReporter(mailer, settings)
        manual = asyncio.create_task(
            reporter.send_manual(failed_outcome(message="first problem"), matter_request, operator)
        )
        await asyncio.sleep(0)
        assert reporter.status == "sending"
        scheduled = reporter.report_failure(failed_outcome(message="second problem"), matter_request, operator)
        await asyncio.sleep(settings.report_delay * 5)
        mailer.gate.set()
        first = await manual
        await reporter.wait()
        return reporter, mailer, scheduled, first

    reporter, mailer, scheduled, first = asyncio.run(_run())
    assert scheduled is DispatchResult.SCHEDULED
    assert first is DispatchResult.SENT
    assert [report.issue for report in reporter.sent] == [
        "Failed at: Clio Contact Created/Updated - first problem",
        "Failed at: Clio Contact Created/Updated - second problem",
    ]
    assert mailer.subjects == ["Matter Opening Issue (Manual) - AB", "Matter Opening Issue (Auto) - AB"]
    assert reporter.status == "sent"


def test_report_carries_run_diagnostics(matter_request, operator):
    report = build_report(failed_outcome(), matter_request, operator, auto=True, tz_name="Europe/London")
    data = report.to_dict()

    assert data["failingStep"] == "Clio Contact Created/Updated"
    assert data["kind"] == "external_rejection"
    assert data["instruction"] == "HLX-28851-10001"
    assert data["formSummary"]["clientName"] == "Jane Doe"
    assert [step["status"] for step in data["processingSteps"]] == ["success", "error", "pending"]
    assert "Auto-Report" in report.render_html()
    assert "&quot;failingStep&quot;" in report.render_html()


def test_report_without_failure_is_feedback(matter_request, operator):
    report = build_report(None, matter_request, operator, auto=False)
    assert report.subject() == "Matter Opening Feedback (Manual) - AB"
    assert report.issue == "General diagnostic report"
