import json
from datetime import date
from pathlib import Path

import pytest

from config import Config
from multibagger.domain.errors import InvalidSectorError
from multibagger.infrastructure.llm.judge import QualitativeJudge
from multibagger.workflows.batch import BatchRunner
from multibagger.workflows.graph import ScoringWorkflow

from factories import fraud_dataset, growing_quarterly_dataset, make_bundle

AS_OF = date(2024, 11, 15)


class ScriptedClient:
    def __init__(self, reply):
        self.reply = reply
        self.calls = 0

    def generate(self, messages, *, temperature=0.2):
        self.calls += 1
        return self.reply


def _workflow(client=None):
    return ScoringWorkflow(Config(), judge=QualitativeJudge(client))


def test_describe_stages_lists_pipeline_in_order():
    stages = _workflow().describe_stages()
    assert [line.split(":")[0] for line in stages] == [
        "intake", "metrics", "risk", "pillars", "composite", "judgment", "report",
    ]


def test_healthy_subject_produces_bounded_report():
    bundle = make_bundle(growing_quarterly_dataset(), tam_penetration="1-5%", revenue_type="Recurring")
    result = _workflow().run(bundle, AS_OF)
    report = result["report"]

    assert not report.disqualified
    assert 0.0 <= report.final_score <= 100.0
    assert [p.name for p in report.composite.pillars] == [
        "Growth", "Quality/Moat", "Alignment", "Valuation", "Catalysts",
    ]
    assert report.verdict_input.error == "judgment provider not configured"
    assert report.raw_score == pytest.approx(report.quant_score - 2.0)
    assert report.data_quality.short_interest_source == "unavailable"
    assert result["errors"] == []
    assert any(line.startswith("IntakeAgent ->") for line in result["logs"])

    payload = report.to_dict()
    assert payload["risk"]["cash_runway_quarters"] == "infinite"
    json.dumps(payload)


def test_scoring_is_idempotent():
    workflow = _workflow()
    bundle = make_bundle(growing_quarterly_dataset())
    first = workflow.score(bundle, AS_OF).to_dict()
    second = workflow.score(bundle, AS_OF).to_dict()
    assert first == second


def test_disqualified_subject_ends_at_zero_without_calling_judge():
    client = ScriptedClient('{"aiStatus": "STRONG_PASS", "aiConviction": 100}')
    report = _workflow(client).score(make_bundle(fraud_dataset()), date(2025, 2, 1))

    assert report.disqualified
    assert report.final_score == 0.0
    assert report.tier == "Disqualified"
    assert report.verdict == "Disqualified"
    assert report.position_size == "0% (Disqualified)"
    assert client.calls == 0


def test_judgment_boost_is_bounded():
    client = ScriptedClient('{"aiStatus": "STRONG_PASS", "aiTier": "Tier 1", "aiConviction": 100}')
    report = _workflow(client).score(make_bundle(growing_quarterly_dataset()), AS_OF)
    assert client.calls == 1
    assert report.raw_score - report.quant_score == pytest.approx(5.0)


def test_stale_filings_are_reported_as_data_quality_warnings():
    report = _workflow().score(make_bundle(growing_quarterly_dataset()), date(2025, 12, 31))
    assert any("older than" in note for note in report.data_quality.warnings)


def test_invalid_sector_tag_is_fatal():
    with pytest.raises(InvalidSectorError):
        _workflow().run(make_bundle(growing_quarterly_dataset(), sector_tag="Crypto"), AS_OF)


def test_batch_ranks_reports_and_records_failures():
    bundles = {
        "grow.json": make_bundle(growing_quarterly_dataset()),
        "fraud.json": make_bundle(fraud_dataset()),
        "bad.json": make_bundle(growing_quarterly_dataset(ticker="BAD"), sector_tag="Crypto"),
    }
    runner = BatchRunner(_workflow(), lambda path: bundles[Path(path).name], max_concurrency=2)
    result = runner.run([Path(name) for name in bundles], AS_OF)

    assert [report.ticker for report in result.reports] == ["GROW", "FRAUD"]
    assert list(result.failures) == ["bad.json"]


def test_batch_collects_every_submission_of_a_repeated_source():
    runner = BatchRunner(_workflow(), lambda path: make_bundle(growing_quarterly_dataset()), max_concurrency=2)
    result = runner.run([Path("grow.json"), Path("grow.json")], AS_OF)

    assert [report.ticker for report in result.reports] == ["GROW", "GROW"]
    assert result.failures == {}
