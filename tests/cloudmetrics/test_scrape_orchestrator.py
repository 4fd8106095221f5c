"""Tests for scrape_all: dispatch, failure isolation and timeouts."""

import pytest

from apps.cloudmetrics.models.metric_models import ScrapeContext
from apps.cloudmetrics.services.scrape_orchestrator import scrape_all


@pytest.mark.asyncio
async def test_scrape_all_collects_samples_in_order(
    fake_provider, free_storage_catalog, make_instance, scrape_ctx
):
    provider = fake_provider(values={"a": 1.0, "b": 2.0})
    instances = [make_instance("a"), make_instance("b")]

    samples = await scrape_all("postgres", instances, [provider], free_storage_catalog, scrape_ctx)

    assert [s.value for s in samples] == [1.0, 2.0]
    assert all(s.catalog_metric_name == "free_storage_avg" for s in samples)
    assert [name for name, _ in provider.calls] == ["a", "b"]


@pytest.mark.asyncio
async def test_unsupported_strategy_is_skipped_without_calls(
    fake_provider, free_storage_catalog, make_instance, scrape_ctx
):
    provider = fake_provider(strategies=["aws"])

    samples = await scrape_all(
        "postgres", [make_instance("g", strategy="gcp")], [provider], free_storage_catalog, scrape_ctx
    )

    assert samples == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_failing_instance_does_not_abort_others(
    fake_provider, free_storage_catalog, make_instance, scrape_ctx
):
    provider = fake_provider(values={"j": 7.0}, fail_for=["i"])

    samples = await scrape_all(
        "postgres",
        [make_instance("i"), make_instance("j")],
        [provider],
        free_storage_catalog,
        scrape_ctx,
    )

    assert len(samples) == 1
    assert samples[0].labels["resourceID"] == "j"
    assert samples[0].value == 7.0


@pytest.mark.asyncio
async def test_failing_provider_does_not_block_second_provider(
    fake_provider, free_storage_catalog, make_instance, scrape_ctx
):
    broken = fake_provider(fail_for=["r1"], name="broken")
    healthy = fake_provider(values={"r1": 3.0}, name="healthy")

    samples = await scrape_all(
        "postgres", [make_instance("r1")], [broken, healthy], free_storage_catalog, scrape_ctx
    )

    assert [s.value for s in samples] == [3.0]
    assert len(broken.calls) == 1


@pytest.mark.asyncio
async def test_hung_provider_is_cut_off_by_timeout(
    fake_provider, free_storage_catalog, make_instance
):
    provider = fake_provider(hang_for=["slow"], values={"fast": 5.0})
    ctx = ScrapeContext(pass_id="timeout", timeout_seconds=0.05)

    samples = await scrape_all(
        "postgres",
        [make_instance("slow"), make_instance("fast")],
        [provider],
        free_storage_catalog,
        ctx,
    )

    assert [s.value for s in samples] == [5.0]


@pytest.mark.asyncio
async def test_dispatch_error_skips_only_that_instance(
    fake_provider, free_storage_catalog, make_instance, scrape_ctx
):
    class StrategyCheckFails(fake_provider):
        def supports_strategy(self, strategy):
            if strategy == "broken":
                raise RuntimeError("bad provider")
            return super().supports_strategy(strategy)

    provider = StrategyCheckFails(values={"ok": 2.0})

    samples = await scrape_all(
        "postgres",
        [make_instance("bad", strategy="broken"), make_instance("ok")],
        [provider],
        free_storage_catalog,
        scrape_ctx,
    )

    assert [s.value for s in samples] == [2.0]
    assert [name for name, _ in provider.calls] == ["ok"]


def test_scrape_context_elapsed_counts_from_pass_start():
    ctx = ScrapeContext(pass_id="p", timeout_seconds=1.0, started_at=0.0)

    assert ctx.elapsed() > 0
    assert ScrapeContext(pass_id="p", timeout_seconds=1.0).elapsed() < 5
