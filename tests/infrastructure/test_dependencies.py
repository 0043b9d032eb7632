"""Tests for the service container."""

import pytest

from evidence_verifier.domain.exceptions import CaseNotFoundError, VerificationInputError
from evidence_verifier.infrastructure.config import VerificationSettings
from evidence_verifier.infrastructure import dependencies
from evidence_verifier.infrastructure.dependencies import (
    CLAIMS_FILENAME,
    ServiceContainer,
    get_service_container,
)

from conftest import FakeOracle

RATE = "The unemployment rate rose to 4.1% in June."


class ConfiguredOracle(FakeOracle):
    """Fake oracle accepting the model settings the container passes."""

    def __init__(self, model=None, timeout=None):
        super().__init__()
        self.model = model
        self.timeout = timeout


class FailingOracle(ConfiguredOracle):
    """Oracle whose initialization always fails."""

    async def initialize(self) -> None:
        raise ConnectionError("unreachable")


def container_with(provider=None, **settings) -> ServiceContainer:
    container = ServiceContainer(VerificationSettings(**settings))
    if provider is not None:
        container.oracle_factory.register_provider(settings["oracle_provider"], provider)
    return container


@pytest.mark.asyncio
async def test_get_case_builds_once_per_directory(case):
    case.add_source("S001", RATE)
    container = container_with()

    first = await container.get_case(str(case.root))
    second = await container.get_case(str(case.root / "evidence" / ".."))

    assert first is second
    assert first.evidence_store.case_dir == case.root.resolve()
    assert first.record_store.path.parent == case.root.resolve()
    assert not first.oracle.enabled


@pytest.mark.asyncio
async def test_unknown_case_directory(tmp_path):
    with pytest.raises(CaseNotFoundError):
        await container_with().get_case(str(tmp_path / "missing"))


@pytest.mark.asyncio
async def test_case_loads_persisted_claims(case):
    case.add_source("S001", RATE)
    container = container_with()
    services = await container.get_case(str(case.root))
    await services.extractor.process_source("S001")
    await container.shutdown()

    reloaded = await container.get_case(str(case.root))

    assert reloaded is not services
    assert (case.root / CLAIMS_FILENAME).exists()
    assert [claim.text for claim in reloaded.registry.all_claims()] == [RATE]


@pytest.mark.asyncio
async def test_claims_registered_by_another_process_are_picked_up(case):
    case.add_source("S001", RATE)
    server = container_with()
    before = await server.get_case(str(case.root))
    assert before.registry.all_claims() == []

    other = await container_with().get_case(str(case.root))
    await other.extractor.process_source("S001")
    after = await server.get_case(str(case.root))

    assert after is not before
    assert [claim.text for claim in after.registry.all_claims()] == [RATE]
    assert await server.get_case(str(case.root)) is after


@pytest.mark.asyncio
async def test_case_cache_is_bounded(tmp_path, monkeypatch):
    monkeypatch.setattr(dependencies, "MAX_CACHED_CASES", 2)
    container = container_with()
    for name in ("a", "b", "c"):
        (tmp_path / name).mkdir()

    first = await container.get_case(str(tmp_path / "a"))
    await container.get_case(str(tmp_path / "b"))
    await container.get_case(str(tmp_path / "c"))

    assert await container.get_case(str(tmp_path / "a")) is not first


@pytest.mark.asyncio
async def test_malformed_claim_registry_is_an_input_error(case):
    case.add_source("S001", RATE)
    (case.root / CLAIMS_FILENAME).write_text("{not json", encoding="utf-8")

    with pytest.raises(VerificationInputError):
        await container_with().get_case(str(case.root))


@pytest.mark.asyncio
async def test_pipeline_for_overrides_stop_on_fail(case):
    case.add_source("S001", RATE)
    container = container_with(max_workers=2)
    services = await container.get_case(str(case.root))

    assert container.pipeline_for(services) is services.pipeline
    assert container.pipeline_for(services, True) is services.pipeline
    relaxed = container.pipeline_for(services, False)
    assert relaxed is not services.pipeline
    assert not relaxed.config.stop_on_fail
    assert relaxed.config.max_workers == 2


@pytest.mark.asyncio
async def test_oracle_disabled_by_default():
    assert await container_with().get_oracle() is None


@pytest.mark.asyncio
async def test_oracle_is_created_once(case):
    container = container_with(
        ConfiguredOracle, oracle_enabled=True, oracle_provider="fake", oracle_model="gpt-4o", oracle_timeout=5.0
    )

    oracle = await container.get_oracle()

    assert isinstance(oracle, ConfiguredOracle)
    assert (oracle.model, oracle.timeout) == ("gpt-4o", 5.0)
    assert await container.get_oracle() is oracle
    case.add_source("S001", RATE)
    services = await container.get_case(str(case.root))
    assert services.oracle.enabled
    assert services.oracle.provider_name == "Fake"


@pytest.mark.asyncio
async def test_unreachable_oracle_degrades_to_none():
    container = container_with(FailingOracle, oracle_enabled=True, oracle_provider="failing")

    assert await container.get_oracle() is None
    assert container.oracle_factory.get_provider("failing") is None


def test_get_service_container_is_shared():
    assert get_service_container() is get_service_container()
