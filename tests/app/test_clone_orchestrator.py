from __future__ import annotations

import pytest

from terracli.app.clone import CloneOrchestrator
from terracli.app.resources import ResourceRegistry
from terracli.domain.clone import CloneResult
from terracli.domain.errors import RemoteUnavailableError, SystemInternalError
from terracli.domain.resource import CloningPolicy, ResourceType, StewardshipType

from _fakes import FakeAccessChecker, FakeWorkspaceService, make_resource, make_workspace


@pytest.fixture()
def service() -> FakeWorkspaceService:
    return FakeWorkspaceService()


def _orchestrator(service: FakeWorkspaceService) -> CloneOrchestrator:
    return CloneOrchestrator(service, ResourceRegistry(service, FakeAccessChecker()))


def test_copy_resource_nothing_and_reference(service) -> None:
    source = service.add_workspace(
        make_workspace(),
        [
            make_resource("A", stewardship=StewardshipType.CONTROLLED, cloning=CloningPolicy.COPY_RESOURCE),
            make_resource("B", cloning=CloningPolicy.COPY_NOTHING),
            make_resource("C", cloning=CloningPolicy.COPY_REFERENCE),
        ],
    )
    cloned = _orchestrator(service).duplicate(source, "dest-ws")

    outcomes = {outcome.source.name: outcome for outcome in cloned.outcomes}
    assert len(cloned.outcomes) == 3
    assert outcomes["A"].result is CloneResult.SUCCEEDED
    assert outcomes["A"].destination is not None
    assert outcomes["A"].destination.is_controlled
    assert outcomes["B"].result is CloneResult.SKIPPED
    assert outcomes["B"].destination is None
    assert outcomes["C"].result is CloneResult.SUCCEEDED
    assert outcomes["C"].destination.stewardship is StewardshipType.REFERENCED
    assert outcomes["C"].destination.resolve() == outcomes["C"].source.resolve()
    destination_names = {r.name for r in service.resources[cloned.destination_workspace.id]}
    assert destination_names == {"A", "C"}


def test_copied_backing_object_gets_new_identity(service) -> None:
    source = service.add_workspace(
        make_workspace(),
        [make_resource("ds", ResourceType.BQ_DATASET, StewardshipType.CONTROLLED, CloningPolicy.COPY_RESOURCE)],
    )
    cloned = _orchestrator(service).duplicate(source, "dest-ws")
    destination = cloned.outcomes[0].destination
    assert destination.attributes["project_id"] == cloned.destination_workspace.platform_project_id
    assert destination.attributes["dataset_id"] == "cohort"


def test_reference_policy_clones_as_reference(service) -> None:
    source = service.add_workspace(make_workspace(), [make_resource("R", cloning=CloningPolicy.REFERENCE)])
    outcome = _orchestrator(service).duplicate(source, "dest-ws").outcomes[0]
    assert outcome.result is CloneResult.SUCCEEDED
    assert outcome.destination.stewardship is StewardshipType.REFERENCED
    assert outcome.destination.cloning is CloningPolicy.REFERENCE


def test_one_failure_does_not_stop_the_rest(service) -> None:
    source = service.add_workspace(
        make_workspace(),
        [
            make_resource("first"),
            make_resource("broken"),
            make_resource("last"),
        ],
    )
    service.failures["broken"] = RemoteUnavailableError("workspace service unavailable")
    cloned = _orchestrator(service).duplicate(source, "dest-ws")
    results = {o.source.name: o.result for o in cloned.outcomes}
    assert results == {"first": CloneResult.SUCCEEDED, "broken": CloneResult.FAILED, "last": CloneResult.SUCCEEDED}
    failed = next(o for o in cloned.outcomes if o.result is CloneResult.FAILED)
    assert failed.destination is None
    assert "unavailable" in failed.message


def test_copy_resource_of_referenced_source_fails(service) -> None:
    source = service.add_workspace(make_workspace(), [make_resource("ref", cloning=CloningPolicy.COPY_RESOURCE)])
    outcome = _orchestrator(service).duplicate(source, "dest-ws").outcomes[0]
    assert outcome.result is CloneResult.FAILED


def test_workspace_creation_failure_is_fatal(service) -> None:
    source = service.add_workspace(make_workspace(), [make_resource("a")])
    service.fail_create_workspace = SystemInternalError("cannot create")
    with pytest.raises(SystemInternalError):
        _orchestrator(service).duplicate(source, "dest-ws")
    assert len(service.workspaces) == 1


def test_duplicate_carries_metadata(service) -> None:
    source = service.add_workspace(make_workspace())
    cloned = _orchestrator(service).duplicate(source, "dest-ws", description="copy")
    assert cloned.destination_workspace.name == source.name
    assert cloned.destination_workspace.description == "copy"
    assert cloned.outcomes == []
    assert cloned.to_dict()["resources"] == []
