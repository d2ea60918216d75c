from __future__ import annotations

import re

from hypothesis import given, settings
from hypothesis import strategies as st

from terracli.app.clone import CloneOrchestrator
from terracli.app.environment import CommandEnvironmentBuilder
from terracli.app.resources import ResourceRegistry
from terracli.domain.clone import CloneResult
from terracli.domain.errors import EnvironmentCollisionError
from terracli.domain.identity import Identity
from terracli.domain.resource import (
    REQUIRED_ATTRIBUTES,
    CloningPolicy,
    Resource,
    ResourceType,
    StewardshipType,
    env_var_name,
)

from _fakes import FakeAccessChecker, FakeWorkspaceService, make_workspace

_names = st.text(alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_", min_size=1, max_size=20)
_values = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-", min_size=1, max_size=16)


@st.composite
def resources(draw: st.DrawFn, stewardship: StewardshipType | None = None, cloning: CloningPolicy | None = None) -> Resource:
    resource_type = draw(st.sampled_from(list(ResourceType)))
    attributes = {key: draw(_values) for key in REQUIRED_ATTRIBUTES[resource_type]}
    return Resource(
        id=draw(st.uuids()).hex,
        name=draw(_names),
        resource_type=resource_type,
        stewardship=stewardship or draw(st.sampled_from(list(StewardshipType))),
        cloning=cloning or draw(st.sampled_from(list(CloningPolicy))),
        attributes=attributes,
    )


@given(resource=resources())
def test_resolve_depends_only_on_fields(resource: Resource) -> None:
    clone = Resource.from_dict(resource.to_dict())
    assert clone.resolve() == resource.resolve()
    # identity fields do not leak into the identifier
    assert resource.evolve(id="other", description="d").resolve() == resource.resolve()


@given(name=_names)
def test_env_key_is_shell_safe(name: str) -> None:
    key = env_var_name(name)
    assert key.startswith("TERRA_")
    assert re.fullmatch(r"[A-Z0-9_]+", key)
    assert key == env_var_name(name.upper())


def _unique_by_name(items: list[Resource]) -> list[Resource]:
    seen: dict[str, Resource] = {}
    for item in items:
        seen.setdefault(item.name.upper(), item)
    return list(seen.values())


@settings(max_examples=30)
@given(items=st.lists(resources(cloning=CloningPolicy.COPY_NOTHING), max_size=6))
def test_copy_nothing_is_always_skipped(items: list[Resource]) -> None:
    service = FakeWorkspaceService()
    source = service.add_workspace(make_workspace(), _unique_by_name(items))
    cloned = CloneOrchestrator(service, ResourceRegistry(service, FakeAccessChecker())).duplicate(source, "dest-ws")
    assert all(o.result is CloneResult.SKIPPED and o.destination is None for o in cloned.outcomes)
    assert len(cloned.outcomes) == len(service.resources[source.id])


@settings(max_examples=30)
@given(
    items=st.lists(
        resources(stewardship=StewardshipType.REFERENCED).filter(lambda r: r.resource_type is not ResourceType.AI_NOTEBOOK),
        max_size=6,
    ),
    policy=st.sampled_from([CloningPolicy.COPY_REFERENCE, CloningPolicy.REFERENCE]),
)
def test_reference_policies_yield_referenced_destinations(items: list[Resource], policy: CloningPolicy) -> None:
    service = FakeWorkspaceService()
    source = service.add_workspace(
        make_workspace(), [item.evolve(cloning=policy) for item in _unique_by_name(items)]
    )
    cloned = CloneOrchestrator(service, ResourceRegistry(service, FakeAccessChecker())).duplicate(source, "dest-ws")
    for outcome in cloned.outcomes:
        assert outcome.result is CloneResult.SUCCEEDED
        assert outcome.destination.stewardship is StewardshipType.REFERENCED


class _NoCredentials:
    def impersonated_credential_file(self, identity, workspace):
        raise AssertionError("workspaces without a project need no credential file")


@settings(max_examples=50)
@given(items=st.lists(resources(), min_size=1, max_size=5), pick=st.integers(min_value=0), collide=st.booleans())
def test_environment_collision_iff_caller_uses_resource_key(items: list[Resource], pick: int, collide: bool) -> None:
    items = _unique_by_name(items)
    service = FakeWorkspaceService()
    workspace = service.add_workspace(make_workspace(project=None), items)
    builder = CommandEnvironmentBuilder(ResourceRegistry(service, FakeAccessChecker()), _NoCredentials())
    identity = Identity(local_key="k", subject_id="s", email="e@example.org")
    key = items[pick % len(items)].env_var
    extra = {key: "caller"} if collide else {"UNRELATED_VAR": "caller"}
    if collide:
        try:
            builder.build(workspace, identity, extra)
        except EnvironmentCollisionError as exc:
            assert key in exc.keys
        else:
            raise AssertionError("expected a collision")
    else:
        env = builder.build(workspace, identity, extra)
        assert env[key] == items[pick % len(items)].resolve()
