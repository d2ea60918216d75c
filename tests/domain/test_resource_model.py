from __future__ import annotations

import pytest

from terracli.domain.errors import ValidationError
from terracli.domain.resource import (
    CloningPolicy,
    Resource,
    ResourceType,
    StewardshipType,
    env_var_name,
    is_valid_resource_name,
    resolve,
)

from _fakes import make_resource


@pytest.mark.parametrize(
    ("resource_type", "expected"),
    [
        (ResourceType.GCS_BUCKET, "gs://shared-bucket"),
        (ResourceType.GCS_OBJECT, "gs://shared-bucket/data/file.csv"),
        (ResourceType.BQ_DATASET, "source-project.cohort"),
        (ResourceType.BQ_TABLE, "source-project.cohort.samples"),
        (ResourceType.AI_NOTEBOOK, "projects/source-project/locations/us-central1-a/instances/nb1"),
        (ResourceType.GIT_REPO, "https://github.com/example/repo.git"),
    ],
)
def test_resolve_formats(resource_type: ResourceType, expected: str) -> None:
    stewardship = StewardshipType.CONTROLLED if resource_type is ResourceType.AI_NOTEBOOK else StewardshipType.REFERENCED
    assert resolve(make_resource("r", resource_type, stewardship)) == expected


def test_resolve_missing_attribute_is_validation_error() -> None:
    resource = make_resource("bucket").evolve(attributes={})
    with pytest.raises(ValidationError):
        resource.resolve()


def test_env_var_name_uppercases_and_replaces() -> None:
    assert env_var_name("my_bucket") == "TERRA_MY_BUCKET"
    assert env_var_name("data-set.v2") == "TERRA_DATA_SET_V2"


def test_resource_name_charset() -> None:
    assert is_valid_resource_name("Bucket_01")
    assert not is_valid_resource_name("bad-name")
    assert not is_valid_resource_name("")


def test_validate_reports_missing_attributes() -> None:
    resource = make_resource("tbl", ResourceType.BQ_TABLE).evolve(attributes={"project_id": "p"})
    with pytest.raises(ValidationError) as excinfo:
        resource.validate()
    assert "dataset_id" in str(excinfo.value)
    assert "table_id" in str(excinfo.value)


def test_from_dict_defaults_cloning_from_stewardship() -> None:
    resource = Resource.from_dict(
        {
            "id": "1",
            "name": "ds",
            "resource_type": "BQ_DATASET",
            "stewardship": "CONTROLLED",
            "attributes": {"project_id": "p", "dataset_id": "d"},
        }
    )
    assert resource.cloning is CloningPolicy.COPY_RESOURCE
    assert Resource.from_dict(resource.to_dict()) == resource
