"""Engagement model and YAML engagement file loading."""
import re
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from integration_profiler.core.errors import ConfigurationError
from integration_profiler.models.cluster import ClusterSpec, slugify

DEFAULT_CONTACT = "first-last"

_HAS_LETTER = re.compile(r"[a-zA-Z]")


class Engagement(BaseModel):
    """A customer scaffolding session: one organization, one contact, many clusters.

    Example engagement file:

        organization: Acme
        abbreviation: ACM
        contact: Jane Doe
        clusters:
          - name: Prod
            scheduler: slurm
            workers: 5000
            matlab_root: /usr/local/MATLAB/R2024a
            hostname: login.acme.org
    """

    model_config = ConfigDict(extra='forbid')

    organization: str = Field(..., description="Organization name, used as the repository name")
    abbreviation: str = Field("", description="Organization abbreviation stored on the remote project")
    contact: str = Field(DEFAULT_CONTACT, description="Contact name at the organization")
    clusters: List[ClusterSpec] = Field(..., min_length=1)

    @field_validator('organization')
    @classmethod
    def validate_organization(cls, v: str) -> str:
        slug = slugify(v)
        if not slug:
            raise ValueError("Organization name must not be empty")
        return slug

    @field_validator('abbreviation')
    @classmethod
    def validate_abbreviation(cls, v: str) -> str:
        v = v.strip()
        if v and not _HAS_LETTER.search(v):
            raise ValueError(f"Abbreviation '{v}' must include at least 1 letter")
        return v

    @field_validator('contact')
    @classmethod
    def validate_contact(cls, v: str) -> str:
        v = v.strip()
        if not v:
            return DEFAULT_CONTACT
        if not _HAS_LETTER.search(v):
            raise ValueError(f"Contact name '{v}' must include at least 1 letter")
        return slugify(v)

    @model_validator(mode='after')
    def validate_unique_clusters(self) -> 'Engagement':
        """Two clusters with the same slug would overwrite each other."""
        seen = set()
        for cluster in self.clusters:
            key = (cluster.scheduler, cluster.slug)
            if key in seen:
                raise ValueError(
                    f"Cluster '{cluster.slug}' is defined twice for {cluster.scheduler.value}"
                )
            seen.add(key)
        return self

    def organization_path(self, engagements_root: Path) -> Path:
        """Repository directory of this organization."""
        return Path(engagements_root) / self.organization

    def contact_path(self, engagements_root: Path) -> Path:
        return self.organization_path(engagements_root) / self.contact


def load_engagement(path: Path) -> Engagement:
    """Load an engagement description from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, empty or invalid.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Engagement file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Engagement file {path} is not valid YAML: {e}") from e

    if not data:
        raise ConfigurationError(f"Engagement file {path} is empty")

    try:
        return Engagement.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engagement file {path}:\n{e}") from e
