"""
Assembly and serialization of the package index.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from vpm_repository.domain.models import PackageDescriptor, PackageIndex, PackageVersions, Source
from vpm_repository.domain.semver import SemVer, version_sort_key

logger = logging.getLogger(__name__)


def group_by_name(descriptors: Iterable[PackageDescriptor]) -> Dict[str, List[PackageDescriptor]]:
    """Group descriptors by exact package name, in order first encountered."""
    groups: Dict[str, List[PackageDescriptor]] = {}
    for descriptor in descriptors:
        groups.setdefault(descriptor.name, []).append(descriptor)
    return groups


class IndexAssembler:
    """Builds the VPM listing for a source from ingested descriptors."""

    def __init__(self, source: Source):
        self.source = source

    def assemble(self, descriptors: Iterable[PackageDescriptor]) -> PackageIndex:
        index = PackageIndex(
            name=self.source.name,
            author=self.source.author,
            url=self.source.url,
            id=self.source.id,
        )

        for name, group in group_by_name(descriptors).items():
            # Arrival order depends on fetch timing; settle duplicates by archive url.
            by_url = sorted(group, key=lambda d: d.url or "")
            ordered = sorted(by_url, key=lambda d: version_sort_key(d.version), reverse=True)
            versions: Dict[str, PackageDescriptor] = {}
            for descriptor in ordered:
                if descriptor.version in versions:
                    logger.warning(
                        f"Duplicate {name} {descriptor.version} from {descriptor.url}, "
                        f"keeping {versions[descriptor.version].url}"
                    )
                    continue
                if SemVer.parse(descriptor.version) is None:
                    logger.warning(f"{name} has unparseable version {descriptor.version!r}, sorting it last")
                # The source author replaces whatever the package declared.
                versions[descriptor.version] = descriptor.model_copy(update={"author": self.source.author})
            index.packages[name] = PackageVersions(versions=versions)

        return index


def render_index(index: PackageIndex, indent: Optional[int] = None) -> bytes:
    """Serialize an index to JSON, omitting every unset field."""
    return index.model_dump_json(by_alias=True, exclude_none=True, indent=indent).encode("utf-8")
