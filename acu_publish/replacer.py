"""Map resolved tags onto customization project names."""

from typing import Iterable, List, Mapping, Sequence

from .models import FetchResult, Replacement, ReplacementResult


def replace_names_with_latest_tags(
    results: Iterable[FetchResult],
    target_names: Sequence[str],
    repo_mapping: Mapping[str, str],
) -> ReplacementResult:
    """
    Qualify each enabled project name with its repository's latest tag.

    `USSFence` with latest tag `v2024.03.07` becomes `USSFence[v2024.03.07]`.
    Failed lookups and repositories without a mapped project are skipped. Every
    occurrence of a name in `target_names` is replaced; the input is left untouched.

    Args:
        results: Tag lookups, in fetch order
        target_names: Publish names of the enabled projects
        repo_mapping: Repository (`owner/repo`) to publish name

    Returns:
        ReplacementResult: replacement records, the updated copy of the
        names and the original names
    """
    original = list(target_names)
    updated = list(target_names)
    replacements: List[Replacement] = []

    for result in results:
        if not result.succeeded:
            continue
        target_name = repo_mapping.get(result.repository)
        if not target_name:
            continue

        for i, name in enumerate(original):
            if name != target_name:
                continue
            new_version = f"{name}[{result.latest_tag}]"
            updated[i] = new_version
            replacements.append(
                Replacement(
                    repository=result.repository,
                    target_name=target_name,
                    original_name=name,
                    latest_tag=result.latest_tag,
                    new_version=new_version,
                    index=i,
                )
            )

    return ReplacementResult(
        replacements=replacements,
        updated_names=updated,
        original_names=original,
    )


def build_publish_list(published_names: Iterable[str], replacements: Sequence[Replacement]) -> List[str]:
    """Drop stale published builds of replaced projects and append the new ones."""
    prefixes = tuple(r.target_name for r in replacements)
    keep = [name for name in published_names if not (prefixes and name.startswith(prefixes))]
    keep.extend(r.new_version for r in replacements)
    return keep
