"""Entity post-processing: splitting oversized entities and merging small ones."""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Optional

from .models import (
    FINE_MERGE_KINDS,
    KIND_MERGED,
    Entity,
    EntityContext,
    Granularity,
)

logger = logging.getLogger(__name__)


def split_entity(entity: Entity, max_size: Optional[int]) -> List[Entity]:
    """Split an entity whose snippet exceeds max_size into line-aligned chunks.

    Lines are accumulated greedily; a chunk always holds at least one line,
    so a single line longer than max_size becomes a chunk of its own.

    Args:
        entity: Entity to split
        max_size: Maximum snippet length in characters (None disables splitting)

    Returns:
        [entity] unchanged if it fits, otherwise the ordered chunk entities
    """
    snippet = entity.context.snippet
    if not max_size or len(snippet) <= max_size:
        return [entity]

    lines = snippet.split("\n")
    chunks = []
    current: List[str] = []
    current_size = 0
    start_offset = 0

    for i, line in enumerate(lines):
        line_len = len(line) + 1
        if current and current_size + line_len > max_size:
            chunks.append((start_offset, i - 1, "\n".join(current)))
            current = [line]
            current_size = line_len
            start_offset = i
        else:
            current.append(line)
            current_size += line_len

    if current:
        chunks.append((start_offset, len(lines) - 1, "\n".join(current)))

    total = len(chunks)
    result = []
    for i, (start, end, text) in enumerate(chunks, start=1):
        line_from = min(entity.line_to, entity.line_from + start)
        line_to = min(entity.line_to, entity.line_from + end)
        result.append(
            dataclasses.replace(
                entity,
                name=f"{entity.name} [chunk {i}/{total}]",
                signature=f"Chunk {i}/{total} of original {entity.kind}",
                line=max(line_from, min(entity.line, line_to)),
                line_from=line_from,
                line_to=line_to,
                context=dataclasses.replace(entity.context, snippet=text),
                embedding=None,
            )
        )
    logger.debug(f"Split '{entity.name}' ({len(snippet)} chars) into {total} chunks")
    return result


def create_merged_entity(candidates: List[Entity]) -> Entity:
    """Fold consecutive entities into one. A single candidate is returned as is."""
    if len(candidates) == 1:
        return candidates[0]

    first = candidates[0]
    last = candidates[-1]
    kinds = {e.kind for e in candidates}
    kind = first.kind if len(kinds) == 1 else KIND_MERGED

    docstring = next((e.docstring for e in candidates if e.docstring), None)

    return Entity(
        name=f"Merged {kind} [lines {first.line_from}-{last.line_to}]",
        signature="\n".join(e.signature for e in candidates),
        kind=kind,
        docstring=docstring,
        line=first.line,
        line_from=first.line_from,
        line_to=last.line_to,
        context=EntityContext(
            file_path=first.context.file_path,
            file_name=first.context.file_name,
            snippet="\n".join(e.context.snippet for e in candidates),
            module=first.context.module,
            enclosing_type_name=None,
        ),
    )


def _group_by_file(entities: List[Entity]) -> List[List[Entity]]:
    # Files keep their first-seen order; entities are ordered by line inside a file.
    groups: Dict[str, List[Entity]] = {}
    for entity in entities:
        groups.setdefault(entity.context.file_path, []).append(entity)
    return [sorted(group, key=lambda e: e.line_from) for group in groups.values()]


def merge_fine_grained(entities: List[Entity], max_size: Optional[int] = None) -> List[Entity]:
    """Merge consecutive runs of Import, Constant or Variable entities of the same kind.

    A run stops at the first entity of a different kind, or when appending the
    next snippet (plus a newline separator) would exceed max_size.
    """
    if len(entities) < 2:
        return list(entities)

    merged: List[Entity] = []
    for group in _group_by_file(entities):
        i = 0
        while i < len(group):
            current = group[i]
            i += 1
            if current.kind not in FINE_MERGE_KINDS:
                merged.append(current)
                continue

            candidates = [current]
            combined_len = len(current.context.snippet)
            while i < len(group) and group[i].kind == current.kind:
                potential = combined_len + len(group[i].context.snippet) + 1
                if max_size is not None and potential > max_size:
                    break
                combined_len = potential
                candidates.append(group[i])
                i += 1
            merged.append(create_merged_entity(candidates))
    return merged


def merge_aggressively(entities: List[Entity], target_size: Optional[int] = None) -> List[Entity]:
    """Merge any consecutive entities until the next one would exceed target_size.

    Without a target every entity of a file collapses into one merged entity.
    """
    if len(entities) < 2:
        return list(entities)

    merged: List[Entity] = []
    for group in _group_by_file(entities):
        candidates: List[Entity] = []
        combined_len = 0
        for entity in group:
            next_len = len(entity.context.snippet)
            potential = combined_len + next_len + (1 if candidates else 0)
            if candidates and target_size is not None and potential > target_size:
                merged.append(create_merged_entity(candidates))
                candidates = [entity]
                combined_len = next_len
            else:
                candidates.append(entity)
                combined_len = potential
        if candidates:
            merged.append(create_merged_entity(candidates))
    return merged


def post_process_entities(
    entities: List[Entity],
    granularity: Granularity = Granularity.FINE,
    max_snippet_size: Optional[int] = None,
) -> List[Entity]:
    """Apply the merge policy for the requested granularity.

    Args:
        entities: Entities extracted from one or more files (already split)
        granularity: FINE merges same-kind imports/constants/variables only,
            MEDIUM merges anything up to half of max_snippet_size,
            COARSE merges anything up to max_snippet_size
        max_snippet_size: Size bound used by the merge policy

    Returns:
        The merged entity list
    """
    granularity = Granularity.parse(granularity)
    logger.info(f"Post-processing {len(entities)} entities with granularity: {granularity}, max_size: {max_snippet_size}")

    if granularity == Granularity.FINE:
        return merge_fine_grained(entities, max_snippet_size)
    if granularity == Granularity.MEDIUM:
        target = max_snippet_size // 2 if max_snippet_size is not None else None
        return merge_aggressively(entities, target)
    return merge_aggressively(entities, max_snippet_size)
