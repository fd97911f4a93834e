from __future__ import annotations

from typing import Any, Dict, List

from runattest.intoto import (
    SLSA_PROVENANCE_V1,
    BuildDefinition,
    BuildMetadata,
    Builder,
    ProvenanceV1,
    RunDetails,
    descriptors,
    format_timestamp,
    make_statement,
)
from runattest.objects import RunRecord


def build_metadata(run: RunRecord) -> BuildMetadata:
    return BuildMetadata(
        invocation_id=run.get_uid() or None,
        started_on=format_timestamp(run.get_start_time()),
        finished_on=format_timestamp(run.get_completion_time()),
    )


def slsa1_statement(
    run: RunRecord,
    *,
    statement_type: str,
    builder_id: str,
    subjects: List[Dict[str, Any]],
    build_definition: Dict[str, Any],
    byproducts: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """Assemble a SLSA v1.0 provenance statement from already-extracted parts."""
    predicate = ProvenanceV1(
        build_definition=BuildDefinition(
            build_type=build_definition["buildType"],
            external_parameters=build_definition["externalParameters"],
            internal_parameters=build_definition["internalParameters"],
            resolved_dependencies=descriptors(build_definition["resolvedDependencies"]),
        ),
        run_details=RunDetails(
            builder=Builder(id=builder_id),
            metadata=build_metadata(run),
            byproducts=descriptors(byproducts),
        ),
    )
    return make_statement(
        statement_type=statement_type,
        predicate_type=SLSA_PROVENANCE_V1,
        subjects=subjects,
        predicate=predicate.to_dict(),
    )
