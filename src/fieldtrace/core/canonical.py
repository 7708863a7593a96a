"""
Canonical JSON serialization for deterministic lineage fingerprints.

Serializes per RFC 8785/JCS (rfc8785 package) so the same pipeline
declaration always produces the same bytes, and therefore the same hash,
regardless of dict ordering or Python version.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from fieldtrace.core.lineage import PipelineLineageGraph

# Version string stored with every published lineage record
CANONICAL_VERSION = "sha256-rfc8785-v1"


def canonical_json(obj: Any) -> str:
    """Serialize JSON-safe data to its RFC 8785 canonical text.

    Keys are sorted and numbers use the ECMAScript shortest form.

    Raises:
        rfc8785.CanonicalizationError: For values JCS cannot represent (NaN, Infinity)
    """
    encoded: bytes = rfc8785.dumps(obj)
    return encoded.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of ``obj``."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


def lineage_fingerprint(graph: PipelineLineageGraph) -> str:
    """Compute hash of the complete lineage topology.

    Edges are sorted before hashing, so two graphs composed from
    identical declarations always agree. Any change to a declared
    operation or schema changes the fingerprint.

    Args:
        graph: Composed pipeline lineage graph

    Returns:
        SHA-256 hash of the canonical topology representation.
    """
    topology_data = graph.to_dict()
    # Stage and operation order carry meaning; edge order is an artifact of insertion
    topology_data["edges"] = sorted(
        topology_data["edges"],
        key=lambda x: (x["from_stage"], x["from_operation"], x["to_stage"], x["to_operation"], x["field"]),
    )
    return stable_hash(topology_data)
