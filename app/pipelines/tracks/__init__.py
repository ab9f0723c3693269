"""Track pipeline stages used by the ``/api/tracks`` controller.

1. `ingestion` – validate an upload and write it under the uploads root.
2. `generation` – run the orchestrator and persist each variant as a track.
"""

from .generation import generate_variants, persist_generated_tracks, resolve_source_path
from .ingestion import StoredUpload, resolve_content_type, store_upload

__all__ = [
    "StoredUpload",
    "generate_variants",
    "persist_generated_tracks",
    "resolve_content_type",
    "resolve_source_path",
    "store_upload",
]
