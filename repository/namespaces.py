# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "verity"

RUNS: Final[str] = f"{ROOT}:runs"  # latest PipelineState per run id
EVIDENCE: Final[str] = f"{ROOT}:evidence"  # PreparedEvidence between search and verify
