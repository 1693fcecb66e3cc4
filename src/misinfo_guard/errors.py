from __future__ import annotations

from typing import Any, Dict, Optional


class PipelineError(RuntimeError):
    """Base for failures that terminate an analysis run.

    ``step`` names the pipeline step the failure belongs to and ``message`` is
    safe to show to end users; the original exception, if any, is chained.
    """

    step: Optional[str] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "step": self.step,
            "message": self.message,
            "details": self.details,
        }


class InputError(PipelineError):
    pass


class EmptyInputError(InputError):
    step = "ingest"


class IngestError(PipelineError):
    step = "ingest"


class FetchError(IngestError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"could not fetch {url}: {reason}", {"url": url, "reason": reason})


class ContentExtractionError(IngestError):
    def __init__(self, url: str) -> None:
        super().__init__(f"no readable content found at {url}", {"url": url})


class ExtractionError(PipelineError):
    step = "claims"


class CorpusUnavailableError(RuntimeError):
    pass


class EvidenceUnavailableError(PipelineError):
    step = "risk"


class GenerationError(PipelineError):
    step = "response"


class AnalysisStateError(RuntimeError):
    def __init__(self, analysis_id: object, status: str) -> None:
        self.analysis_id = analysis_id
        self.status = status
        super().__init__(f"analysis {analysis_id} cannot be run from status {status}")
