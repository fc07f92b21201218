from __future__ import annotations

from fastapi import Request

from document_analyzer.modules.extraction.service import ExtractionPipeline


def get_pipeline(request: Request) -> ExtractionPipeline:
    return request.app.state.pipeline
