"""
Model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from document_analyzer.modules.documents.models import Document  # noqa: F401
