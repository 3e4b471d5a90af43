"""Composition root for the CV search backend.

Concrete components (embedder, LLM, store, reranker and the two pipelines)
are built lazily from one configuration and shared, so that ingestion and
search always see the same store and the same embedding space.

Each public method returns a ``ServiceResponse`` carrying an HTTP-equivalent
status code and a JSON-serialisable body. Caller mistakes surface with their
message; provider and internal failures are logged and answered with a
generic message.
"""

import logging
from functools import cached_property
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from adapters import BaseEmbedder, BaseLLM
from config import configure_logging, find_config_path, get_positive_int, load_config
from errors import InvalidInputError
from pipelines import (
    DEFAULT_LIMIT,
    IngestionPipeline,
    RetrievalPipeline,
    create_document_store_from_config,
    create_embedder_from_config,
    create_llm_from_config,
    create_reranker_from_config,
    reranker_uses_llm,
)
from rerankers import BaseReranker
from stores import BaseDocumentStore

logger = logging.getLogger(__name__)

SEARCH_UNAVAILABLE = "Search is currently unavailable"
INGESTION_FAILED = "Document could not be indexed"
INTERNAL_ERROR = "Internal server error"


class ServiceResponse(BaseModel):
    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class CVRankService:
    """Holds the configured, cached runtime components."""

    def __init__(self, config: dict[str, Any], config_path: Optional[Path] = None):
        self.config = config
        self.config_path = config_path

    @classmethod
    def from_config_path(cls, config_path: Optional[Path] = None) -> "CVRankService":
        path = find_config_path(config_path)
        config = load_config(path)
        configure_logging(config)
        return cls(config, path)

    @cached_property
    def embedder(self) -> BaseEmbedder:
        return create_embedder_from_config(self.config)

    @cached_property
    def llm(self) -> Optional[BaseLLM]:
        """Built on first use: only ``answer`` and the "llm" reranker need it."""
        return create_llm_from_config(self.config)

    @cached_property
    def store(self) -> BaseDocumentStore:
        return create_document_store_from_config(self.config, self.config_path, self.embedder)

    @cached_property
    def reranker(self) -> BaseReranker:
        llm = self.llm if reranker_uses_llm(self.config) else None
        return create_reranker_from_config(self.config, self.embedder, llm)

    @cached_property
    def ingestion(self) -> IngestionPipeline:
        return IngestionPipeline.from_config(
            self.config, self.config_path, embedder=self.embedder, store=self.store
        )

    @cached_property
    def retrieval(self) -> RetrievalPipeline:
        return RetrievalPipeline.from_config(
            self.config,
            self.config_path,
            embedder=self.embedder,
            store=self.store,
            reranker=self.reranker,
            llm_factory=lambda: self.llm,
        )

    @cached_property
    def default_limit(self) -> int:
        return get_positive_int(self.config, "retrieval.default_limit", DEFAULT_LIMIT)

    def search(self, query: str, limit: Optional[int] = None) -> ServiceResponse:
        try:
            response = self.retrieval.search(
                query, limit if limit is not None else self.default_limit
            )
        except InvalidInputError as e:
            return ServiceResponse(status_code=400, body={"error": str(e)})
        except Exception:
            logger.exception("Search failed")
            return ServiceResponse(status_code=500, body={"error": SEARCH_UNAVAILABLE})
        return ServiceResponse(status_code=200, body=response.model_dump())

    def answer(self, query: str, limit: int = 3) -> ServiceResponse:
        try:
            response = self.retrieval.answer(query, limit)
        except InvalidInputError as e:
            return ServiceResponse(status_code=400, body={"error": str(e)})
        except Exception:
            logger.exception("Answer generation failed")
            return ServiceResponse(status_code=500, body={"error": SEARCH_UNAVAILABLE})
        return ServiceResponse(status_code=200, body=response.model_dump())

    def ingest(self, document_id: str, filename: str, content: str) -> ServiceResponse:
        """Index one uploaded file.

        A provider failure is reported per file with status 502 and the
        per-chunk reasons; the store is left unchanged.
        """
        try:
            result = self.ingestion.ingest_document(document_id, filename, content)
        except InvalidInputError as e:
            return ServiceResponse(status_code=400, body={"filename": filename, "error": str(e)})
        except Exception:
            logger.exception(f"Ingestion of {filename} failed")
            return ServiceResponse(
                status_code=500, body={"filename": filename, "error": INGESTION_FAILED}
            )

        body = {
            "document_id": result.document_id,
            "filename": result.source_name,
            "chunks": result.chunks_stored,
            "success": result.success,
        }
        if not result.success:
            body["errors"] = result.errors
            return ServiceResponse(status_code=502, body=body)
        return ServiceResponse(status_code=200, body=body)

    def delete(self, document_id: str) -> ServiceResponse:
        try:
            deleted = self.ingestion.delete_document(document_id)
        except InvalidInputError as e:
            return ServiceResponse(status_code=400, body={"error": str(e)})
        except Exception:
            logger.exception(f"Deletion of {document_id} failed")
            return ServiceResponse(status_code=500, body={"error": INTERNAL_ERROR})

        if not deleted:
            return ServiceResponse(status_code=404, body={"error": "File not found"})
        return ServiceResponse(status_code=200, body={"success": True})

    def list_documents(self) -> ServiceResponse:
        documents = self.ingestion.list_documents()
        return ServiceResponse(
            status_code=200, body={"files": [d.model_dump(mode="json") for d in documents]}
        )

    def get_document(self, document_id: str) -> ServiceResponse:
        document = self.ingestion.get_document(document_id)
        if document is None:
            return ServiceResponse(status_code=404, body={"error": "File not found"})
        return ServiceResponse(status_code=200, body=document.model_dump(mode="json"))
