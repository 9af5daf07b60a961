"""Document embeddings using sentence-transformers."""

from typing import Any

from ..exceptions import ConfigurationError, OracleError
from ..models import Document
from .base import EmbeddingOracle


class SentenceTransformerEmbeddingOracle(EmbeddingOracle):
    """Embeds a tab's title, description and content sample with a local model."""

    def __init__(self, config: dict[str, Any]):
        self.model_name = config.get("embedding_model", "intfloat/e5-large-v2")
        self.max_chars = config.get("features", {}).get("content_sample_chars", 2000)
        self._model = None

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ConfigurationError(
                    "The sentence-transformers backend needs the 'embeddings' extra: pip install tabcluster[embeddings]"
                ) from e
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, document: Document) -> list[float]:
        parts = [document.title, document.meta_description, document.content[: self.max_chars]]
        text = "\n".join(p for p in parts if p)
        if not text:
            raise OracleError(self.name, "nothing to embed")
        model = self.model
        try:
            # e5 models need "passage: " prefix for documents
            return model.encode(f"passage: {text}").tolist()
        except (RuntimeError, ValueError) as e:
            raise OracleError(self.name, str(e)) from e
