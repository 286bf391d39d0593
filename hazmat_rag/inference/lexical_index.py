"""BM25 lexical index built once per corpus snapshot."""

import math
import time
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.config import settings
from ..core.exceptions import SearchException
from ..core.logging_config import get_logger, log_performance
from ..models.document import Document
from ..parsing.tokenizer import split_words, tokenize


class LexicalIndex:
    """
    Corpus statistics for Okapi BM25 scoring.

    The index is read-only after construction, so one instance can serve
    concurrent queries against the same corpus.
    """

    def __init__(
        self,
        documents: Iterable[Document],
        k1: Optional[float] = None,
        b: Optional[float] = None
    ):
        self.logger = get_logger(__name__, "lexical_index")
        self.k1 = settings.bm25_k1 if k1 is None else k1
        self.b = settings.bm25_b if b is None else b

        start_time = time.time()

        self.term_counts: Dict[str, Counter] = {}
        self.doc_lengths: Dict[str, int] = {}
        self.document_frequency: Counter = Counter()

        for document in documents:
            if document.id in self.term_counts:
                raise SearchException(
                    f"Duplicate document id in corpus: {document.id}",
                    component="lexical_index",
                    error_code="DUPLICATE_DOCUMENT_ID",
                    details={"document_id": document.id}
                )
            tokens = document.tokens
            self.term_counts[document.id] = Counter(tokens)
            self.doc_lengths[document.id] = len(tokens)
            self.document_frequency.update(set(tokens))

        self.num_documents = len(self.term_counts)
        total_length = sum(self.doc_lengths.values())
        self.avg_doc_length = total_length / self.num_documents if self.num_documents else 0.0

        self.idf: Dict[str, float] = {
            term: math.log((self.num_documents - df + 0.5) / (df + 0.5))
            for term, df in self.document_frequency.items()
        }

        log_performance(
            self.logger,
            "lexical_index_build",
            (time.time() - start_time) * 1000,
            metadata={
                "documents": self.num_documents,
                "vocabulary": len(self.idf),
                "avg_doc_length": round(self.avg_doc_length, 2)
            }
        )

    def score(self, query: str, document: Document) -> float:
        """BM25 score of a raw query string against one document."""
        return self.score_tokens(tokenize(query), document)

    def score_tokens(self, query_tokens: Sequence[str], document: Document) -> float:
        """BM25 score for already tokenized query terms."""
        if self.num_documents == 0 or self.avg_doc_length <= 0:
            return 0.0

        term_counts = self.term_counts.get(document.id)
        doc_length = self.doc_lengths.get(document.id)
        if term_counts is None:
            # Document outside the indexed snapshot: use its own counts with corpus idf
            term_counts = Counter(document.tokens)
            doc_length = document.length

        length_ratio = doc_length / self.avg_doc_length
        score = 0.0

        for token in query_tokens:
            tf = term_counts.get(token, 0)
            idf = self.idf.get(token)
            if tf == 0 or idf is None:
                continue

            numerator = tf * (self.k1 + 1)
            denominator = tf + self.k1 * (1 - self.b + self.b * length_ratio)
            score += idf * numerator / denominator

        return score

    @staticmethod
    def find_match_positions(query: str, text: str) -> List[int]:
        """
        Word positions in text that carry a query token.

        Positions index the whitespace-split words of text, the same
        coordinates the window builder slices on.
        """
        query_tokens = set(tokenize(query))
        if not query_tokens:
            return []

        positions = []
        for index, word in enumerate(split_words(text)):
            if any(token in query_tokens for token in tokenize(word)):
                positions.append(index)

        return positions
