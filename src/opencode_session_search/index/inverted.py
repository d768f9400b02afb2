"""In-memory inverted index with prefix lookup.

Provides:
- tokenize(): Split text into lowercase word tokens
- PrefixIndex: token -> document ids, with add/remove/search

A query term matches every indexed token it is a prefix of, so "nu"
finds documents containing "null" or "number". Terms of a multi-word
query must all match (each through any of its prefix-compatible tokens).
Results carry no ranking; they come back in document insertion order.
"""

from __future__ import annotations

import bisect
import re

_WORD = re.compile(r"\w+")

# Upper bound on the result list of a single lookup
DEFAULT_LIMIT = 100


def tokenize(text: str) -> list[str]:
    """
    Split text into unique, case-folded word tokens.

    Args:
        text: Arbitrary text (paths and punctuation are split on)

    Returns:
        Tokens in first-seen order, without duplicates
    """
    if not text:
        return []
    return list(dict.fromkeys(_WORD.findall(text.casefold())))


class PrefixIndex:
    """
    Token postings for a set of documents keyed by string id.

    Usage:
        index = PrefixIndex()
        index.add("ses_1", "Fix bug null pointer exception")
        index.search("nu")   # -> ["ses_1"]
        index.remove("ses_1")
    """

    def __init__(self) -> None:
        self._postings: dict[str, set[str]] = {}
        # doc id -> its tokens; dict order is insertion order of documents
        self._docs: dict[str, list[str]] = {}
        self._sorted_tokens: list[str] = []
        self._dirty = False

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._docs

    @property
    def token_count(self) -> int:
        """Number of distinct tokens indexed."""
        return len(self._postings)

    def add(self, doc_id: str, text: str) -> None:
        """Index text under doc_id, replacing any previous text for it."""
        if doc_id in self._docs:
            self.remove(doc_id)

        tokens = tokenize(text)
        self._docs[doc_id] = tokens
        for token in tokens:
            ids = self._postings.get(token)
            if ids is None:
                self._postings[token] = {doc_id}
                self._dirty = True
            else:
                ids.add(doc_id)

    def remove(self, doc_id: str) -> bool:
        """
        Drop every posting of doc_id.

        Returns:
            True if the document was indexed
        """
        tokens = self._docs.pop(doc_id, None)
        if tokens is None:
            return False

        for token in tokens:
            ids = self._postings.get(token)
            if ids is None:
                continue
            ids.discard(doc_id)
            if not ids:
                del self._postings[token]
                self._dirty = True
        return True

    def clear(self) -> None:
        self._postings.clear()
        self._docs.clear()
        self._sorted_tokens = []
        self._dirty = False

    def _tokens_with_prefix(self, prefix: str) -> list[str]:
        if self._dirty:
            self._sorted_tokens = sorted(self._postings)
            self._dirty = False
        start = bisect.bisect_left(self._sorted_tokens, prefix)
        matches = []
        for token in self._sorted_tokens[start:]:
            if not token.startswith(prefix):
                break
            matches.append(token)
        return matches

    def _match_term(self, term: str) -> set[str]:
        ids: set[str] = set()
        for token in self._tokens_with_prefix(term):
            ids |= self._postings[token]
        return ids

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[str]:
        """
        Find documents matching every term of query by prefix.

        Args:
            query: Free text; tokenized like indexed text
            limit: Maximum ids returned

        Returns:
            Matching ids in document insertion order, at most ``limit``
        """
        terms = tokenize(query)
        if not terms or limit <= 0:
            return []

        matched: set[str] | None = None
        for term in terms:
            ids = self._match_term(term)
            matched = ids if matched is None else matched & ids
            if not matched:
                return []

        results = []
        for doc_id in self._docs:
            if doc_id in matched:
                results.append(doc_id)
                if len(results) >= limit:
                    break
        return results
