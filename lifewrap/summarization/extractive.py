"""
Extractive text heuristics shared by the basic engine and the parse fallback.

Nothing here calls a model. Sentences are scored by position, length and
keyword overlap; keywords are plain word frequencies with stop words removed.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable

from lifewrap.prompting.schemas import OBJECT, STRING_LIST, SchemaDefinition

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "this", "that", "these", "those", "i",
    "you", "he", "she", "it", "we", "they", "my", "your", "his", "her",
    "its", "our", "their", "me", "him", "us", "them", "what", "which",
    "who", "when", "where", "why", "how", "all", "each", "every", "both",
    "few", "more", "most", "some", "such", "no", "not", "only", "own",
    "same", "so", "than", "too", "very", "just", "about", "into", "then",
    "there", "here", "also", "like", "really", "know", "think", "going",
    "yeah", "okay", "well", "actually", "basically", "gonna", "want",
    "because", "after", "before", "over", "again", "still", "even", "much",
    "today", "thing", "things", "something", "anything", "kind", "sort",
})

# Fields that get keyword topics in an extractive result
TOPIC_FIELDS = frozenset({
    "topics", "top_topics", "recurring_themes", "most_discussed_topics", "top_patterns",
})
PEOPLE_FIELDS = frozenset({
    "people", "relationships", "key_relationships", "people_of_the_year",
})

UNCLEAR = "unclear"
KEY_THEMES_MARKER = "Key themes:"

_SENTENCE_END = re.compile(r'(?<=[.!?])\s+')
_WORD = re.compile(r"[A-Za-z][A-Za-z'\-]*")
_KEY_THEMES = re.compile(re.escape(KEY_THEMES_MARKER), re.IGNORECASE)


def split_sentences(text: str) -> list[str]:
    """Split on ., ! or ? followed by whitespace; blank pieces are dropped."""
    return [s.strip() for s in _SENTENCE_END.split(text.strip()) if s.strip()]


def leading_words(text: str, count: int) -> str:
    words = text.split()
    if len(words) <= count:
        return " ".join(words)
    return " ".join(words[:count]) + "..."


def extract_keywords(text: str, limit: int = 5, min_length: int = 4) -> list[str]:
    """Most frequent non-stop-words of at least ``min_length`` characters."""
    counts = Counter(
        word for word in (w.lower() for w in _WORD.findall(text))
        if len(word) >= min_length and word not in STOP_WORDS
    )
    return [word for word, _ in counts.most_common(limit)]


def extract_names(text: str, limit: int = 10) -> list[str]:
    """
    Capitalized words that do not open a sentence, in first-seen order.

    A rough stand-in for named-entity recognition; good enough for "people"
    fields in an extractive summary.
    """
    names = []
    for sentence in split_sentences(text):
        for word in _WORD.findall(sentence)[1:]:
            if (
                word[0].isupper()
                and len(word) > 1
                and word.lower() not in STOP_WORDS
                and word not in names
            ):
                names.append(word)
                if len(names) >= limit:
                    return names
    return names


def _ensure_terminal_punctuation(text: str) -> str:
    if text and text[-1] not in ".!?":
        return text + "."
    return text


def extractive_summarize(text: str, max_words: int = 150, keyword_limit: int = 10) -> str:
    """
    Pick the highest-scoring sentences, kept in original order.

    Score per sentence:
        position  (1 - index/count) * 0.3
        length    1.0 for 8-25 words else 0.5, times 0.2
        keywords  0.5 per top keyword contained

    Returns:
        Summary text; the leading words of ``text`` if it has no usable
        sentences; "" for blank input.
    """
    if not text.strip():
        return ""

    sentences = [s for s in split_sentences(text) if len(s.split()) > 3]
    if not sentences:
        return leading_words(text, max_words)

    max_sentences = max(1, max_words // 15)
    keywords = extract_keywords(text, limit=keyword_limit)

    scored = []
    for index, sentence in enumerate(sentences):
        word_count = len(sentence.split())
        lower = sentence.lower()
        score = (1.0 - index / len(sentences)) * 0.3
        score += (1.0 if 8 <= word_count <= 25 else 0.5) * 0.2
        score += sum(1 for keyword in keywords if keyword in lower) * 0.5
        scored.append((score, index, sentence))

    chosen = sorted(scored, key=lambda item: item[0], reverse=True)[:max_sentences]
    chosen.sort(key=lambda item: item[1])

    summary = " ".join(_ensure_terminal_punctuation(sentence) for _, _, sentence in chosen)
    words = summary.split()
    if len(words) > max_words:
        summary = " ".join(words[:max_words]) + "..."
    return summary


def key_themes(texts: Iterable[str], limit: int = 5, min_count: int = 2) -> list[tuple[str, int]]:
    """Words of 4+ characters that appear at least ``min_count`` times across texts."""
    counts = Counter()
    for text in texts:
        counts.update(
            word for word in (w.lower() for w in _WORD.findall(text))
            if len(word) >= 4 and word not in STOP_WORDS
        )
    return [(word, count) for word, count in counts.most_common() if count >= min_count][:limit]


def merge_summaries(summaries: list[str], max_words: int | None = None) -> str:
    """
    Merge several summaries without a model.

    Existing "Key themes:" tails are stripped, sentences are de-duplicated
    case-insensitively in first-seen order, and a fresh "Key themes:" line is
    appended when any word recurs.
    """
    summaries = [s for s in summaries if s and s.strip()]
    if not summaries:
        return ""
    if len(summaries) == 1:
        return summaries[0].strip()

    cleaned = []
    for summary in summaries:
        match = _KEY_THEMES.search(summary)
        cleaned.append(summary[:match.start()].strip() if match else summary.strip())

    seen = set()
    sentences = []
    for summary in cleaned:
        for sentence in split_sentences(summary):
            normalized = sentence.lower()
            if normalized not in seen:
                seen.add(normalized)
                sentences.append(_ensure_terminal_punctuation(sentence))

    result = " ".join(sentences)
    if max_words is not None and len(result.split()) > max_words:
        result = extractive_summarize(result, max_words=max_words)

    themes = key_themes(cleaned)
    if themes:
        theme_text = ", ".join(f"{word} ({count})" for word, count in themes)
        result = f"{result} {KEY_THEMES_MARKER} {theme_text}."
    return result


def build_extractive_fields(
    definition: SchemaDefinition,
    source_text: str,
    summary_text: str,
    title_words: int = 8,
    keyword_limit: int = 5,
) -> dict:
    """
    Fill every schema key from extractive heuristics.

    Args:
        definition: Target schema; the result has exactly its keys.
        source_text: Text the keywords and names are drawn from.
        summary_text: Prose for the schema's summary field.
        title_words: Word cap for the title field.
        keyword_limit: Number of topics for topic-like fields.
    """
    sentences = split_sentences(summary_text)
    title = leading_words(sentences[0], title_words) if sentences else UNCLEAR
    keywords = extract_keywords(source_text, limit=keyword_limit)
    names = extract_names(source_text)

    fields = {}
    for schema_field in definition.fields:
        name = schema_field.name
        if name == definition.summary_field:
            fields[name] = summary_text
        elif name == definition.title_field:
            fields[name] = title.rstrip(".") or UNCLEAR
        elif schema_field.type == STRING_LIST:
            if name in TOPIC_FIELDS:
                fields[name] = list(keywords)
            elif name in PEOPLE_FIELDS:
                fields[name] = list(names)
            else:
                fields[name] = []
        elif schema_field.type == OBJECT:
            fields[name] = {key: UNCLEAR for key in schema_field.subkeys}
        else:
            fields[name] = UNCLEAR
    return fields
