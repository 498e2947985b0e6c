"""
Description similarity used by fuzzy matching.

Character-level similarity under-scores short, keyword-bearing bank
descriptions ("PIX" vs "PIX RECEBIDO DE MARIA COSTA"), so scoring falls
through three tiers: containment, word overlap, character overlap.
"""

from typing import Optional

from ..utils.locale_values import normalize_description

# Containment floors: the shorter string has at least LONG_SUBSTRING characters
LONG_SUBSTRING = 8
LONG_CONTAINMENT_FLOOR = 0.75
SHORT_CONTAINMENT_FLOOR = 0.7

# Word overlap floor when a word is shared and one side has at most SHORT_WORD_COUNT words
SHORT_WORD_COUNT = 2
SHARED_WORD_FLOOR = 0.6
MIN_WORD_LENGTH = 3


def description_similarity(first: Optional[str], second: Optional[str]) -> float:
    """
    Score how alike two descriptions are, from 0.0 to 1.0.

    Both strings are normalized (lowercase, no accents, no document/CPF/CNPJ
    numbers or payment tags) before comparison.

    Args:
        first: Bank-side description
        second: Ledger-side description

    Returns:
        Similarity score
    """
    if not first or not second:
        return 0.0

    a = normalize_description(first)
    b = normalize_description(second)

    if a and b and (a in b or b in a):
        shorter, longer = (a, b) if len(a) < len(b) else (b, a)
        ratio = len(shorter) / len(longer)
        floor = LONG_CONTAINMENT_FLOOR if len(shorter) >= LONG_SUBSTRING else SHORT_CONTAINMENT_FLOOR
        return max(floor, ratio)

    words_a = [word for word in a.split() if len(word) >= MIN_WORD_LENGTH]
    words_b = [word for word in b.split() if len(word) >= MIN_WORD_LENGTH]

    if words_a and words_b:
        set_a, set_b = set(words_a), set(words_b)
        shared = set_a & set_b
        score = len(shared) / len(set_a | set_b)
        if shared and (len(words_a) <= SHORT_WORD_COUNT or len(words_b) <= SHORT_WORD_COUNT):
            return max(score, SHARED_WORD_FLOOR)
        return score

    chars_a, chars_b = set(a), set(b)
    union = chars_a | chars_b
    if not union:
        return 0.0
    return len(chars_a & chars_b) / len(union)


def first_word(text: Optional[str]) -> str:
    if not text or not text.strip():
        return ""
    return text.strip().split()[0].upper()
