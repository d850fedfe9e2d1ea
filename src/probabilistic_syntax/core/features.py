"""Feature extraction for sequence labeling.

Maps a token and its context to a set of feature strings. Feature strings are
part of a trained CRF's format: a model only ever recognizes features spelled
exactly as they were at training time.

Feature families
----------------
1. Lexical: word, lowercased word, lemma
2. Orthographic: capitalization, word shape, digit / hyphen / punctuation flags
3. POS: part-of-speech tag
4. Context: neighbouring words and POS tags, sequence boundaries, previous label
5. Affixes: prefixes and suffixes up to ``max_affix_length``
6. Patterns: digits, years, decimals, initials, acronyms, length buckets
7. Gazetteers: membership in small closed entity lists (optional)
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from ..data.tokens import Token, TokenLike, as_token
from ..errors import ConfigurationError

START_MARKER = "<START>"
END_MARKER = "<END>"

PERSON_NAMES = frozenset("""
    john mary james patricia robert jennifer michael linda
    william elizabeth david barbara richard susan joseph jessica
    thomas sarah charles karen christopher nancy daniel betty
    matthew sandra anthony ashley mark donna paul michelle
    donald kimberly george emily kenneth lisa steven margaret
    mr mrs ms dr prof sir
""".split())

PLACE_NAMES = frozenset("""
    london paris tokyo beijing moscow dubai singapore sydney
    mumbai toronto barcelona madrid amsterdam berlin rome
    new york los angeles chicago houston phoenix philadelphia
    america canada mexico brazil china japan india russia
    germany france italy spain australia california texas
""".split())

ORGANIZATION_NAMES = frozenset("""
    google apple microsoft amazon facebook meta tesla
    walmart toyota samsung ibm oracle netflix spotify
    harvard mit stanford oxford cambridge university
    nasa who unesco inc corp ltd llc company
""".split())

_ALL_DIGITS = re.compile(r"^\d+$")
_YEAR = re.compile(r"^\d{4}$")
_DECIMAL = re.compile(r"^\d+\.\d+$")
_INITIAL = re.compile(r"^[A-Z]\.$")
_ACRONYM = re.compile(r"^[A-Z]+$")
_PUNCTUATION = re.compile(r"[^\w\s]|_")


@dataclass(frozen=True)
class FeatureOptions:
    """Options controlling which feature families are produced.

    Attributes
    ----------
    use_gazetteers : bool
        Emit ``in_gazetteer=...`` features
    max_affix_length : int
        Longest prefix/suffix emitted
    """
    use_gazetteers: bool = True
    max_affix_length: int = 4

    def __post_init__(self):
        if not isinstance(self.max_affix_length, int) or self.max_affix_length < 0:
            raise ConfigurationError(
                f"max_affix_length must be a non-negative integer, got {self.max_affix_length!r}"
            )


DEFAULT_OPTIONS = FeatureOptions()


def extract(token: TokenLike,
            context: Optional[Dict[str, Any]] = None,
            options: Optional[FeatureOptions] = None) -> FrozenSet[str]:
    """Extract the feature set for a single token.

    Parameters
    ----------
    token : Token or str
        Token to describe
    context : Optional[Dict[str, Any]]
        Any of ``prev_word``, ``next_word``, ``prev_pos``, ``next_pos``,
        ``prev_label``, ``position`` and ``sequence_length``
    options : Optional[FeatureOptions]
        Feature family switches; defaults to :data:`DEFAULT_OPTIONS`

    Returns
    -------
    FrozenSet[str]
        Deduplicated feature strings

    Examples
    --------
    >>> feats = extract(Token(text="John", pos_tag="propn"), {'position': 0})
    >>> sorted(f for f in feats if f.startswith("word"))
    ['word=John', 'word_lower=john', 'word_shape=Xxxx']
    """
    token = as_token(token)
    context = context or {}
    options = options or DEFAULT_OPTIONS

    features: List[str] = []
    if token.text is not None:
        features.extend(_lexical_features(token))
        features.extend(_orthographic_features(token.text))
        features.extend(_affix_features(token.text, options.max_affix_length))
        features.extend(_pattern_features(token.text))
        if options.use_gazetteers:
            features.extend(_gazetteer_features(token.text))
    elif token.lemma is not None:
        features.append(f"lemma={token.lemma}")
    features.extend(_pos_features(token))
    features.extend(_context_features(context))

    return frozenset(features)


def extract_sequence(tokens: Sequence[TokenLike],
                     options: Optional[FeatureOptions] = None) -> List[FrozenSet[str]]:
    """Extract feature sets for every token, building each context from neighbours."""
    tokens = [as_token(t) for t in tokens]
    return [extract(token, build_context(tokens, i), options)
            for i, token in enumerate(tokens)]


def build_context(tokens: Sequence[Token], i: int) -> Dict[str, Any]:
    n = len(tokens)
    return {
        'prev_word': tokens[i - 1].text if i > 0 else None,
        'next_word': tokens[i + 1].text if i < n - 1 else None,
        'prev_pos': tokens[i - 1].pos_tag if i > 0 else None,
        'next_pos': tokens[i + 1].pos_tag if i < n - 1 else None,
        'position': i,
        'sequence_length': n
    }


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _lexical_features(token: Token) -> List[str]:
    features = [f"word={token.text}", f"word_lower={token.text.lower()}"]
    if token.lemma is not None:
        features.append(f"lemma={token.lemma}")
    return features


def _orthographic_features(text: str) -> List[str]:
    return [
        f"capitalized={_flag(is_capitalized(text))}",
        f"all_caps={_flag(is_all_caps(text))}",
        f"title_case={_flag(is_title_case(text))}",
        f"word_shape={word_shape(text)}",
        f"short_word_shape={short_word_shape(text)}",
        f"has_digit={_flag(any(c.isdigit() for c in text))}",
        f"has_hyphen={_flag('-' in text)}",
        f"has_punctuation={_flag(bool(_PUNCTUATION.search(text)))}"
    ]


def _pos_features(token: Token) -> List[str]:
    if token.pos_tag is None:
        return []
    return [f"pos={str(token.pos_tag).upper()}"]


def _context_features(context: Dict[str, Any]) -> List[str]:
    prev_word = context.get('prev_word')
    next_word = context.get('next_word')
    features = [
        f"prev_word={prev_word}" if prev_word is not None else f"prev_word={START_MARKER}",
        f"next_word={next_word}" if next_word is not None else f"next_word={END_MARKER}"
    ]

    if context.get('prev_pos') is not None:
        features.append(f"prev_pos={str(context['prev_pos']).upper()}")
    if context.get('next_pos') is not None:
        features.append(f"next_pos={str(context['next_pos']).upper()}")
    if context.get('prev_label') is not None:
        features.append(f"prev_label={context['prev_label']}")

    position = context.get('position')
    length = context.get('sequence_length')
    if position == 0:
        features.append("is_first=true")
    if position is not None and length is not None and position == length - 1:
        features.append("is_last=true")

    return features


def _affix_features(text: str, max_length: int) -> List[str]:
    lowered = text.lower()
    limit = min(max_length, len(lowered))
    prefixes = [f"prefix-{k}={lowered[:k]}" for k in range(1, limit + 1)]
    suffixes = [f"suffix-{k}={lowered[-k:]}" for k in range(1, limit + 1)]
    return prefixes + suffixes


def _pattern_features(text: str) -> List[str]:
    checks = [
        (_ALL_DIGITS.match(text), "pattern=all_digits"),
        (_YEAR.match(text), "pattern=year"),
        (_DECIMAL.match(text), "pattern=decimal"),
        (_INITIAL.match(text), "pattern=initial"),
        (_ACRONYM.match(text), "pattern=acronym"),
        (len(text) == 1, "length=1"),
        (len(text) <= 3, "short_word=true"),
        (len(text) >= 10, "long_word=true")
    ]
    return [feature for matched, feature in checks if matched]


def _gazetteer_features(text: str) -> List[str]:
    word = text.lower()
    features = []
    if word in PERSON_NAMES:
        features.append("in_gazetteer=person")
    if word in PLACE_NAMES:
        features.append("in_gazetteer=place")
    if word in ORGANIZATION_NAMES:
        features.append("in_gazetteer=org")
    return features


def is_capitalized(text: str) -> bool:
    # Digits and symbols count as capitalized: their upper case is themselves.
    return len(text) > 0 and text[0] == text[0].upper()


def is_all_caps(text: str) -> bool:
    return text == text.upper() and any(c.isupper() for c in text)


def is_title_case(text: str) -> bool:
    return all(is_capitalized(word) and len(word) > 1 for word in text.split(" "))


def word_shape(text: str) -> str:
    """Abstract shape: ``"John" -> "Xxxx"``, ``"IBM-3" -> "XXX-d"``."""
    shape = []
    for char in text:
        if char.isupper():
            shape.append("X")
        elif char.islower():
            shape.append("x")
        elif char.isdigit():
            shape.append("d")
        else:
            shape.append(char)
    return "".join(shape)


def short_word_shape(text: str) -> str:
    """Word shape with runs collapsed: ``"Xxxx" -> "Xx"``, ``"ddd" -> "d"``."""
    collapsed: List[str] = []
    for char in word_shape(text):
        if not collapsed or collapsed[-1] != char:
            collapsed.append(char)
    return "".join(collapsed)
