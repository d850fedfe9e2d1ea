"""Immutable token and parse-tree values exchanged with the wider pipeline.

Tokenizers and taggers outside this package produce :class:`Token` values;
the CYK parser produces :class:`ParseTree` values whose leaves are tokens.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Token:
    """A single token with optional linguistic annotations.

    Attributes
    ----------
    text : Optional[str]
        Surface form. ``None`` makes the feature extractor skip every
        text-derived feature family.
    lemma : Optional[str]
        Dictionary form, if known
    pos_tag : Optional[Hashable]
        Part-of-speech tag, if known
    language : str
        Language code, ``"en"`` by default
    """
    text: Optional[str]
    lemma: Optional[str] = None
    pos_tag: Optional[Hashable] = None
    language: str = "en"


TokenLike = Union[Token, str]


def as_token(value: TokenLike) -> Token:
    """Promote a bare string to a :class:`Token`; tokens pass through."""
    if isinstance(value, Token):
        return value
    if isinstance(value, str):
        return Token(text=value)
    raise TypeError(f"Expected Token or str, got {type(value).__name__}")


def as_tokens(values: Iterable[TokenLike]) -> List[Token]:
    return [as_token(v) for v in values]


@dataclass(frozen=True)
class ParseTree:
    """A constituent in a parse produced by the CYK parser.

    Attributes
    ----------
    label : str
        Non-terminal symbol of this constituent
    children : Tuple[Union[ParseTree, Token], ...]
        Sub-constituents, or a single token for lexical nodes
    span : Tuple[int, int]
        Inclusive token span ``(i, j)``
    log_probability : float
        Log-probability of the best derivation rooted here
    rule : Optional[Any]
        Grammar rule used to build this node
    """
    label: str
    children: Tuple[Union['ParseTree', Token], ...]
    span: Tuple[int, int]
    log_probability: float = 0.0
    rule: Optional[Any] = field(default=None, compare=False)

    @property
    def probability(self) -> float:
        return math.exp(self.log_probability)

    @property
    def is_lexical(self) -> bool:
        return all(isinstance(child, Token) for child in self.children)

    def leaves(self) -> List[Token]:
        """Tokens covered by this constituent, left to right."""
        result: List[Token] = []
        for child in self.children:
            if isinstance(child, Token):
                result.append(child)
            else:
                result.extend(child.leaves())
        return result

    def subtrees(self) -> List['ParseTree']:
        """This node followed by all descendant constituents in pre-order."""
        nodes = [self]
        for child in self.children:
            if isinstance(child, ParseTree):
                nodes.extend(child.subtrees())
        return nodes

    def __str__(self) -> str:
        if self.is_lexical:
            words = " ".join(str(child.text) for child in self.children)
            return f"({str(self.label).upper()} {words})"
        inner = " ".join(str(child.text) if isinstance(child, Token) else str(child)
                         for child in self.children)
        return f"({str(self.label).upper()} {inner})"
