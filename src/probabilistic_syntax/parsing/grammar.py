"""Grammar rule representation and manipulation for PCFGs.

A rule is a production ``A -> alpha`` with a probability, where ``A`` is a
non-terminal symbol and ``alpha`` a tuple of non-terminals and/or terminal
words. Terminal words are :class:`Terminal` values so that a word never
compares equal to a non-terminal of the same spelling.

Conversion to Chomsky Normal Form
---------------------------------
1. Unary rules ``A -> B`` are eliminated by one-step substitution: every
   non-unary ``B -> gamma`` yields ``A -> gamma`` with probability
   ``P(A -> B) * P(B -> gamma)``.
2. Long rules are binarized right-branching with synthetic symbols named after
   the remaining suffix: ``s -> np vp pp`` becomes ``s -> np s|<vp-pp>`` and
   ``s|<vp-pp> -> vp pp``.
3. Terminals inside binary rules are lifted to synthetic pre-terminals
   ``T|<word> -> word``.
"""

from collections import Counter, OrderedDict
from dataclasses import dataclass, replace
from typing import Dict, Hashable, Iterable, List, Sequence, Set, Tuple

SYNTHETIC_MARKER = "|<"


class Terminal(str):
    """A terminal word in a rule right-hand side."""

    __slots__ = ()

    def __eq__(self, other):
        return isinstance(other, Terminal) and str.__eq__(self, other)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(("Terminal", str(self)))

    def __repr__(self):
        return f"Terminal({str.__repr__(self)})"


@dataclass(frozen=True)
class Rule:
    """A weighted production.

    Attributes
    ----------
    lhs : Hashable
        Left-hand side non-terminal
    rhs : Tuple
        Right-hand side symbols; words are :class:`Terminal` values
    probability : float
        Rule probability, or a raw count before normalization
    language : str
        Language code
    """
    lhs: Hashable
    rhs: Tuple
    probability: float
    language: str = "en"

    def __post_init__(self):
        if not isinstance(self.rhs, tuple):
            object.__setattr__(self, 'rhs', tuple(self.rhs))

    def __str__(self) -> str:
        rhs = " ".join(f'"{s}"' if isinstance(s, Terminal) else str(s) for s in self.rhs)
        return f"{self.lhs} -> {rhs} [{self.probability:.6g}]"


def index_by_lhs(rules: Iterable[Rule]) -> Dict[Hashable, List[Rule]]:
    """Group rules by left-hand side, preserving rule order within each group."""
    index: Dict[Hashable, List[Rule]] = OrderedDict()
    for rule in rules:
        index.setdefault(rule.lhs, []).append(rule)
    return index


def is_lexical(rule: Rule) -> bool:
    return len(rule.rhs) == 1 and isinstance(rule.rhs[0], Terminal)


def is_unary(rule: Rule) -> bool:
    return len(rule.rhs) == 1 and not isinstance(rule.rhs[0], Terminal)


def is_binary(rule: Rule) -> bool:
    return len(rule.rhs) == 2 and not any(isinstance(s, Terminal) for s in rule.rhs)


def is_synthetic(symbol: Hashable) -> bool:
    """True for symbols introduced by CNF conversion."""
    return isinstance(symbol, str) and not isinstance(symbol, Terminal) and SYNTHETIC_MARKER in symbol


def normalize_probabilities(rules: Sequence[Rule]) -> List[Rule]:
    """Rescale probabilities so that rules sharing a left-hand side sum to one.

    Groups with a non-positive total are left unchanged. Rule order is kept.

    Examples
    --------
    >>> rules = [Rule("np", ("det", "noun"), 35), Rule("np", ("pron",), 25), Rule("np", ("propn",), 40)]
    >>> round(sum(r.probability for r in normalize_probabilities(rules)), 10)
    1.0
    """
    totals: Dict[Hashable, float] = {}
    for rule in rules:
        totals[rule.lhs] = totals.get(rule.lhs, 0.0) + rule.probability
    return [replace(rule, probability=rule.probability / totals[rule.lhs])
            if totals[rule.lhs] > 0 else rule
            for rule in rules]


def apply_smoothing(rules: Sequence[Rule], k: float = 0.001) -> List[Rule]:
    """Add-k smoothing: add ``k`` to every rule's count, then normalize per LHS."""
    return normalize_probabilities([replace(rule, probability=rule.probability + k) for rule in rules])


def non_terminals(rules: Iterable[Rule]) -> Set[Hashable]:
    symbols: Set[Hashable] = set()
    for rule in rules:
        symbols.add(rule.lhs)
        symbols.update(s for s in rule.rhs if not isinstance(s, Terminal))
    return symbols


def terminals(rules: Iterable[Rule]) -> Set[Terminal]:
    return {rule.rhs[0] for rule in rules if is_lexical(rule)}


def build_lexicon(rules: Iterable[Rule]) -> Dict[str, Tuple[Hashable, ...]]:
    """Map each lowercased word to the pre-terminals that produce it, in rule order."""
    lexicon: Dict[str, List[Hashable]] = OrderedDict()
    for rule in rules:
        if is_lexical(rule):
            tags = lexicon.setdefault(str(rule.rhs[0]).lower(), [])
            if rule.lhs not in tags:
                tags.append(rule.lhs)
    return {word: tuple(tags) for word, tags in lexicon.items()}


def count_rules(productions: Iterable[Tuple[Hashable, Tuple]], language: str = "en") -> List[Rule]:
    """Turn observed ``(lhs, rhs)`` productions into count-weighted rules."""
    counts = Counter(productions)
    return [Rule(lhs, rhs, float(count), language) for (lhs, rhs), count in counts.items()]


def _unique(rules: Iterable[Rule]) -> List[Rule]:
    return list(OrderedDict.fromkeys(rules))


def _eliminate_unary(rules: Sequence[Rule]) -> List[Rule]:
    unary = [r for r in rules if is_unary(r)]
    non_unary = [r for r in rules if not is_unary(r) and r.rhs]
    index = index_by_lhs(non_unary)

    expanded = [Rule(rule.lhs, target.rhs, rule.probability * target.probability, rule.language)
                for rule in unary
                for target in index.get(rule.rhs[0], [])]
    return non_unary + expanded


def _binarize(rule: Rule) -> List[Rule]:
    if len(rule.rhs) <= 2:
        return [rule]

    result = []
    current = rule.lhs
    probability = rule.probability
    for k in range(len(rule.rhs) - 2):
        suffix = "-".join(str(s) for s in rule.rhs[k + 1:])
        synthetic = f"{rule.lhs}{SYNTHETIC_MARKER}{suffix}>"
        result.append(Rule(current, (rule.rhs[k], synthetic), probability, rule.language))
        current = synthetic
        probability = 1.0
    result.append(Rule(current, rule.rhs[-2:], probability, rule.language))
    return result


def _lift_terminals(rule: Rule) -> List[Rule]:
    if len(rule.rhs) < 2 or not any(isinstance(s, Terminal) for s in rule.rhs):
        return [rule]

    lexical = []
    rhs = []
    for symbol in rule.rhs:
        if isinstance(symbol, Terminal):
            pre_terminal = f"T{SYNTHETIC_MARKER}{symbol}>"
            lexical.append(Rule(pre_terminal, (symbol,), 1.0, rule.language))
            rhs.append(pre_terminal)
        else:
            rhs.append(symbol)
    return [replace(rule, rhs=tuple(rhs))] + lexical


def to_cnf(rules: Sequence[Rule]) -> List[Rule]:
    """Convert a grammar to Chomsky Normal Form.

    Parameters
    ----------
    rules : Sequence[Rule]
        Normalized grammar

    Returns
    -------
    List[Rule]
        Rules that are all binary or lexical. Exact duplicates are dropped.

    Notes
    -----
    Unary chains longer than one step are not followed; a unary rule whose
    target has only unary expansions disappears.

    Examples
    --------
    >>> cnf = to_cnf([Rule("s", ("np", "vp", "pp"), 0.8)])
    >>> all(is_binary(r) or is_lexical(r) for r in cnf)
    True
    """
    binarized = [b for rule in _eliminate_unary(rules) for b in _binarize(rule)]
    return _unique(r for rule in binarized for r in _lift_terminals(rule))
