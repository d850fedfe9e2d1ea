"""CYK chart parsing for probabilistic context-free grammars.

Bottom-up dynamic programming over spans ``(i, j)`` (inclusive):

1. Each diagonal cell ``(i, i)`` receives one lexical tree per rule producing
   the lowercased word at position ``i``.
2. For increasing span lengths every split point ``k`` combines trees from
   ``(i, k)`` and ``(k + 1, j)`` through binary rules ``A -> B C``.
3. Every cell is closed under unary rules ``A -> B``.

Each cell keeps, per label, the ``k`` most probable derivations, and at most
``beam_width`` labels (``0`` keeps all). Scores are log-probabilities.

Time O(n³ · |G| · k²), space O(n² · |labels| · k).
"""

import math
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Sequence, Tuple

from .grammar import Rule, is_binary, is_lexical, is_synthetic, is_unary
from ..data.tokens import ParseTree, Token, TokenLike, as_token
from ..errors import ParseError

Cell = Dict[Hashable, List[ParseTree]]
Chart = Dict[Tuple[int, int], Cell]
Bracket = Tuple[Hashable, int, int]


@dataclass
class ChartGrammar:
    """Rule indices used while filling the chart."""
    lexical: Dict[str, List[Rule]] = field(default_factory=lambda: defaultdict(list))
    binary: Dict[Tuple[Hashable, Hashable], List[Rule]] = field(default_factory=lambda: defaultdict(list))
    unary: Dict[Hashable, List[Rule]] = field(default_factory=lambda: defaultdict(list))

    @classmethod
    def from_rules(cls, rules: Sequence[Rule]) -> 'ChartGrammar':
        grammar = cls()
        for rule in rules:
            if rule.probability <= 0:
                continue
            if is_lexical(rule):
                grammar.lexical[str(rule.rhs[0]).lower()].append(rule)
            elif is_binary(rule):
                grammar.binary[rule.rhs].append(rule)
            elif is_unary(rule):
                grammar.unary[rule.rhs[0]].append(rule)
        return grammar


def _insert(cell: Cell, tree: ParseTree, k_best: int) -> bool:
    """Add ``tree`` to its label's k-best list; True if it was kept."""
    trees = cell.setdefault(tree.label, [])
    if len(trees) >= k_best and tree.log_probability <= trees[-1].log_probability:
        return False
    if tree in trees:
        return False
    position = len(trees)
    while position > 0 and trees[position - 1].log_probability < tree.log_probability:
        position -= 1
    trees.insert(position, tree)
    del trees[k_best:]
    return True


def _unary_closure(grammar: ChartGrammar, cell: Cell, i: int, j: int, k_best: int):
    # Each round lengthens unary chains by one; a chain never needs more rounds than labels.
    for _ in range(len(cell) + len(grammar.unary) + 1):
        changed = False
        for label, trees in list(cell.items()):
            for rule in grammar.unary.get(label, ()):
                for child in list(trees):
                    parent = ParseTree(rule.lhs, (child,), (i, j),
                                       math.log(rule.probability) + child.log_probability, rule)
                    changed |= _insert(cell, parent, k_best)
        if not changed:
            break


def _prune(cell: Cell, beam_width: int) -> Cell:
    if beam_width <= 0 or len(cell) <= beam_width:
        return cell
    ranked = sorted(cell.items(), key=lambda item: item[1][0].log_probability, reverse=True)
    return OrderedDict(ranked[:beam_width])


def build_chart(rules, tokens: Sequence[TokenLike], beam_width: int = 10, k_best: int = 1) -> Chart:
    """Fill the CYK chart for ``tokens``.

    Parameters
    ----------
    rules : Sequence[Rule] or ChartGrammar
        Grammar, ideally in CNF
    tokens : Sequence[Token or str]
        Sentence
    beam_width : int, default=10
        Maximum labels per cell, ``0`` for no limit
    k_best : int, default=1
        Derivations kept per label and cell

    Returns
    -------
    Chart
        ``(i, j) -> label -> trees`` with trees sorted best first
    """
    grammar = rules if isinstance(rules, ChartGrammar) else ChartGrammar.from_rules(rules)
    tokens = [as_token(t) for t in tokens]
    k_best = max(1, k_best)
    n = len(tokens)
    chart: Chart = {}

    for i, token in enumerate(tokens):
        cell: Cell = OrderedDict()
        word = (token.text or "").lower()
        for rule in grammar.lexical.get(word, ()):
            _insert(cell, ParseTree(rule.lhs, (token,), (i, i), math.log(rule.probability), rule), k_best)
        _unary_closure(grammar, cell, i, i, k_best)
        chart[(i, i)] = _prune(cell, beam_width)

    for length in range(2, n + 1):
        for i in range(0, n - length + 1):
            j = i + length - 1
            cell = OrderedDict()
            for k in range(i, j):
                left_cell = chart[(i, k)]
                right_cell = chart[(k + 1, j)]
                for left_label, left_trees in left_cell.items():
                    for right_label, right_trees in right_cell.items():
                        for rule in grammar.binary.get((left_label, right_label), ()):
                            log_rule = math.log(rule.probability)
                            for left in left_trees:
                                for right in right_trees:
                                    tree = ParseTree(rule.lhs, (left, right), (i, j),
                                                     log_rule + left.log_probability + right.log_probability,
                                                     rule)
                                    _insert(cell, tree, k_best)
            _unary_closure(grammar, cell, i, j, k_best)
            chart[(i, j)] = _prune(cell, beam_width)

    return chart


def n_best_parses(chart: Chart, label: Hashable, i: int, j: int, n: int = 1) -> List[ParseTree]:
    """Up to ``n`` best trees for ``label`` over span ``(i, j)``, best first."""
    return list(chart.get((i, j), {}).get(label, []))[:n]


def parse(rules, tokens: Sequence[TokenLike], start_symbol: Hashable = "s", beam_width: int = 10) -> ParseTree:
    """Most probable parse of ``tokens`` rooted at ``start_symbol``.

    Raises
    ------
    ParseError
        For empty input or when no derivation of the start symbol spans the input
    """
    tokens = list(tokens)
    if not tokens:
        raise ParseError("Cannot parse empty input")
    chart = build_chart(rules, tokens, beam_width)
    trees = n_best_parses(chart, start_symbol, 0, len(tokens) - 1, 1)
    if not trees:
        raise ParseError(f"No parse rooted at {start_symbol!r} for {len(tokens)} tokens")
    return trees[0]


def to_brackets(tree: Any) -> str:
    """Bracketed string such as ``(NP (DET the) (NOUN cat))``."""
    if isinstance(tree, Token):
        return str(tree.text)
    if isinstance(tree, ParseTree):
        return str(tree)
    label, children = tree
    if isinstance(children, str):
        return f"({str(label).upper()} {children})"
    inner = " ".join(child if isinstance(child, str) else to_brackets(child) for child in children)
    return f"({str(label).upper()} {inner})"


def extract_brackets(tree: Any, start: int = 0) -> List[Bracket]:
    """Constituents ``(label, i, j)`` of a parse tree or nested-tuple tree, in pre-order.

    Nested-tuple trees carry no spans, so positions are counted from ``start``
    over their terminal words.
    """
    if isinstance(tree, ParseTree):
        brackets = [(tree.label, tree.span[0], tree.span[1])]
        for child in tree.children:
            if isinstance(child, ParseTree):
                brackets.extend(extract_brackets(child))
        return brackets

    brackets, _end = _tuple_brackets(tree, start)
    return brackets


def _tuple_brackets(tree: Any, start: int) -> Tuple[List[Bracket], int]:
    if isinstance(tree, (str, Token)):
        return [], start + 1
    label, children = tree
    if isinstance(children, str):
        return [(label, start, start)], start + 1

    brackets: List[Bracket] = []
    position = start
    for child in children:
        child_brackets, position = _tuple_brackets(child, position)
        brackets.extend(child_brackets)
    return [(label, start, position - 1)] + brackets, position


def debinarize(tree: ParseTree) -> ParseTree:
    """Splice out synthetic CNF nodes, attaching their children to the parent."""
    children: List[Any] = []
    for child in tree.children:
        if isinstance(child, ParseTree):
            child = debinarize(child)
            if is_synthetic(child.label):
                children.extend(child.children)
                continue
        children.append(child)
    return ParseTree(tree.label, tuple(children), tree.span, tree.log_probability, tree.rule)


def log_probability(tree: ParseTree) -> float:
    return tree.log_probability
