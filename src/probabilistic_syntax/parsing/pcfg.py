"""Probabilistic context-free grammar learned from treebanks or rule counts.

Training
--------
Two input forms are accepted:

- raw ``(lhs, rhs, count)`` triples, where words in ``rhs`` are
  :class:`~probabilistic_syntax.parsing.grammar.Terminal` values and every
  other symbol is a non-terminal;
- ``(tokens, tree)`` pairs, where ``tree`` is a nested ``(label, [children])``
  / ``(label, "word")`` tuple or a :class:`~probabilistic_syntax.data.tokens.ParseTree`.
  Bare string children of a tuple tree are words.

Productions are counted, add-k smoothed, normalized per left-hand side and,
by default, converted to Chomsky Normal Form for CYK parsing.

Prediction
----------
Words missing from the lexicon receive a smoothed lexical rule from their POS
tag (``"word"`` for untagged tokens) on a copy of the grammar, so queries never
alter the trained model.
"""

import logging
from typing import Any, Dict, Hashable, Iterator, List, Optional, Sequence, Tuple, Union

from .cyk import ChartGrammar, build_chart, debinarize, extract_brackets, n_best_parses
from .grammar import (
    Rule,
    Terminal,
    apply_smoothing,
    build_lexicon,
    count_rules,
    index_by_lhs,
    non_terminals,
    to_cnf
)
from ..core.model import StatisticalModel
from ..data.tokens import ParseTree, Token, TokenLike, as_token
from ..errors import ConfigurationError, ParseError, TrainingDataError
from ..evaluation.bracketing import BracketingMetrics, bracket_scores

logger = logging.getLogger(__name__)

UNTAGGED = "word"


def _terminal(word: Any) -> Terminal:
    if isinstance(word, Token):
        word = word.text if word.text is not None else ""
    return Terminal(str(word).lower())


def _is_triple(example: Any) -> bool:
    return (isinstance(example, (tuple, list)) and len(example) == 3
            and isinstance(example[2], (int, float)) and not isinstance(example[2], bool))


def extract_productions(tree: Any) -> Iterator[Tuple[Hashable, Tuple]]:
    """Yield ``(lhs, rhs)`` productions of a tree in pre-order."""
    if isinstance(tree, ParseTree):
        rhs = tuple(_terminal(child) if isinstance(child, Token) else child.label
                    for child in tree.children)
        yield tree.label, rhs
        for child in tree.children:
            if isinstance(child, ParseTree):
                yield from extract_productions(child)
        return

    try:
        label, children = tree
    except (TypeError, ValueError) as exc:
        raise TrainingDataError(f"Malformed tree node: {tree!r}") from exc

    if isinstance(children, (str, Token)):
        yield label, (_terminal(children),)
        return

    rhs = []
    subtrees = []
    for child in children:
        if isinstance(child, (str, Token)):
            rhs.append(_terminal(child))
        elif isinstance(child, ParseTree):
            rhs.append(child.label)
            subtrees.append(child)
        else:
            try:
                rhs.append(child[0])
            except (TypeError, IndexError) as exc:
                raise TrainingDataError(f"Malformed tree node: {child!r}") from exc
            subtrees.append(child)
    if not rhs:
        raise TrainingDataError(f"Tree node {label!r} has no children")

    yield label, tuple(rhs)
    for subtree in subtrees:
        yield from extract_productions(subtree)


class PCFG(StatisticalModel):
    """PCFG with a CYK parser.

    Parameters
    ----------
    start_symbol : Hashable, default="s"
        Root non-terminal
    smoothing_k : float, default=0.001
        Add-k constant for rule counts and unknown-word lexical rules
    language : str, default="en"
        Language code stamped on rules

    Attributes
    ----------
    rules : List[Rule]
        Normalized (and possibly CNF) grammar
    rule_index : Dict[Hashable, List[Rule]]
        Rules grouped by left-hand side
    lexicon : Dict[str, Tuple[Hashable, ...]]
        Word to pre-terminals
    non_terminals : frozenset
        All non-terminal symbols of the grammar

    Examples
    --------
    >>> pcfg = PCFG().train([("s", ("np", "vp"), 1), ("np", (Terminal("cat"),), 1),
    ...                      ("vp", (Terminal("sleeps"),), 1)])
    >>> print(pcfg.predict(["cat", "sleeps"]))
    (S (NP cat) (VP sleeps))
    """

    def __init__(self, start_symbol: Hashable = "s", smoothing_k: float = 0.001, language: str = "en"):
        super().__init__()
        if not smoothing_k > 0:
            raise ConfigurationError(f"smoothing_k must be positive, got {smoothing_k}")
        self.start_symbol = start_symbol
        self.smoothing_k = smoothing_k
        self.language = language
        self.rules: List[Rule] = []
        self.rule_index: Dict[Hashable, List[Rule]] = {}
        self.lexicon: Dict[str, Tuple[Hashable, ...]] = {}
        self.non_terminals = frozenset()

    def _collect_rules(self, training_data) -> List[Rule]:
        if _is_triple(training_data[0]):
            totals: Dict[Tuple[Hashable, Tuple], float] = {}
            for i, example in enumerate(training_data):
                if not _is_triple(example):
                    raise TrainingDataError(f"Example {i} is not an (lhs, rhs, count) triple")
                lhs, rhs, count = example
                if count < 0:
                    raise TrainingDataError(f"Example {i} has a negative count")
                rhs = tuple(_terminal(s) if isinstance(s, Terminal) else s for s in rhs)
                if not rhs:
                    raise TrainingDataError(f"Example {i} has an empty right-hand side")
                totals[(lhs, rhs)] = totals.get((lhs, rhs), 0.0) + float(count)
            return [Rule(lhs, rhs, count, self.language) for (lhs, rhs), count in totals.items()]

        productions = []
        for i, example in enumerate(training_data):
            try:
                _tokens, tree = example
            except (TypeError, ValueError) as exc:
                raise TrainingDataError(f"Example {i} is not a (tokens, tree) pair") from exc
            productions.extend(extract_productions(tree))
        return count_rules(productions, self.language)

    def train(self, training_data, smoothing: Optional[float] = None, cnf: bool = True, **options) -> 'PCFG':
        """Estimate rule probabilities.

        Parameters
        ----------
        training_data : Sequence
            ``(lhs, rhs, count)`` triples or ``(tokens, tree)`` pairs
        smoothing : Optional[float]
            Overrides ``smoothing_k`` for this model
        cnf : bool, default=True
            Convert the grammar to Chomsky Normal Form

        Returns
        -------
        PCFG
            A new trained model

        Raises
        ------
        TrainingDataError
            If the data is empty or malformed
        """
        if not training_data:
            raise TrainingDataError("Training data is empty")
        k = self.smoothing_k if smoothing is None else smoothing
        if not k > 0:
            raise ConfigurationError(f"smoothing must be positive, got {k}")

        raw_rules = self._collect_rules(list(training_data))
        rules = apply_smoothing(raw_rules, k)
        if cnf:
            rules = to_cnf(rules)

        trained = self._copy()
        trained.smoothing_k = k
        trained.rules = rules
        trained.rule_index = index_by_lhs(rules)
        trained.lexicon = build_lexicon(rules)
        trained.non_terminals = frozenset(non_terminals(rules))
        trained.metadata = {
            'model_type': 'pcfg',
            'trained_at': self._timestamp(),
            'training_size': len(training_data),
            'num_rules': len(rules),
            'num_non_terminals': len(trained.non_terminals),
            'vocab_size': len(trained.lexicon),
            'cnf': cnf
        }
        logger.info("Trained PCFG: %d rules, %d non-terminals, vocabulary %d (cnf=%s)",
                    len(rules), len(trained.non_terminals), len(trained.lexicon), cnf)
        return trained

    def _query_rules(self, tokens: Sequence[Token]) -> List[Rule]:
        """Grammar for one query: trained rules plus smoothed rules for unknown words."""
        extra = []
        seen = set()
        for token in tokens:
            word = (token.text or "").lower()
            tag = UNTAGGED if token.pos_tag is None else token.pos_tag
            if word in self.lexicon or (word, tag) in seen:
                continue
            seen.add((word, tag))
            extra.append(Rule(tag, (Terminal(word),), self.smoothing_k, self.language))
        if extra:
            logger.debug("Added %d unknown-word lexical rules", len(extra))
        return list(self.rules) + extra

    def predict(self,
                tokens: Sequence[TokenLike],
                beam_width: int = 10,
                start_symbol: Optional[Hashable] = None,
                n_best: int = 1,
                **options) -> Union[ParseTree, List[ParseTree]]:
        """Parse a sentence.

        Parameters
        ----------
        tokens : Sequence[Token or str]
            Sentence; POS tags are used only for unknown words
        beam_width : int, default=10
            Maximum labels per chart cell, ``0`` for no limit
        start_symbol : Optional[Hashable]
            Root symbol; defaults to the model's
        n_best : int, default=1
            Number of parses; above one a list is returned

        Returns
        -------
        ParseTree or List[ParseTree]
            Best parse, or up to ``n_best`` parses best first

        Raises
        ------
        ParseError
            For empty input or when no parse exists
        """
        if beam_width < 0:
            raise ConfigurationError(f"beam_width must be non-negative, got {beam_width}")
        if n_best < 1:
            raise ConfigurationError(f"n_best must be at least 1, got {n_best}")
        tokens = [as_token(t) for t in tokens]
        if not tokens:
            raise ParseError("Cannot parse empty input")
        self._require_trained()

        start = self.start_symbol if start_symbol is None else start_symbol
        grammar = ChartGrammar.from_rules(self._query_rules(tokens))
        chart = build_chart(grammar, tokens, beam_width, k_best=n_best)
        trees = n_best_parses(chart, start, 0, len(tokens) - 1, n_best)
        if not trees:
            raise ParseError(f"No parse rooted at {start!r} for {len(tokens)} tokens")
        return trees[0] if n_best == 1 else trees

    def evaluate(self, test_data, **options) -> BracketingMetrics:
        """Bracketing precision, recall, F1 and exact match on ``(tokens, gold_tree)`` pairs.

        Predicted trees are debinarized before scoring. Sentences that fail to
        parse count as an empty prediction.
        """
        options.pop('n_best', None)
        gold_sets = []
        predicted_sets = []
        for tokens, gold_tree in test_data:
            gold = debinarize(gold_tree) if isinstance(gold_tree, ParseTree) else gold_tree
            gold_sets.append(extract_brackets(gold))
            try:
                predicted = self.predict(tokens, **options)
            except ParseError as exc:
                logger.debug("Counting unparsed sentence as empty prediction: %s", exc)
                predicted_sets.append([])
                continue
            predicted_sets.append(extract_brackets(debinarize(predicted)))

        metrics = bracket_scores(gold_sets, predicted_sets)
        logger.info("Bracketing on %d sentences: P=%.4f R=%.4f F1=%.4f exact=%.4f",
                    metrics.total, metrics.precision, metrics.recall, metrics.f1, metrics.exact_match)
        return metrics

    def __repr__(self) -> str:
        return (f"PCFG(start_symbol={self.start_symbol!r}, rules={len(self.rules)}, "
                f"non_terminals={len(self.non_terminals)})")
