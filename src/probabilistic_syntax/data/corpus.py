"""Corpus readers producing training pairs for the statistical models.

Two formats are supported:

- CoNLL-U treebanks, read into ``(tokens, labels)`` pairs for POS tagging or
  named-entity recognition (entity type taken from ``Entity=TYPE`` in MISC).
- Penn-style bracketed trees such as ``(S (NP cat) (VP sleeps))``, read into
  ``(tokens, tree)`` pairs for PCFG training where ``tree`` is a nested
  ``(label, children)`` tuple.
"""

import re
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple, Union

from .tokens import Token
from ..errors import ConfigurationError, TrainingDataError

TASKS = ("pos", "ner")
NO_ENTITY = "none"

_ENTITY_PATTERN = re.compile(r"Entity=([A-Za-z]+)")
_BRACKET_TOKEN = re.compile(r"\(|\)|[^\s()]+")

TreeNode = Tuple[str, Any]


def _sentence_blocks(text: str) -> Iterator[List[str]]:
    for block in re.split(r"\n\s*\n", text):
        lines = [line for line in block.splitlines()
                 if line.strip() and not line.startswith("#")]
        if lines:
            yield lines


def parse_conllu(text: str,
                 task: str = "pos",
                 language: str = "en") -> List[Tuple[List[Token], List[str]]]:
    """Parse CoNLL-U text into labelled token sequences.

    Parameters
    ----------
    text : str
        CoNLL-U document
    task : str, default="pos"
        ``"pos"`` labels tokens with their lowercased UPOS tag, ``"ner"`` with the
        lowercased entity type from the MISC column (``"none"`` if absent)
    language : str, default="en"
        Language code stamped on every token

    Returns
    -------
    List[Tuple[List[Token], List[str]]]
        One ``(tokens, labels)`` pair per sentence

    Notes
    -----
    Multi-word token ranges (``1-2``) and empty nodes (``1.1``) are skipped, as
    are lines with fewer than ten columns.
    """
    if task not in TASKS:
        raise ConfigurationError(f"Unknown task {task!r}. Available: {list(TASKS)}")

    sentences = []
    for lines in _sentence_blocks(text):
        tokens: List[Token] = []
        labels: List[str] = []
        for line in lines:
            fields = line.split("\t")
            if len(fields) < 10:
                continue
            token_id, form, lemma, upos = fields[0], fields[1], fields[2], fields[3]
            misc = fields[9]
            if "-" in token_id or "." in token_id:
                continue

            pos_tag = upos.lower() if upos not in ("_", "") else None
            tokens.append(Token(
                text=form,
                lemma=lemma if lemma not in ("_", "") else None,
                pos_tag=pos_tag,
                language=language
            ))

            if task == "pos":
                labels.append(pos_tag if pos_tag is not None else NO_ENTITY)
            else:
                match = _ENTITY_PATTERN.search(misc)
                labels.append(match.group(1).lower() if match else NO_ENTITY)

        if tokens:
            sentences.append((tokens, labels))

    return sentences


def read_conllu(path: Union[str, Path],
                task: str = "pos",
                language: str = "en") -> List[Tuple[List[Token], List[str]]]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Corpus file not found: {path}")
    return parse_conllu(path.read_text(encoding="utf-8"), task=task, language=language)


def parse_bracketed(text: str) -> TreeNode:
    """Parse one bracketed tree into nested ``(label, children)`` tuples.

    Pre-terminals become ``(label, word)``; labels are lowercased.

    Examples
    --------
    >>> parse_bracketed("(S (NP cat) (VP sleeps))")
    ('s', [('np', 'cat'), ('vp', 'sleeps')])
    """
    items = _BRACKET_TOKEN.findall(text)
    if not items:
        raise TrainingDataError("Empty bracketed tree")

    position = 0

    def parse_node() -> TreeNode:
        nonlocal position
        if items[position] != "(":
            raise TrainingDataError(f"Expected '(' at item {position} in {text!r}")
        position += 1
        if position >= len(items) or items[position] in ("(", ")"):
            raise TrainingDataError(f"Missing label at item {position} in {text!r}")
        label = items[position].lower()
        position += 1

        children: List[Any] = []
        while position < len(items) and items[position] != ")":
            if items[position] == "(":
                children.append(parse_node())
            else:
                children.append(items[position])
                position += 1
        if position >= len(items):
            raise TrainingDataError(f"Unbalanced brackets in {text!r}")
        position += 1

        if len(children) == 1 and isinstance(children[0], str):
            return (label, children[0])
        return (label, children)

    tree = parse_node()
    if position != len(items):
        raise TrainingDataError(f"Trailing content after tree in {text!r}")
    return tree


def tree_words(tree: Any) -> List[str]:
    """Terminal words of a nested tuple tree, left to right."""
    if isinstance(tree, str):
        return [tree]
    _label, children = tree
    if isinstance(children, str):
        return [children]
    words: List[str] = []
    for child in children:
        words.extend(tree_words(child))
    return words


def tree_tokens(tree: Any, language: str = "en") -> List[Token]:
    """Tokens of a nested tuple tree, POS-tagged with their pre-terminal label."""
    if isinstance(tree, str):
        return [Token(text=tree, language=language)]
    label, children = tree
    if isinstance(children, str):
        return [Token(text=children, pos_tag=label, language=language)]
    tokens: List[Token] = []
    for child in children:
        tokens.extend(tree_tokens(child, language))
    return tokens


def read_treebank(path: Union[str, Path],
                  language: str = "en",
                  limit: Optional[int] = None) -> List[Tuple[List[Token], TreeNode]]:
    """Read one bracketed tree per non-empty line into ``(tokens, tree)`` pairs."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Treebank file not found: {path}")

    pairs = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        tree = parse_bracketed(line)
        pairs.append((tree_tokens(tree, language), tree))
        if limit is not None and len(pairs) >= limit:
            break
    return pairs
