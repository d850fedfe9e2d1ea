import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

LOG_DIR = Path("logs")


def _setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure root logger to log to stdout and a log file.

    Args:
        verbose: If ``True`` set console log level to ``DEBUG`` else ``INFO``.
        log_file: Optional path to a log file. If ``None`` a timestamped file is
            created under ``logs/``.
    """
    if log_file is None:
        LOG_DIR.mkdir(exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = LOG_DIR / f"cli_{timestamp}.log"

    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(console_handler)

    # File handler (always DEBUG for maximum detail)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    logging.debug("Logging initialised. Log file: %s", log_file)


def _load_config(config_path: Optional[str]):
    """Load :class:`Settings` from a TOML, YAML or JSON file.

    Args:
        config_path: Path to a ``.toml``, ``.json``, ``.yml`` or ``.yaml`` file,
            or ``None`` for the defaults.

    Returns:
        A ``Settings`` instance.

    Raises:
        ValueError: If the file extension is unsupported.
    """
    from probabilistic_syntax.config import Settings

    if config_path is None:
        return Settings()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".toml":
        return Settings.from_toml(path)
    if suffix == ".json":
        return Settings.from_dict(json.loads(path.read_text()))
    if suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except ModuleNotFoundError as exc:
            raise ModuleNotFoundError(
                "PyYAML is required for YAML config files. Install with 'pip install PyYAML'"
            ) from exc
        return Settings.from_dict(yaml.safe_load(path.read_text()) or {})

    raise ValueError(f"Unsupported config type: {path.suffix}")


def _settings(args: argparse.Namespace):
    """Settings from ``--config`` with command-line overrides applied."""
    settings = _load_config(getattr(args, "config", None))
    overrides: Dict[str, Any] = {}
    for name in ("crf_iterations", "learning_rate", "regularization", "optimizer",
                 "hmm_smoothing", "hmm_algorithm", "pcfg_smoothing", "beam_width", "random_seed"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if getattr(args, "no_gazetteers", False):
        overrides["use_gazetteers"] = False
    if getattr(args, "verbose", False):
        overrides["verbose"] = True
    return settings.update(**overrides) if overrides else settings


def _load_any_model(path: str):
    from probabilistic_syntax.data import load_model
    return load_model(path)


def _read_tokens(args: argparse.Namespace) -> List[List[str]]:
    """Sentences from positional words or an input file (one sentence per line)."""
    if args.input:
        lines = Path(args.input).read_text(encoding="utf-8").splitlines()
        return [line.split() for line in lines if line.strip()]
    return [list(args.words)]


# -----------------------------------------------------------------------------
# Sub-command implementations
# -----------------------------------------------------------------------------

def _cmd_train_crf(args: argparse.Namespace) -> int:
    """Entry point for the ``train-crf`` sub-command."""
    logger = logging.getLogger(__name__)
    logger.info("Training CRF – corpus: %s, task: %s", args.corpus, args.task)

    from probabilistic_syntax import CRF, ProbabilisticSyntaxError
    from probabilistic_syntax.data import read_conllu
    from probabilistic_syntax.evaluation import flatten_sequences, unique_labels

    try:
        settings = _settings(args)
        data = read_conllu(args.corpus, task=args.task, language=settings.language)
        labels = unique_labels(*[labels for _tokens, labels in data])
        model = CRF(labels, language=settings.language).train(data, **settings.crf_options())
        model.save(args.output)
    except (OSError, ValueError, ProbabilisticSyntaxError) as exc:
        logger.error("CRF training failed: %s", exc)
        return 1

    logger.info("Trained on %d sentences (%d tokens), %d features, converged=%s, final loss %.4f",
                len(data), len(flatten_sequences(labels for _tokens, labels in data)),
                model.metadata["num_features"], model.metadata["converged"], model.metadata["final_loss"])

    if args.plot_loss:
        from probabilistic_syntax.viz import plot_loss_curve, save_figure
        saved = save_figure(plot_loss_curve(model), args.plot_loss, formats=settings.export_formats,
                            dpi=settings.figure_dpi)
        logger.info("Saved loss curve to %s", ", ".join(str(p) for p in saved))
    return 0


def _cmd_train_hmm(args: argparse.Namespace) -> int:
    """Entry point for the ``train-hmm`` sub-command."""
    logger = logging.getLogger(__name__)
    logger.info("Training HMM – corpus: %s", args.corpus)

    from probabilistic_syntax import HMMTagger, ProbabilisticSyntaxError
    from probabilistic_syntax.data import read_conllu

    try:
        settings = _settings(args)
        data = read_conllu(args.corpus, task="pos", language=settings.language)
        model = HMMTagger(smoothing_k=settings.hmm_smoothing).train(data)
        model.save(args.output)
    except (OSError, ValueError, ProbabilisticSyntaxError) as exc:
        logger.error("HMM training failed: %s", exc)
        return 1

    logger.info("Trained HMM on %d sentences: %d tags, vocabulary %d",
                len(data), model.metadata["num_tags"], model.metadata["vocab_size"])
    return 0


def _cmd_train_pcfg(args: argparse.Namespace) -> int:
    """Entry point for the ``train-pcfg`` sub-command."""
    logger = logging.getLogger(__name__)
    logger.info("Training PCFG – treebank: %s", args.treebank)

    from probabilistic_syntax import PCFG, ProbabilisticSyntaxError
    from probabilistic_syntax.data import read_treebank

    try:
        settings = _settings(args)
        data = read_treebank(args.treebank, language=settings.language, limit=args.limit)
        model = PCFG(start_symbol=settings.start_symbol, smoothing_k=settings.pcfg_smoothing,
                     language=settings.language).train(data, cnf=settings.cnf)
        model.save(args.output)
    except (OSError, ValueError, ProbabilisticSyntaxError) as exc:
        logger.error("PCFG training failed: %s", exc)
        return 1

    logger.info("Trained PCFG on %d trees: %d rules, %d non-terminals",
                len(data), model.metadata["num_rules"], model.metadata["num_non_terminals"])
    return 0


def _cmd_tag(args: argparse.Namespace) -> int:
    """Entry point for the ``tag`` sub-command."""
    logger = logging.getLogger(__name__)

    from probabilistic_syntax import CRF, HMMTagger, ProbabilisticSyntaxError

    try:
        model = _load_any_model(args.model)
        if not isinstance(model, (CRF, HMMTagger)):
            logger.error("%s holds a %s, not a tagger", args.model, type(model).__name__)
            return 1
        settings = _settings(args)
        options = {"algorithm": settings.hmm_algorithm} if isinstance(model, HMMTagger) else {}
        for words in _read_tokens(args):
            labels = model.predict(words, **options)
            print(" ".join(f"{word}/{label}" for word, label in zip(words, labels)))
    except (OSError, ValueError, ProbabilisticSyntaxError) as exc:
        logger.error("Tagging failed: %s", exc)
        return 1
    return 0


def _cmd_parse(args: argparse.Namespace) -> int:
    """Entry point for the ``parse`` sub-command."""
    logger = logging.getLogger(__name__)

    from probabilistic_syntax import PCFG, ParseError, ProbabilisticSyntaxError
    from probabilistic_syntax.parsing import debinarize

    try:
        model = _load_any_model(args.model)
        if not isinstance(model, PCFG):
            logger.error("%s holds a %s, not a PCFG", args.model, type(model).__name__)
            return 1
        options = _settings(args).pcfg_options()
        status = 0
        for words in _read_tokens(args):
            try:
                trees = model.predict(words, n_best=args.n_best, **options)
            except ParseError as exc:
                logger.warning("No parse for %r: %s", " ".join(words), exc)
                status = 2
                continue
            for tree in trees if isinstance(trees, list) else [trees]:
                print(f"{tree.log_probability:.4f}\t{debinarize(tree)}")
    except (OSError, ValueError, ProbabilisticSyntaxError) as exc:
        logger.error("Parsing failed: %s", exc)
        return 1
    return status


def _cmd_evaluate(args: argparse.Namespace) -> int:
    """Entry point for the ``evaluate`` sub-command."""
    logger = logging.getLogger(__name__)
    logger.info("Running evaluation …")

    from probabilistic_syntax import CRF, HMMTagger, PCFG, ProbabilisticSyntaxError
    from probabilistic_syntax.data import read_conllu, read_treebank
    from probabilistic_syntax import evaluation

    try:
        settings = _settings(args)
        model = _load_any_model(args.model)
        if isinstance(model, PCFG):
            metrics = model.evaluate(read_treebank(args.data), **settings.pcfg_options())
            print(json.dumps(metrics.to_dict(), indent=2))
            return 0

        if not isinstance(model, (CRF, HMMTagger)):
            logger.error("Unsupported model type %s", type(model).__name__)
            return 1

        data = read_conllu(args.data, task=args.task)
        gold = [labels for _tokens, labels in data]
        options = {"algorithm": settings.hmm_algorithm} if isinstance(model, HMMTagger) else {}
        predicted = [model.predict(tokens, **options) for tokens, _labels in data]
    except (OSError, ValueError, ProbabilisticSyntaxError) as exc:
        logger.error("Evaluation failed: %s", exc)
        return 1

    flat_gold = evaluation.flatten_sequences(gold)
    flat_predicted = evaluation.flatten_sequences(predicted)
    metrics = evaluation.classification_metrics(flat_gold, flat_predicted, average=args.average)
    summary = {key: metrics[key] for key in ("accuracy", "precision", "recall", "f1")}
    if args.task == "ner":
        summary["entity"] = evaluation.sequence_entity_metrics(gold, predicted).to_dict()
    print(json.dumps(summary, indent=2))
    print(evaluation.classification_report(metrics).to_string(float_format=lambda v: f"{v:.4f}"))

    if args.confusion_matrix:
        from probabilistic_syntax.viz import plot_confusion_matrix, save_figure
        fig = plot_confusion_matrix(metrics["confusion_matrix"], normalize=True)
        saved = save_figure(fig, args.confusion_matrix)
        logger.info("Saved confusion matrix to %s", ", ".join(str(p) for p in saved))
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Entry point for the ``info`` sub-command."""
    logger = logging.getLogger(__name__)
    from probabilistic_syntax.config.validate import format_environment_info

    if args.model is None:
        print(format_environment_info())
        return 0

    from probabilistic_syntax import ProbabilisticSyntaxError
    try:
        model = _load_any_model(args.model)
    except ProbabilisticSyntaxError as exc:
        logger.error("Could not load %s: %s", args.model, exc)
        return 1
    print(repr(model))
    print(json.dumps(model.metadata, indent=2, default=str))
    return 0


# -----------------------------------------------------------------------------
# Argument parsing
# -----------------------------------------------------------------------------

def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to TOML/YAML/JSON settings file.",
    )


def _add_input_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("model", type=str, help="Path to a saved model.")
    parser.add_argument("words", nargs="*", help="Tokens of one sentence.")
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="File with one whitespace-tokenized sentence per line.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Probabilistic Syntax command-line interface",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging output.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Log file path (default: timestamped file under logs/).",
    )

    sub_parsers = parser.add_subparsers(dest="command", required=True)

    # train-crf ---------------------------------------------------------------
    crf_parser = sub_parsers.add_parser("train-crf", help="Train a CRF tagger on a CoNLL-U corpus")
    crf_parser.add_argument("corpus", type=str, help="CoNLL-U training file.")
    crf_parser.add_argument("output", type=str, help="Where to save the model.")
    crf_parser.add_argument("--task", choices=["pos", "ner"], default="pos", help="Labels to learn.")
    crf_parser.add_argument("--iterations", dest="crf_iterations", type=int, default=None)
    crf_parser.add_argument("--learning-rate", type=float, default=None)
    crf_parser.add_argument("--regularization", type=float, default=None)
    crf_parser.add_argument("--optimizer", choices=["sgd", "momentum", "adagrad"], default=None)
    crf_parser.add_argument("--seed", dest="random_seed", type=int, default=None)
    crf_parser.add_argument("--no-gazetteers", action="store_true", help="Disable gazetteer features.")
    crf_parser.add_argument("--plot-loss", type=str, default=None, help="Save the loss curve here.")
    _add_config_argument(crf_parser)
    crf_parser.set_defaults(func=_cmd_train_crf)

    # train-hmm ---------------------------------------------------------------
    hmm_parser = sub_parsers.add_parser("train-hmm", help="Train a trigram HMM POS tagger")
    hmm_parser.add_argument("corpus", type=str, help="CoNLL-U training file.")
    hmm_parser.add_argument("output", type=str, help="Where to save the model.")
    hmm_parser.add_argument("--smoothing", dest="hmm_smoothing", type=float, default=None)
    _add_config_argument(hmm_parser)
    hmm_parser.set_defaults(func=_cmd_train_hmm)

    # train-pcfg --------------------------------------------------------------
    pcfg_parser = sub_parsers.add_parser("train-pcfg", help="Train a PCFG on bracketed trees")
    pcfg_parser.add_argument("treebank", type=str, help="One bracketed tree per line.")
    pcfg_parser.add_argument("output", type=str, help="Where to save the model.")
    pcfg_parser.add_argument("--smoothing", dest="pcfg_smoothing", type=float, default=None)
    pcfg_parser.add_argument("--limit", type=int, default=None, help="Use at most this many trees.")
    _add_config_argument(pcfg_parser)
    pcfg_parser.set_defaults(func=_cmd_train_pcfg)

    # tag ---------------------------------------------------------------------
    tag_parser = sub_parsers.add_parser("tag", help="Label tokens with a CRF or HMM")
    _add_input_arguments(tag_parser)
    tag_parser.add_argument("--algorithm", dest="hmm_algorithm", choices=["viterbi", "trigram"],
                            default=None, help="HMM decoding algorithm.")
    _add_config_argument(tag_parser)
    tag_parser.set_defaults(func=_cmd_tag)

    # parse -------------------------------------------------------------------
    parse_parser = sub_parsers.add_parser("parse", help="Parse tokens with a PCFG")
    _add_input_arguments(parse_parser)
    parse_parser.add_argument("--beam-width", type=int, default=None)
    parse_parser.add_argument("--n-best", type=int, default=1)
    _add_config_argument(parse_parser)
    parse_parser.set_defaults(func=_cmd_parse)

    # evaluate ----------------------------------------------------------------
    eval_parser = sub_parsers.add_parser("evaluate", help="Score a saved model on held-out data")
    eval_parser.add_argument("model", type=str, help="Path to a saved model.")
    eval_parser.add_argument("data", type=str, help="CoNLL-U file (taggers) or treebank (PCFG).")
    eval_parser.add_argument("--task", choices=["pos", "ner"], default="pos")
    eval_parser.add_argument("--average", choices=["macro", "micro", "weighted"], default="macro")
    eval_parser.add_argument("--beam-width", type=int, default=None)
    eval_parser.add_argument("--algorithm", dest="hmm_algorithm", choices=["viterbi", "trigram"],
                             default=None, help="HMM decoding algorithm.")
    eval_parser.add_argument("--confusion-matrix", type=str, default=None,
                             help="Save a confusion-matrix heatmap here.")
    _add_config_argument(eval_parser)
    eval_parser.set_defaults(func=_cmd_evaluate)

    # info --------------------------------------------------------------------
    info_parser = sub_parsers.add_parser("info", help="Show environment or model metadata")
    info_parser.add_argument("model", nargs="?", default=None, help="Optional saved model.")
    info_parser.set_defaults(func=_cmd_info)

    return parser


# -----------------------------------------------------------------------------
# Main entry point
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Parse ``argv`` and dispatch to sub-command implementation."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    # Logging must be set up *after* parsing to respect --verbose flag.
    _setup_logging(verbose=args.verbose, log_file=args.log_file)

    return args.func(args)  # type: ignore[attr-defined]


if __name__ == "__main__":
    sys.exit(main())
