"""
Core model tests for Probabilistic Syntax.

Tests for:
- Feature extraction
- Gradient optimizers
- Viterbi decoding and forward-backward inference
- CRF and HMM taggers
"""
