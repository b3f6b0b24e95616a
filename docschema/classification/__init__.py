# ==============================================
# CLASSIFICATION
# ==============================================
#
# This package turns raw document values into type tags
# before they enter the aggregation engine.
#
# Modules:
# --------
# - type_classifier.py → Map a value to its type tag (Int64, String, ObjectId, ...)
#
# ==============================================

from .type_classifier import TypeClassifier, classify

__all__ = ["TypeClassifier", "classify"]
