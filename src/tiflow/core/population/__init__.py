"""Expression Population Engine -- FHIRPath 求值 + Questionnaire 预填充"""

from .engine import create_answer_for_type, populate
from .fhirpath import compile_expression, evaluate

__all__ = [
    "populate",
    "create_answer_for_type",
    "evaluate",
    "compile_expression",
]
