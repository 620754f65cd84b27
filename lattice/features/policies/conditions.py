"""
Condition evaluation strategies for ABAC policies.

The default strategy evaluates Common Expression Language (CEL) with
cel-python. Conditions see three variables: user, resource and environment.

Example conditions:
    'user.id == "u_1"'
    'resource.type == "team" && resource.id in ["t1", "t2"]'
    'environment.time < "2030-01-01T00:00:00"'
"""
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict

import celpy
from celpy.adapter import json_to_cel
from celpy.celparser import CELParseError
from celpy.evaluation import CELEvalError

from lattice.core.errors import ConditionEvaluationError


DEFAULT_PROGRAM_CACHE_SIZE = 256


class ConditionEvaluator(ABC):
    @abstractmethod
    def evaluate(self, condition: str, attributes: Dict[str, Any]) -> bool:
        """
        Evaluate `condition` against an attribute document.

        Raises:
            ConditionEvaluationError: if the condition is malformed or fails
        """
        raise NotImplementedError


class CelConditionEvaluator(ConditionEvaluator):
    """
    CEL evaluator with a bounded cache of compiled programs.

    The least recently used programs are evicted once `cache_size` distinct
    conditions have been compiled.
    """

    def __init__(self, cache_size: int = DEFAULT_PROGRAM_CACHE_SIZE):
        self.env = celpy.Environment()
        self.compile = lru_cache(maxsize=cache_size)(self._compile)

    def _compile(self, condition: str):
        try:
            ast = self.env.compile(condition)
        except CELParseError as e:
            raise ConditionEvaluationError(f"Invalid condition: {e}", {"condition": condition}) from e
        return self.env.program(ast)

    def evaluate(self, condition: str, attributes: Dict[str, Any]) -> bool:
        program = self.compile(condition)
        activation = {name: json_to_cel(value) for name, value in attributes.items()}
        try:
            result = program.evaluate(activation)
        except CELEvalError as e:
            raise ConditionEvaluationError(f"Condition failed: {e}", {"condition": condition}) from e
        if isinstance(result, CELEvalError):
            raise ConditionEvaluationError(f"Condition failed: {result}", {"condition": condition})
        return bool(result)
